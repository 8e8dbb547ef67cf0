# pylint: disable=missing-module-docstring, missing-class-docstring, missing-function-docstring
"""
Tests for byte-range planning.
"""

import unittest

from relay.planner import plan_ranges
from relay.types import ByteRange


def _covered(plan, total_size):
    """Expand a plan into the list of byte offsets it covers."""
    covered = []
    for r in plan:
        end = total_size - 1 if r.end is None else r.end
        covered.extend(range(r.start, end + 1))
    return covered


class TestPlanRanges(unittest.TestCase):
    def test_scenario_four_parts_of_a_million(self):
        plan = plan_ranges(1_000_000, 4)
        self.assertEqual(
            plan,
            [
                ByteRange(0, 0, 249_999),
                ByteRange(1, 250_000, 499_999),
                ByteRange(2, 500_000, 749_999),
                ByteRange(3, 750_000, None),
            ],
        )
        self.assertEqual(plan[3].header_value(), "bytes=750000-")
        self.assertEqual(plan[0].header_value(), "bytes=0-249999")

    def test_unknown_size_is_single_open_range(self):
        self.assertEqual(plan_ranges(None, 5), [ByteRange(0, 0, None)])

    def test_zero_size_is_single_open_range(self):
        self.assertEqual(plan_ranges(0, 5), [ByteRange(0, 0, None)])

    def test_coverage_is_exact_and_gapless(self):
        for total_size in (1, 2, 7, 10, 99, 1000, 1001):
            for part_count in (1, 2, 3, 5, 8, 16):
                plan = plan_ranges(total_size, part_count)
                self.assertEqual(
                    _covered(plan, total_size),
                    list(range(total_size)),
                    f"size={total_size} parts={part_count}",
                )
                self.assertEqual([r.index for r in plan], list(range(len(plan))))
                self.assertIsNone(plan[-1].end)
                for prev, nxt in zip(plan, plan[1:]):
                    self.assertEqual(prev.end + 1, nxt.start)

    def test_more_parts_than_bytes_never_plans_empty_ranges(self):
        plan = plan_ranges(3, 5)
        self.assertEqual(len(plan), 3)
        self.assertEqual([r.start for r in plan], [0, 1, 2])

    def test_single_part_with_known_size(self):
        self.assertEqual(plan_ranges(500, 1), [ByteRange(0, 0, None)])

    def test_deterministic(self):
        self.assertEqual(plan_ranges(123_456, 7), plan_ranges(123_456, 7))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            plan_ranges(100, 0)
        with self.assertRaises(ValueError):
            plan_ranges(-1, 2)

    def test_length(self):
        self.assertEqual(ByteRange(0, 10, 19).length, 10)
        self.assertIsNone(ByteRange(0, 10).length)
        self.assertTrue(ByteRange(0, 10).is_open_ended)


if __name__ == "__main__":
    unittest.main()
