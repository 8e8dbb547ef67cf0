"""
Unit tests for the RateLimiter class.
"""

import unittest
from unittest.mock import patch

from rate_limiter import RateLimiter


class TestRateLimiter(unittest.TestCase):
    def test_first_call_allowed(self):
        limiter = RateLimiter(60.0)
        self.assertTrue(limiter.check())
        self.assertFalse(limiter.check())

    @patch("rate_limiter.time.monotonic")
    def test_interval(self, mock_monotonic):
        limiter = RateLimiter(1.0)
        mock_monotonic.return_value = 100.0
        self.assertTrue(limiter.check())

        mock_monotonic.return_value = 100.5
        self.assertFalse(limiter.check())

        mock_monotonic.return_value = 101.0
        self.assertTrue(limiter.check())

    @patch("rate_limiter.time.monotonic")
    def test_touch_restarts_interval(self, mock_monotonic):
        limiter = RateLimiter(1.0)
        mock_monotonic.return_value = 100.0
        self.assertTrue(limiter.check())

        mock_monotonic.return_value = 100.9
        limiter.touch()

        mock_monotonic.return_value = 101.5
        self.assertFalse(limiter.check())

    def test_zero_interval_never_limits(self):
        limiter = RateLimiter(0)
        self.assertTrue(all(limiter.check() for _ in range(5)))


if __name__ == "__main__":
    unittest.main()
