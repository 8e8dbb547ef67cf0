# pylint: disable=line-too-long
"""
HTTP engine using requests.
Probes the remote size and filename, and fetches single byte ranges to disk.
No retries: a failed range fails the whole request.
"""

import logging
import os
import re
from pathlib import Path
from typing import Mapping, Optional, Tuple

import requests

from relay.errors import FetchFailed, PlanningError, UnsafeSource
from relay.types import ByteRange, PartFile, RemoteInfo
from relay.utils.constants import DEFAULT_FILENAME, RESERVED_FILENAMES
from utils import is_public_url

logger = logging.getLogger(__name__)

CHUNK_SIZE_BYTES = 64 * 1024  # 64KB chunks for better throughput
DEFAULT_TIMEOUT = (15, 60)  # (connect timeout, read timeout)

_SESSION = requests.Session()
_SESSION.headers.update(
    {
        "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    }
)


def sanitize_filename(filename: str) -> str:
    """Reduce a header- or URL-supplied name to a safe local file name."""
    # Strip any directory components and path separators
    filename = os.path.basename(filename.replace("\\", "/"))

    # Allowlist (A-Z, a-z, 0-9, -, _, .)
    filename = re.sub(r"[^A-Za-z0-9\-\_\.]", "", filename).strip()

    # Collapse leading/trailing dots which are problematic on Windows
    filename = filename.strip(" .")
    while ".." in filename:
        filename = filename.replace("..", "-")

    name_root = filename.split(".")[0].upper() if filename else ""
    if name_root in RESERVED_FILENAMES:
        filename = f"_{filename}"

    return filename or DEFAULT_FILENAME


def filename_from_headers(url: str, headers: Mapping[str, str]) -> str:
    """Extract filename from Content-Disposition header or fallback to URL."""
    filename = ""
    cd = headers.get("Content-Disposition")
    if cd:
        # filename="name" or filename*=UTF-8''name
        fnames = re.findall(r'filename\*?=(?:[a-zA-Z0-9-]+\'\')?"?([^";]+)"?', cd)
        if fnames:
            filename = fnames[0]

    if not filename:
        path = url.split("?")[0].split("#")[0]
        filename = os.path.basename(path)

    return sanitize_filename(filename)


def _head(
    url: str, timeout: float, session: requests.Session
) -> Tuple[str, Mapping[str, str]]:
    try:
        h = session.head(url, allow_redirects=True, timeout=timeout)
        h.raise_for_status()
    except requests.RequestException as e:
        raise PlanningError(f"HEAD request failed for {url}: {e}") from e
    return h.url or url, h.headers


def probe_remote(
    url: str,
    timeout: float = 15.0,
    session: Optional[requests.Session] = None,
) -> RemoteInfo:
    """
    Best-effort HEAD probe for size, filename and range support.

    Never fails the request: any problem degrades to an unknown size so the
    planner falls back to one whole-file range.
    """
    session = session or _SESSION
    try:
        final_url, headers = _head(url, timeout, session)
    except PlanningError as e:
        logger.warning("%s; continuing with unknown size", e)
        return RemoteInfo(url=url, filename=filename_from_headers(url, {}))

    total_size: Optional[int] = None
    cl_header = headers.get("Content-Length")
    try:
        total_size = int(cl_header) if cl_header is not None else None
    except (TypeError, ValueError):
        logger.warning("Unparseable Content-Length %r for %s", cl_header, url)
    if total_size is not None and total_size <= 0:
        total_size = None

    accepts_ranges = headers.get("Accept-Ranges", "").strip().lower() != "none"

    info = RemoteInfo(
        url=final_url,
        filename=filename_from_headers(final_url, headers),
        total_size=total_size,
        accepts_ranges=accepts_ranges,
    )
    logger.info(
        "Probed %s: name=%s size=%s ranges=%s",
        url,
        info.filename,
        info.total_size,
        info.accepts_ranges,
    )
    return info


class PartFetcher:
    """Fetches one planned byte range into a slot file."""

    def __init__(
        self,
        url: str,
        timeout=DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or _SESSION

    def fetch(
        self, byte_range: ByteRange, dest: Path, ranged: bool = True
    ) -> PartFile:
        """
        Fetch ``byte_range`` into ``dest``.

        Args:
            byte_range: The planned range.
            dest: Slot file to (over)write.
            ranged: False for the whole-file fallback, which sends no Range
                header and accepts a plain 200.

        Returns:
            PartFile with the number of bytes actually received.

        Raises:
            FetchFailed: transport error, HTTP error, ignored range, or an
                empty body.
            UnsafeSource: a redirect led to a non-public host.
        """
        headers = {}
        if ranged:
            headers["Range"] = byte_range.header_value()

        logger.info(
            "Downloading range %s into %s",
            headers.get("Range", "whole file"),
            dest.name,
        )

        received = 0
        try:
            with self.session.get(
                self.url,
                headers=headers,
                stream=True,
                timeout=self.timeout,
                allow_redirects=True,
            ) as r:
                r.raise_for_status()
                if r.url and not is_public_url(r.url):
                    raise UnsafeSource(f"Range request redirected to non-public {r.url}")
                if ranged and r.status_code != 206:
                    raise FetchFailed(
                        f"Server ignored Range {headers['Range']} (HTTP {r.status_code})",
                        index=byte_range.index,
                        status_code=r.status_code,
                    )

                with open(dest, "wb") as f:
                    for chunk in r.iter_content(chunk_size=CHUNK_SIZE_BYTES):
                        if chunk:
                            f.write(chunk)
                            received += len(chunk)
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchFailed(
                f"HTTP error for range {byte_range.header_value()}: {e}",
                index=byte_range.index,
                status_code=status,
            ) from e
        except requests.RequestException as e:
            raise FetchFailed(
                f"Transport error for range {byte_range.header_value()}: {e}",
                index=byte_range.index,
            ) from e
        except OSError as e:
            raise FetchFailed(
                f"Could not write {dest}: {e}", index=byte_range.index
            ) from e

        if received == 0:
            raise FetchFailed(
                f"Range {byte_range.header_value()} returned no data",
                index=byte_range.index,
            )

        logger.debug("Range %d received %d bytes", byte_range.index, received)
        return PartFile(index=byte_range.index, path=dest, bytes_received=received)
