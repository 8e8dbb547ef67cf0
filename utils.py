"""
Shared helpers: size formatting, URL validation and binary checks.
"""

# pylint: disable=too-many-return-statements

import ipaddress
import logging
import re
import shutil
from typing import Iterable, List, Optional, Union
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


def format_file_size(size_bytes: Optional[Union[float, str, int]]) -> str:
    """Format file size for display."""
    if size_bytes is None or size_bytes == "N/A":
        return "N/A"
    try:
        size = float(size_bytes)
        if size <= 0:
            return "0.00 B"
        for unit in ["B", "KB", "MB", "GB", "TB"]:
            if size < 1024:
                return f"{size:.2f} {unit}"
            size /= 1024
        return f"{size:.2f} PB"
    except (ValueError, TypeError):
        return "N/A"


def validate_url(url: str) -> bool:
    """
    Validate if URL is a well-formed absolute http/https URL.

    Whether the host may be fetched is a separate question, see is_public_url.
    """
    if not isinstance(url, str):
        return False

    url = url.strip()
    if len(url) < 8 or len(url) > 2048:
        return False

    if any(c.isspace() for c in url):
        return False

    try:
        parsed = urlparse(url)
        # Raises ValueError on a malformed port
        _ = parsed.port
    except ValueError:
        return False

    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def is_public_url(url: str) -> bool:
    """
    True when the URL host is a public name or a globally routable address.

    Loopback, private, link-local and reserved addresses, "localhost" and
    single-label names (intranet hosts) are refused. No DNS lookup is done.
    """
    try:
        hostname = urlparse(url).hostname
    except (TypeError, ValueError):
        return False
    if not hostname:
        return False

    hostname = hostname.lower().rstrip(".")
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return False

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        # Numeric but not an address, like 999.999.999.999
        if re.fullmatch(r"[\d.]+", hostname):
            return False
        return "." in hostname
    return ip.is_global


def is_tool_available(name: str) -> bool:
    """Check if an executable is on PATH."""
    return shutil.which(name) is not None


def check_dependencies(tools: Iterable[str]) -> List[str]:
    """Return the tools that are missing from PATH, logging each one."""
    missing = []
    for tool in tools:
        if not is_tool_available(tool):
            logger.error("%s is not installed. Please install it and try again.", tool)
            missing.append(tool)
    return missing
