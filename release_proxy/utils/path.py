"""
Utilities for building caller-safe download filenames from URLs.
"""

import re
from urllib.parse import quote, unquote, urlsplit

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\-_.]")


def sanitize_component(value: str) -> str:
    """Replaces every character outside [A-Za-z0-9-_.] with '_'."""
    return _UNSAFE_CHARS.sub("_", value)


def url_basename(url: str) -> str:
    """Returns the last path segment of a URL, ignoring query and fragment."""
    path = urlsplit(url).path
    return unquote(path.rsplit("/", 1)[-1])


def extension_from_url(url: str) -> str:
    """Returns the extension of the URL's last path segment, or '' if it has none."""
    basename = url_basename(url)
    if "." not in basename:
        return ""
    return basename.rsplit(".", 1)[-1]


def build_download_filename(app_id: str, platform: str, url: str) -> str:
    """
    Builds '<app>_<platform>.<ext>' with both names sanitized; only the
    extension is taken from the URL.

    >>> build_download_filename("Clash Verge", "windows", "https://x/y/setup.exe")
    'Clash_Verge_windows.exe'
    """
    filename = f"{sanitize_component(app_id)}_{sanitize_component(platform)}"
    ext = sanitize_component(extension_from_url(url))
    return f"{filename}.{ext}" if ext else filename


def content_disposition(filename: str) -> str:
    """Forces a download, giving both a plain and an RFC 5987 encoded filename."""
    return f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename, safe='')}"
