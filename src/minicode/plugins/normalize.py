"""Plugin reference normalization."""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

FILE_URL_PREFIX = "file://"


def normalize_plugin_reference(reference: str) -> str:
    """Trim a reference and canonicalize `file://` URLs; other references pass through."""

    trimmed = reference.strip()
    if not trimmed:
        raise ValueError("Plugin reference cannot be empty")
    if not trimmed.startswith(FILE_URL_PREFIX):
        return trimmed

    parsed = urlparse(trimmed)
    if parsed.scheme != "file":
        raise ValueError(f"Unsupported plugin URL protocol: {parsed.scheme}:")
    file_path = os.path.normpath(url2pathname(unquote(parsed.path)))
    return Path(file_path).as_uri()


def file_url_to_path(reference: str) -> Path:
    return Path(url2pathname(unquote(urlparse(reference).path)))
