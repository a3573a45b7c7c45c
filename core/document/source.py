"""
Document source resolution.

A document can be handed to the engine as a reference (HTTP(S) URL,
``file://`` URL or plain filesystem path) or as raw data (bytes-like or a
binary string).  This module turns either form into PDF bytes.
"""

import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union
from urllib.parse import unquote, urlparse

from core.errors import ConfigurationError, LoadError

logger = logging.getLogger(__name__)

DocumentData = Union[bytes, bytearray, memoryview, str]

MISSING_SOURCE_MESSAGE = "You need to provide either valid PDF data or a URL to a PDF"


@dataclass(frozen=True)
class DocumentSource:
    """
    Where the document bytes come from.

    Attributes:
        url:          Remote or local reference to the PDF.
        data:         Raw PDF payload.  Takes precedence over ``url`` when
                      both are given.
        http_headers: Extra request headers, used only for HTTP(S) references.
    """

    url: Optional[str] = None
    data: Optional[DocumentData] = None
    http_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return self.data is not None and len(self.data) > 0

    @property
    def is_configured(self) -> bool:
        """True when at least one usable representation was supplied."""
        return bool(self.url) or self.has_data

    @property
    def kind(self) -> str:
        """``"data"``, ``"url"`` or ``"missing"``."""
        if self.has_data:
            return "data"
        if self.url:
            return "url"
        return "missing"

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` if no source is usable."""
        if not self.is_configured:
            raise ConfigurationError(MISSING_SOURCE_MESSAGE)

    def read_bytes(self, timeout: float = 30.0) -> bytes:
        """
        Produce the PDF bytes for this source.

        Blocking: the page cache runs this in a worker thread.

        Args:
            timeout: Socket timeout in seconds for HTTP(S) references.

        Returns:
            The raw document bytes.

        Raises:
            ConfigurationError: If no source was supplied.
            LoadError: If the reference is unreachable or the data unusable.
        """
        self.validate()

        if self.has_data:
            if self.url:
                logger.debug("Both data and url supplied; using data")
            return _data_to_bytes(self.data)

        parsed = urlparse(self.url)
        if parsed.scheme in ("http", "https"):
            return _fetch_url(self.url, self.http_headers, timeout)
        if parsed.scheme == "file":
            return _read_file(Path(unquote(parsed.path)))
        if parsed.scheme and len(parsed.scheme) > 1:
            raise LoadError(f"Unsupported URL scheme '{parsed.scheme}': {self.url}")
        # No scheme (or a Windows drive letter): treat as a filesystem path
        return _read_file(Path(self.url))

    def describe(self) -> str:
        """Short human-readable description for log lines."""
        if self.has_data:
            return f"<{len(self.data)} bytes of data>"
        if self.url:
            return self.url
        return "<missing>"


def _data_to_bytes(data: DocumentData) -> bytes:
    if isinstance(data, str):
        try:
            return data.encode("latin-1")
        except UnicodeEncodeError as e:
            raise LoadError(f"String payload is not a binary string: {e}") from e
    return bytes(data)


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise LoadError(f"Failed to read PDF '{path}': {e}") from e


def _fetch_url(url: str, headers: Dict[str, str], timeout: float) -> bytes:
    """Download *url* with the given transport headers."""
    logger.info("Fetching document from %s", url)
    request = urllib.request.Request(url, headers=dict(headers))
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            payload = response.read()
    except urllib.error.HTTPError as e:
        raise LoadError(f"HTTP {e.code} fetching {url}: {e.reason}") from e
    except (urllib.error.URLError, OSError) as e:
        raise LoadError(f"Failed to fetch {url}: {e}") from e

    logger.debug("Fetched %d bytes from %s", len(payload), url)
    return payload
