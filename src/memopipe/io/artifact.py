"""Artifacts: addressable, existence-checkable, readable/writable storage locations.

An artifact is addressed by a URL whose scheme selects the backend. Two
backends ship with memopipe: local files (``file:``) and an in-process
store (``mem:``) used by tests and dry experiments.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Union, runtime_checkable
from urllib.parse import quote, unquote, urlparse

from memopipe.errors import UnsupportedUrlError

logger = logging.getLogger(__name__)


@runtime_checkable
class Artifact(Protocol):
    """Storage location consumed by persisted producers."""
    url: str

    def exists(self) -> bool: ...

    def read(self) -> bytes: ...

    def write(self, data: bytes) -> None: ...


def has_scheme(url: str) -> bool:
    # Single letters are Windows drive letters, not schemes
    return len(urlparse(url).scheme) > 1


def resolve_url(root: str, path: str) -> str:
    """Resolve ``path`` against an output root URL.

    Absolute URLs (anything with a scheme) are returned unchanged and
    absolute local paths become ``file:`` URLs. Relative paths are quoted
    before joining, so ``?`` and ``#`` stay part of the path.
    """
    if has_scheme(path):
        return path
    if os.path.isabs(path):
        return path_to_url(path)
    return f"{root.rstrip('/')}/{quote(path, safe='/')}"


def url_to_path(url: str) -> Path:
    """Convert a ``file:`` URL to a local path."""
    parsed = urlparse(url)
    if parsed.scheme != "file":
        raise UnsupportedUrlError(url)
    return Path(unquote(parsed.path))


def path_to_url(path: Union[str, os.PathLike]) -> str:
    return Path(path).absolute().as_uri()


def to_http_url(url: str) -> str:
    """Convert a storage URL to something viewable in a browser or terminal.

    ``s3``/``s3n`` URLs map to the public bucket endpoint, ``file`` URLs to a
    plain path; anything else is returned unchanged.
    """
    parsed = urlparse(url)
    if parsed.scheme in ("s3", "s3n"):
        return f"http://{parsed.netloc}.s3.amazonaws.com{parsed.path}"
    if parsed.scheme == "file":
        return unquote(parsed.path)
    return url


class FileArtifact:
    """Artifact stored as a single local file.

    Writes go to a temporary file in the target directory which is then
    renamed into place, so readers never observe a partial file.
    """

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = Path(path).absolute()
        self.url = self.path.as_uri()

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> bytes:
        return self.path.read_bytes()

    def write(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Wrote %d bytes to %s", len(data), self.path)

    def __repr__(self) -> str:
        return f"FileArtifact({str(self.path)!r})"


class InMemoryStore:
    """Process-local blob store keyed by URL."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}

    def __contains__(self, url: str) -> bool:
        return url in self.blobs

    def __len__(self) -> int:
        return len(self.blobs)

    def urls(self):
        return sorted(self.blobs)


class InMemoryArtifact:
    """Artifact backed by an InMemoryStore."""

    def __init__(self, url: str, store: InMemoryStore):
        self.url = url
        self.store = store

    def exists(self) -> bool:
        return self.url in self.store.blobs

    def read(self) -> bytes:
        try:
            return self.store.blobs[self.url]
        except KeyError:
            raise FileNotFoundError(self.url) from None

    def write(self, data: bytes) -> None:
        self.store.blobs[self.url] = bytes(data)

    def __repr__(self) -> str:
        return f"InMemoryArtifact({self.url!r})"


ArtifactHandler = Callable[[str], Artifact]


def file_artifact_from_url(url: str) -> FileArtifact:
    return FileArtifact(url_to_path(url))


class ArtifactFactory:
    """Creates artifacts from URLs by dispatching on the URL scheme."""

    def __init__(self, handlers: Optional[Dict[str, ArtifactHandler]] = None):
        if handlers is None:
            handlers = {"file": file_artifact_from_url}
        self._handlers: Dict[str, ArtifactHandler] = dict(handlers)
        self.memory_store: Optional[InMemoryStore] = None

    @classmethod
    def with_memory_store(cls, store: Optional[InMemoryStore] = None) -> "ArtifactFactory":
        """Factory that handles ``file:`` and ``mem:`` URLs."""
        store = store if store is not None else InMemoryStore()
        factory = cls()
        factory.register("mem", lambda url: InMemoryArtifact(url, store))
        factory.memory_store = store
        return factory

    def register(self, scheme: str, handler: ArtifactHandler) -> None:
        self._handlers[scheme] = handler

    @property
    def schemes(self):
        return sorted(self._handlers)

    def create_artifact(self, url: str) -> Artifact:
        scheme = urlparse(url).scheme
        handler = self._handlers.get(scheme)
        if handler is None:
            raise UnsupportedUrlError(url)
        return handler(url)
