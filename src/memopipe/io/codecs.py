"""Codecs: conversion between in-memory values and artifact bytes.

Every codec has a stable ``format_id``. The format id feeds into the cache
path of persisted steps (see ``Pipeline.persist``) so that output written in
one format is never decoded with another.

JSON codecs use pydantic ``TypeAdapter`` for the value type; text codecs use
``str()`` to write and pydantic lax validation to parse each value back.
"""

from typing import Any, Generic, Iterable, Iterator, List, TypeVar

from pydantic import TypeAdapter

from memopipe.kernel.signature import Signature, derive_signature

T = TypeVar("T")

_ENCODING = "utf-8"


def type_name(tp: Any) -> str:
    """Stable printable name for a value type."""
    if isinstance(tp, type) and not getattr(tp, "__args__", None):
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    return repr(tp)


class Codec(Generic[T]):
    """Serializer/deserializer pair identified by a format id."""

    # True when serializing consumes the value (iterators); the persisted
    # producer then re-materializes its result from the written bytes.
    streaming: bool = False

    def __init__(self, format_id: str):
        self.format_id = format_id

    def serialize(self, value: T) -> bytes:
        raise NotImplementedError

    def deserialize(self, data: bytes) -> T:
        raise NotImplementedError

    def signature(self) -> Signature:
        """Signature of the format itself, used only for cache path derivation."""
        return derive_signature("codec", {"format": self.format_id}, {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.format_id!r})"


class _TextSingleton(Codec[T]):
    def __init__(self, value_type: Any):
        super().__init__(f"singleton.text[{type_name(value_type)}]")
        self._adapter = TypeAdapter(value_type)

    def serialize(self, value: T) -> bytes:
        return str(value).encode(_ENCODING)

    def deserialize(self, data: bytes) -> T:
        return self._adapter.validate_python(data.decode(_ENCODING))


class _JsonSingleton(Codec[T]):
    def __init__(self, value_type: Any):
        super().__init__(f"singleton.json[{type_name(value_type)}]")
        self._adapter = TypeAdapter(value_type)

    def serialize(self, value: T) -> bytes:
        return self._adapter.dump_json(value)

    def deserialize(self, data: bytes) -> T:
        return self._adapter.validate_json(data)


class _Lines(Codec[Any]):
    """One value per line. Text values must not contain newlines."""

    def __init__(self, container: str, fmt: str, value_type: Any):
        super().__init__(f"{container}.{fmt}[{type_name(value_type)}]")
        self._adapter = TypeAdapter(value_type)
        self._json = fmt == "json"

    def _write_line(self, item: Any) -> bytes:
        if self._json:
            return self._adapter.dump_json(item)
        return str(item).encode(_ENCODING)

    def _read_line(self, line: bytes) -> Any:
        if self._json:
            return self._adapter.validate_json(line)
        return self._adapter.validate_python(line.decode(_ENCODING))

    def serialize(self, value: Iterable[Any]) -> bytes:
        return b"".join(self._write_line(item) + b"\n" for item in value)

    def _iter_lines(self, data: bytes) -> Iterator[Any]:
        # Only "\n" separates values; "\r" inside a text value is data
        lines = data.split(b"\n")
        if lines[-1] == b"":
            lines.pop()
        for line in lines:
            yield self._read_line(line)


class _LineCollection(_Lines):
    def __init__(self, fmt: str, value_type: Any):
        super().__init__("collection", fmt, value_type)

    def deserialize(self, data: bytes) -> List[Any]:
        return list(self._iter_lines(data))


class _LineIterator(_Lines):
    streaming = True

    def __init__(self, fmt: str, value_type: Any):
        super().__init__("iterator", fmt, value_type)

    def deserialize(self, data: bytes) -> Iterator[Any]:
        return self._iter_lines(data)


class SingletonIo:
    """Codecs for a single value."""

    @staticmethod
    def text(value_type: Any = str) -> Codec[Any]:
        return _TextSingleton(value_type)

    @staticmethod
    def json(value_type: Any = Any) -> Codec[Any]:
        return _JsonSingleton(value_type)


class LineCollectionIo:
    """Codecs for a collection written one element per line; reads back a list."""

    @staticmethod
    def text(value_type: Any = str) -> Codec[Any]:
        return _LineCollection("text", value_type)

    @staticmethod
    def json(value_type: Any = Any) -> Codec[Any]:
        return _LineCollection("json", value_type)


class LineIteratorIo:
    """Codecs for an iterator written one element per line; reads back lazily."""

    @staticmethod
    def text(value_type: Any = str) -> Codec[Any]:
        return _LineIterator("text", value_type)

    @staticmethod
    def json(value_type: Any = Any) -> Codec[Any]:
        return _LineIterator("json", value_type)
