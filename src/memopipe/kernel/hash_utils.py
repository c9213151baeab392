"""Hash utilities with explicit canonicalization rules for stable signatures.

This module turns step parameter values into a canonical, type-tagged JSON
structure and hashes it. The output is stable across Python versions,
processes and machines.

Key rules:
- Every value is encoded as a two-element ``[tag, payload]`` list, so values
  of different kinds can never collide (the string "1" is not the int 1)
- Mapping keys must be strings and are sorted
- Sequences preserve order, sets are sorted by their canonical encoding
- Floats are encoded with ``repr`` (shortest round-trip form); NaN/Inf banned
- Strings normalized to NFC
- Nothing relies on ``hash()``, ``id()`` or dict iteration order
"""

import enum
import hashlib
import json
import math
import unicodedata
from collections.abc import Mapping
from typing import Any, List

from pydantic import BaseModel

from memopipe.errors import CanonicalizationError


def _normalize_string(s: str) -> str:
    """Normalize string to NFC (Unicode Normalization Form Canonical Composition)."""
    return unicodedata.normalize('NFC', s)


def canonical_dumps(obj: Any) -> str:
    """Serialize an already-canonical structure to a byte-stable JSON string.

    Rules: sorted keys, stable separators (",", ":"), UTF-8 (no ASCII escaping).
    """
    return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def encode_value(obj: Any, path: str = "") -> List[Any]:
    """Encode a parameter value as a type-tagged canonical structure.

    Args:
        obj: The value to encode
        path: Location of the value, used in error messages

    Returns:
        A ``[tag, payload]`` list containing only JSON types

    Raises:
        CanonicalizationError: If the value (or a nested value) is unsupported
    """
    # Imported lazily: signature.py imports this module
    from memopipe.kernel.signature import Signature

    if obj is None:
        return ["null", None]
    elif isinstance(obj, bool):
        return ["bool", obj]
    elif isinstance(obj, enum.Enum):
        cls = type(obj)
        return ["enum", f"{cls.__module__}.{cls.__qualname__}.{obj.name}"]
    elif isinstance(obj, int):
        return ["int", obj]
    elif isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise CanonicalizationError(
                f"Invalid number at {path or '<root>'}: NaN or Inf not allowed"
            )
        return ["float", repr(obj)]
    elif isinstance(obj, str):
        return ["str", _normalize_string(obj)]
    elif isinstance(obj, (bytes, bytearray)):
        return ["bytes", hashlib.sha256(bytes(obj)).hexdigest()]
    elif isinstance(obj, Signature):
        return ["sig", {"kind": obj.kind, "version": obj.version, "id": obj.id}]
    elif isinstance(obj, BaseModel):
        cls = type(obj)
        dumped = obj.model_dump(mode="json")
        return ["model", {
            "class": f"{cls.__module__}.{cls.__qualname__}",
            "value": encode_value(dumped, path),
        }]
    elif isinstance(obj, Mapping):
        encoded = {}
        for key, value in obj.items():
            if not isinstance(key, str):
                raise CanonicalizationError(
                    f"Mapping keys must be strings at {path or '<root>'}, got {type(key).__name__}"
                )
            key = _normalize_string(key)
            encoded[key] = encode_value(value, f"{path}.{key}" if path else key)
        return ["map", encoded]
    elif isinstance(obj, (list, tuple)):
        return ["seq", [
            encode_value(item, f"{path}[{i}]" if path else f"[{i}]")
            for i, item in enumerate(obj)
        ]]
    elif isinstance(obj, (set, frozenset)):
        items = [encode_value(item, f"{path}{{}}" if path else "{}") for item in obj]
        # Sort by canonical string so set iteration order never leaks
        return ["set", sorted(items, key=canonical_dumps)]
    else:
        raise CanonicalizationError(
            f"Unsupported parameter type at {path or '<root>'}: {type(obj).__name__}. "
            f"Use None, bool, int, float, str, bytes, Enum, Signature, pydantic models, "
            f"or mappings/sequences/sets of those."
        )


def canonicalize_json(obj: Any) -> str:
    """Encode a value and serialize it to its canonical JSON string."""
    return canonical_dumps(encode_value(obj))


def hash_payload(obj: Any) -> str:
    """Compute the SHA256 hex digest of a value's canonical encoding.

    Raises:
        CanonicalizationError: If the value contains unsupported types
    """
    canonical_str = canonicalize_json(obj)
    return hashlib.sha256(canonical_str.encode('utf-8')).hexdigest()
