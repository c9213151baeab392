"""Deterministic step signatures.

A signature is the logical identity of a step: its kind, its declared
version, its parameter values and the signatures of its upstream
dependencies. Nothing else (wall-clock time, object identity, declaration
order, output location) feeds into it.
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from .hash_utils import hash_payload


class Signature(BaseModel):
    """Content-derived identity of a step."""
    kind: str
    version: str = "0"
    id: str  # sha256 hex digest of the canonical step definition

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def name(self) -> str:
        """File-name friendly ``<kind>.<id>`` form used for cache paths."""
        return f"{self.kind}.{self.id}"

    def __str__(self) -> str:
        return self.name


def derive_signature(
    kind: str,
    params: Mapping[str, Any],
    deps: Mapping[str, Signature],
    version: str = "0",
) -> Signature:
    """Derive the signature of a step from its declared content.

    Parameter and dependency names are sorted during canonicalization, so the
    order in which they were declared never matters.

    Args:
        kind: Name identifying the computation
        params: Parameter name -> value
        deps: Dependency name -> upstream signature
        version: Declared code version of the step

    Returns:
        The step's Signature

    Raises:
        CanonicalizationError: If a parameter value cannot be encoded
    """
    payload = {
        "kind": kind,
        "version": version,
        "params": dict(params),
        "dependencies": dict(deps),
    }
    return Signature(kind=kind, version=version, id=hash_payload(payload))
