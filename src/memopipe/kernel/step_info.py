"""Step metadata: what a producer computes and what it depends on."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from memopipe.errors import DuplicateNameError
from .signature import Signature, derive_signature

if TYPE_CHECKING:
    from .producer import Producer

_SUMMARY_LIMIT = 120


def _summarize(value: Any) -> str:
    if isinstance(value, Signature):
        text = value.name
    else:
        text = str(value)
    if len(text) > _SUMMARY_LIMIT:
        text = text[:_SUMMARY_LIMIT - 3] + "..."
    return text


@dataclass(frozen=True, eq=False)
class StepInfo:
    """Metadata describing one producer.

    ``parameters`` and ``dependencies`` share one namespace: a name may not be
    used for both. Declaration order is irrelevant to the signature.
    """
    kind: str
    version: str = "0"
    parameters: Mapping[str, Any] = field(default_factory=dict)
    dependencies: Mapping[str, "Producer[Any]"] = field(default_factory=dict)
    description: Optional[str] = None
    output_location: Optional[str] = None  # Not part of the signature

    def __post_init__(self):
        overlap = set(self.parameters) & set(self.dependencies)
        if overlap:
            raise DuplicateNameError(overlap)
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))
        object.__setattr__(self, "dependencies", MappingProxyType(dict(self.dependencies)))

    @cached_property
    def signature(self) -> Signature:
        """Logical signature of the step."""
        return derive_signature(
            self.kind,
            self.parameters,
            {name: dep.signature for name, dep in self.dependencies.items()},
            self.version,
        )

    def add_parameters(self, **values: Any) -> "StepInfo":
        """Return a copy with extra parameters.

        Values that are producers are added as dependencies instead.
        """
        from .producer import Producer

        parameters: Dict[str, Any] = dict(self.parameters)
        dependencies: Dict[str, Producer[Any]] = dict(self.dependencies)
        for name, value in values.items():
            if isinstance(value, Producer):
                dependencies[name] = value
            else:
                parameters[name] = value
        return dataclasses.replace(self, parameters=parameters, dependencies=dependencies)

    def with_kind(self, kind: str) -> "StepInfo":
        return dataclasses.replace(self, kind=kind)

    def with_version(self, version: str) -> "StepInfo":
        return dataclasses.replace(self, version=version)

    def with_description(self, description: str) -> "StepInfo":
        return dataclasses.replace(self, description=description)

    def with_output_location(self, url: Optional[str]) -> "StepInfo":
        return dataclasses.replace(self, output_location=url)

    def parameter_summary(self) -> Dict[str, str]:
        """Short printable form of every parameter, sorted by name."""
        return {name: _summarize(self.parameters[name]) for name in sorted(self.parameters)}
