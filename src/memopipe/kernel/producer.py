"""Producers: lazily evaluated, memoized units of computation.

A producer computes its value at most once per instance (reference identity).
Its signature identifies the computation across instances and processes
(signature identity). A ``PersistedProducer`` adds a cache in front of a
producer: if its artifact exists the value is decoded from it, otherwise the
value is computed and written.

Memoization is not thread-safe. Evaluating independent branches in parallel
would need the compute-or-return-cached step to be made atomic per producer.
"""

import dataclasses
import logging
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from memopipe.errors import ArtifactReadError
from .signature import Signature
from .step_info import StepInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class Producer(Generic[T]):
    """Base class for all steps.

    Subclasses implement ``create``. Dataclass subclasses get their step info
    from their fields: fields holding producers become dependencies, every
    other field becomes a parameter. Declare them with ``eq=False`` so that
    equality stays reference identity::

        @dataclass(eq=False)
        class AddOne(Producer[int]):
            input: Producer[int]

            def create(self) -> int:
                return self.input.get() + 1

    Producers are treated as immutable once their signature has been read.
    """

    def create(self) -> T:
        raise NotImplementedError(f"{type(self).__name__} must implement create()")

    def get(self) -> T:
        """Compute the value on first call, return the memoized value afterwards."""
        value = self.__dict__.get("_memo", _UNSET)
        if value is _UNSET:
            value = self.create()
            self.__dict__["_memo"] = value
        return value

    @property
    def is_computed(self) -> bool:
        """True once ``get`` has produced a value in this process."""
        return "_memo" in self.__dict__

    @property
    def step_info(self) -> StepInfo:
        info = StepInfo(kind=type(self).__name__)
        if dataclasses.is_dataclass(self):
            info = info.add_parameters(
                **{f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
            )
        return info

    @property
    def signature(self) -> Signature:
        sig = self.__dict__.get("_signature")
        if sig is None:
            sig = self.step_info.signature
            self.__dict__["_signature"] = sig
        return sig

    def persisted(self, codec, artifact) -> "PersistedProducer[T]":
        """Wrap this producer so its value is cached in ``artifact``."""
        return PersistedProducer(self, codec, artifact)

    def with_step_info(self, update: Callable[[StepInfo], StepInfo]) -> "Producer[T]":
        """Return a producer computing the same value with modified step info."""
        return _StepInfoOverride(self, update(self.step_info))

    def with_name(self, kind: str) -> "Producer[T]":
        return self.with_step_info(lambda info: info.with_kind(kind))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.step_info.kind}>"

    @staticmethod
    def from_memory(value: T, name: Optional[str] = None, version: str = "0") -> "Producer[T]":
        """Producer of a constant value."""
        return FromMemory(value, name=name, version=version)

    @staticmethod
    def from_function(
        fn: Callable[..., T],
        name: Optional[str] = None,
        version: str = "0",
        **inputs: Any,
    ) -> "Producer[T]":
        """Producer calling ``fn`` with its inputs as keyword arguments.

        Inputs that are producers are passed as their computed values and
        declared as dependencies; other inputs are declared as parameters.
        """
        return FunctionProducer(fn, inputs, name=name, version=version)


class FromMemory(Producer[T]):
    """Constant value. The value itself is the step's only parameter."""

    def __init__(self, value: T, name: Optional[str] = None, version: str = "0"):
        self.value = value
        self.kind = name or "FromMemory"
        self.version = version

    def create(self) -> T:
        return self.value

    @property
    def step_info(self) -> StepInfo:
        return StepInfo(kind=self.kind, version=self.version, parameters={"value": self.value})


class FunctionProducer(Producer[T]):
    def __init__(self, fn: Callable[..., T], inputs: Dict[str, Any],
                 name: Optional[str] = None, version: str = "0"):
        self.fn = fn
        self.inputs = dict(inputs)
        self.kind = name or getattr(fn, "__name__", type(self).__name__)
        self.version = version

    def create(self) -> T:
        kwargs = {
            key: value.get() if isinstance(value, Producer) else value
            for key, value in self.inputs.items()
        }
        return self.fn(**kwargs)

    @property
    def step_info(self) -> StepInfo:
        return StepInfo(kind=self.kind, version=self.version).add_parameters(**self.inputs)


class _StepInfoOverride(Producer[T]):
    def __init__(self, inner: Producer[T], info: StepInfo):
        self.inner = inner
        self._info = info

    def create(self) -> T:
        return self.inner.get()

    @property
    def step_info(self) -> StepInfo:
        return self._info


class PersistedProducer(Producer[T]):
    """A producer whose value is cached in an artifact.

    ``get`` performs exactly one existence check. On a hit the artifact is
    decoded and the wrapped producer never runs; a decoding failure raises
    ArtifactReadError rather than recomputing. On a miss the wrapped
    producer runs once, its value is encoded and written once. If computing
    or encoding fails, nothing is written.
    """

    def __init__(self, original: Producer[T], codec, artifact):
        self.original = original
        self.codec = codec
        self.artifact = artifact

    def create(self) -> T:
        if self.artifact.exists():
            logger.debug("Cache hit for %s at %s", self.original.signature.name, self.artifact.url)
            try:
                return self.codec.deserialize(self.artifact.read())
            except Exception as e:
                raise ArtifactReadError(self.artifact.url, f"{type(e).__name__}: {e}") from e

        logger.debug("Cache miss for %s, computing", self.original.signature.name)
        value = self.original.get()
        data = self.codec.serialize(value)
        self.artifact.write(data)
        if self.codec.streaming:
            return self.codec.deserialize(data)
        return value

    @property
    def step_info(self) -> StepInfo:
        return self.original.step_info.with_output_location(self.artifact.url)

    @property
    def signature(self) -> Signature:
        return self.original.signature

    def change_artifact(self, artifact) -> "PersistedProducer[T]":
        """Same computation, different storage location. The signature is unchanged."""
        return PersistedProducer(self.original, self.codec, artifact)

    def change_persistence(self, codec, artifact) -> "PersistedProducer[T]":
        return PersistedProducer(self.original, codec, artifact)

    def __repr__(self) -> str:
        return f"<PersistedProducer {self.original.step_info.kind} at {self.artifact.url}>"
