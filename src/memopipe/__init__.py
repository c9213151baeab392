"""memopipe: incremental computation with cached, signature-addressed pipeline steps."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("memopipe")
except PackageNotFoundError:
    __version__ = "dev"

from memopipe.codes import PipelineErrorCode
from memopipe.config import PipelineConfig, load_config
from memopipe.configured import ConfiguredPipeline
from memopipe.errors import (
    AmbiguousStepError,
    ArtifactReadError,
    DuplicateTargetError,
    MemopipeError,
    MissingUpstreamError,
    NonPersistedTargetError,
    PipelineValidationError,
    UnknownStepError,
)
from memopipe.io.artifact import ArtifactFactory, FileArtifact, InMemoryArtifact, InMemoryStore
from memopipe.io.codecs import Codec, LineCollectionIo, LineIteratorIo, SingletonIo
from memopipe.kernel.producer import PersistedProducer, Producer
from memopipe.kernel.signature import Signature, derive_signature
from memopipe.kernel.step_info import StepInfo
from memopipe.kernel.workflow import Workflow, upstream_dependencies
from memopipe.pipeline import Pipeline
from memopipe.report import RunReport

__all__ = [
    "__version__",
    "Pipeline",
    "ConfiguredPipeline",
    "PipelineConfig",
    "load_config",
    "Producer",
    "PersistedProducer",
    "StepInfo",
    "Signature",
    "derive_signature",
    "Workflow",
    "upstream_dependencies",
    "RunReport",
    "ArtifactFactory",
    "FileArtifact",
    "InMemoryArtifact",
    "InMemoryStore",
    "Codec",
    "SingletonIo",
    "LineCollectionIo",
    "LineIteratorIo",
    "PipelineErrorCode",
    "MemopipeError",
    "PipelineValidationError",
    "UnknownStepError",
    "AmbiguousStepError",
    "DuplicateTargetError",
    "NonPersistedTargetError",
    "MissingUpstreamError",
    "ArtifactReadError",
]
