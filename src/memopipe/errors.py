"""Exception taxonomy for memopipe."""

from typing import Iterable, Optional

from memopipe.codes import PipelineErrorCode


def _join(names: Iterable[str]) -> str:
    return ",".join(names)


class MemopipeError(Exception):
    """Base exception for all memopipe errors."""
    code: PipelineErrorCode

    def __init__(self, message: str, code: Optional[PipelineErrorCode] = None):
        if code is not None:
            self.code = code
        super().__init__(message)


class PipelineValidationError(MemopipeError, ValueError):
    """Raised before execution when a run request cannot be satisfied."""
    pass


class UnknownStepError(PipelineValidationError):
    """Raised when requested step names do not resolve to a registered target."""
    code = PipelineErrorCode.UNKNOWN_STEP

    def __init__(self, names: Iterable[str], message: Optional[str] = None):
        self.names = list(names)
        if message is None:
            if len(self.names) == 1:
                message = f"No such step: {self.names[0]}"
            else:
                message = f"No such steps: [{_join(self.names)}]"
        super().__init__(message)


class AmbiguousStepError(PipelineValidationError):
    """Raised when a step name matches more than one registered target."""
    code = PipelineErrorCode.AMBIGUOUS_STEP

    def __init__(self, name: str, count: int):
        self.name = name
        self.count = count
        super().__init__(f"Step name {name} matches {count} registered targets")


class NonPersistedTargetError(PipelineValidationError):
    """Raised when a partial run requests a step that is not persisted."""
    code = PipelineErrorCode.NON_PERSISTED_TARGET

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(
            f"Running a pipeline without persisting the output: [{_join(self.names)}]"
        )


class MissingUpstreamError(PipelineValidationError):
    """Raised when persisted upstream steps of a partial run have not been computed."""
    code = PipelineErrorCode.MISSING_UPSTREAM

    def __init__(self, targets: Iterable[str], missing: Iterable[str]):
        self.targets = list(targets)
        self.missing = list(missing)
        super().__init__(
            f"Cannot run steps [{_join(self.targets)}]. "
            f"Upstream dependencies [{_join(self.missing)}] have not been computed"
        )


class DuplicateTargetError(PipelineValidationError):
    """Raised when a step is registered at a second, automatically derived location."""
    code = PipelineErrorCode.DUPLICATE_TARGET

    def __init__(self, name: str, existing_url: str, new_url: str):
        self.name = name
        self.existing_url = existing_url
        self.new_url = new_url
        super().__init__(
            f"Step {name} is already registered at {existing_url}; "
            f"pass an explicit path to also persist it at {new_url}"
        )


class DuplicateNameError(MemopipeError, ValueError):
    """Raised when a step declares the same name as a parameter and a dependency."""
    code = PipelineErrorCode.DUPLICATE_NAME

    def __init__(self, names: Iterable[str]):
        self.names = sorted(names)
        super().__init__(f"Names declared as both parameter and dependency: {self.names}")


class CanonicalizationError(MemopipeError, ValueError):
    """Raised when a parameter value cannot be canonically encoded."""
    code = PipelineErrorCode.UNHASHABLE_PARAMETER


class ArtifactReadError(MemopipeError):
    """Raised when an existing artifact cannot be read or decoded.

    A present-but-unreadable artifact is never treated as a cache miss.
    """
    code = PipelineErrorCode.ARTIFACT_READ_ERROR

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Unable to read artifact {url}: {reason}")


class UnsupportedUrlError(MemopipeError, ValueError):
    """Raised when no artifact handler is registered for a URL scheme."""
    code = PipelineErrorCode.UNSUPPORTED_URL

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No artifact handler for URL: {url}")


class ConfigLoadError(MemopipeError, ValueError):
    """Raised when a pipeline configuration cannot be loaded."""
    code = PipelineErrorCode.CONFIG_LOAD_ERROR


class StepFailedError(MemopipeError):
    """Raised by single-step runs when the step produced no value."""
    code = PipelineErrorCode.STEP_FAILED

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Step {name} failed; see the log for the underlying error")
