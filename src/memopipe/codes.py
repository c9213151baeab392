"""Error code constants for memopipe errors.

These constants prevent stringly-typed error codes and let client code
branch on the kind of failure without parsing messages.
"""

from enum import Enum


class PipelineErrorCode(str, Enum):
    """Error codes carried by every MemopipeError."""

    # Validation errors (raised before any step runs)
    UNKNOWN_STEP = "UNKNOWN_STEP"
    AMBIGUOUS_STEP = "AMBIGUOUS_STEP"
    NON_PERSISTED_TARGET = "NON_PERSISTED_TARGET"
    MISSING_UPSTREAM = "MISSING_UPSTREAM"
    DUPLICATE_NAME = "DUPLICATE_NAME"
    DUPLICATE_TARGET = "DUPLICATE_TARGET"

    # Signature errors
    UNHASHABLE_PARAMETER = "UNHASHABLE_PARAMETER"

    # Storage errors
    ARTIFACT_READ_ERROR = "ARTIFACT_READ_ERROR"
    UNSUPPORTED_URL = "UNSUPPORTED_URL"

    # Configuration errors
    CONFIG_LOAD_ERROR = "CONFIG_LOAD_ERROR"

    # Execution errors
    STEP_FAILED = "STEP_FAILED"
