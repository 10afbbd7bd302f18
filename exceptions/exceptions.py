from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    TIMEOUT = "TIMEOUT"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"


class DeformationError(Exception):
    """Base error for a failed comparison: a kind, a message and where it came from."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, context: str = ""):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def code(self) -> str:
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "context": self.context}


class InvalidInputError(DeformationError):
    kind = ErrorKind.INVALID_INPUT


class ConfigurationError(DeformationError):
    kind = ErrorKind.CONFIGURATION_ERROR


class ComparisonTimeoutError(DeformationError):
    kind = ErrorKind.TIMEOUT


class ResourceExhaustedError(DeformationError):
    kind = ErrorKind.RESOURCE_EXHAUSTED
