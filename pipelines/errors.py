"""Error taxonomy shared by the session, collector, inference and pipeline layers."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class SessionErrorKind(str, Enum):
    LAUNCH_FAILED = "LaunchFailed"
    AUTH_FAILED = "AuthFailed"
    EXECUTABLE_NOT_FOUND = "ExecutableNotFound"


class CollectionErrorKind(str, Enum):
    NAVIGATION_TIMEOUT = "NavigationTimeout"
    NAVIGATION_FAILED = "NavigationFailed"
    NO_RESULTS_FOUND = "NoResultsFound"


class InferenceErrorKind(str, Enum):
    TRANSPORT_ERROR = "TransportError"
    EMPTY_RESPONSE = "EmptyResponse"
    MALFORMED_JSON = "MalformedJSON"


class TweetLensError(Exception):
    """Base class. `kind` names the failure, `detail` carries diagnostics."""

    def __init__(self, kind: Enum, message: str, detail: Any = None):
        super().__init__(f"{kind.value}: {message}")
        self.kind = kind
        self.message = message
        self.detail = detail


class SessionError(TweetLensError):
    pass


class CollectionError(TweetLensError):
    pass


class InferenceError(TweetLensError):
    pass


class PipelineError(Exception):
    """Raised by the orchestrator; `cause` is the stage error, unchanged."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"pipeline failed during {stage}: {cause}")
        self.stage = stage
        self.cause = cause

    @property
    def kind(self) -> Optional[Enum]:
        return getattr(self.cause, "kind", None)


__all__ = [
    "SessionErrorKind",
    "CollectionErrorKind",
    "InferenceErrorKind",
    "TweetLensError",
    "SessionError",
    "CollectionError",
    "InferenceError",
    "PipelineError",
]
