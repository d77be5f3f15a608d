"""MultiBuild error handling.

Custom exceptions and error codes for the build planning workflow.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors (1xxx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    OUT_OF_RANGE = "OUT_OF_RANGE"

    # Calculation Errors (2xxx)
    NO_CALCULATION_RULES = "NO_CALCULATION_RULES"
    MATERIAL_NOT_FOUND = "MATERIAL_NOT_FOUND"

    # Planning Errors (3xxx)
    PLANNING_FAILED = "PLANNING_FAILED"
    MISSING_PARSED_REQUEST = "MISSING_PARSED_REQUEST"
    MISSING_BLUEPRINT = "MISSING_BLUEPRINT"

    # Workflow Errors (4xxx)
    WORKFLOW_ERROR = "WORKFLOW_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"

    # Session Errors (5xxx)
    SESSION_STORE_ERROR = "SESSION_STORE_ERROR"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_CORRUPT = "SESSION_CORRUPT"

    # LLM Errors (6xxx)
    LLM_ERROR = "LLM_ERROR"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"
    LLM_AUTH_ERROR = "LLM_AUTH_ERROR"
    LLM_NETWORK_ERROR = "LLM_NETWORK_ERROR"
    LLM_NOT_CONFIGURED = "LLM_NOT_CONFIGURED"


class ErrorCategory:
    """Coarse categories used to tag apology messages in the chat."""

    NETWORK = "network"
    CREDENTIAL = "credential"
    OTHER = "other"


class MultiBuildError(Exception):
    """Base exception for MultiBuild errors.

    Provides structured error information for API responses.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class ValidationError(MultiBuildError):
    """User input out of bounds. The only error surfaced as a 4xx."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )
        self.field = field


class CalculationRulesError(MultiBuildError):
    """Raised when a build type has no calculation rules."""

    def __init__(self, build_type: str, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.NO_CALCULATION_RULES,
            message=f"No calculation rules found for build type: {build_type}",
            details={**(details or {}), "build_type": build_type}
        )
        self.build_type = build_type


class PlanningError(MultiBuildError):
    """Blueprint could not be produced."""

    def __init__(self, message: str, build_type: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.PLANNING_FAILED,
            message=message,
            details={**(details or {}), "build_type": build_type}
        )
        self.build_type = build_type


class AdvisoryError(MultiBuildError):
    """Remote AI advisory call failed or is not configured."""

    def __init__(self, code: str, message: str, details: Optional[Dict] = None):
        super().__init__(code=code, message=message, details=details)


class WorkflowError(MultiBuildError):
    """Workflow engine precondition failed."""

    def __init__(self, code: str, message: str, phase: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "phase": phase}
        )
        self.phase = phase


class SessionStoreError(MultiBuildError):
    """Session persistence failed."""

    def __init__(
        self,
        message: str,
        session_id: Optional[str] = None,
        code: str = ErrorCode.SESSION_STORE_ERROR,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            details={**(details or {}), "session_id": session_id}
        )
        self.session_id = session_id


class SessionNotFoundError(SessionStoreError):
    """No state stored under the requested session id."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session not found: {session_id}",
            session_id=session_id,
            code=ErrorCode.SESSION_NOT_FOUND
        )


class SessionCorruptError(SessionStoreError):
    """Stored state exists but cannot be decoded into a WorkflowState."""

    def __init__(self, session_id: str, reason: str):
        super().__init__(
            message=f"Session {session_id} could not be decoded: {reason}",
            session_id=session_id,
            code=ErrorCode.SESSION_CORRUPT,
            details={"reason": reason}
        )


_CREDENTIAL_CODES = {ErrorCode.LLM_AUTH_ERROR, ErrorCode.LLM_NOT_CONFIGURED}
_NETWORK_CODES = {ErrorCode.LLM_NETWORK_ERROR, ErrorCode.LLM_RATE_LIMIT}
_CREDENTIAL_MARKERS = ("api key", "api_key", "unauthorized", "401", "403", "authentication", "credential")
_NETWORK_MARKERS = ("network", "fetch", "timeout", "timed out", "connection", "unreachable", "dns")


def classify_error(error: BaseException) -> str:
    """Map an exception onto the coarse chat error category.

    Returns one of ErrorCategory.NETWORK, ErrorCategory.CREDENTIAL or
    ErrorCategory.OTHER.
    """
    code = getattr(error, "code", None)
    if code in _CREDENTIAL_CODES:
        return ErrorCategory.CREDENTIAL
    if code in _NETWORK_CODES:
        return ErrorCategory.NETWORK
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK

    text = str(error).lower()
    if any(marker in text for marker in _CREDENTIAL_MARKERS):
        return ErrorCategory.CREDENTIAL
    if any(marker in text for marker in _NETWORK_MARKERS):
        return ErrorCategory.NETWORK
    return ErrorCategory.OTHER
