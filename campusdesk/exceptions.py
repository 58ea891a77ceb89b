"""
Error taxonomy

Validation, not-found and terminal-state errors surface synchronously and
are never retried. Gateway and conflict errors are recoverable.
"""
from typing import Optional


class CampusDeskError(Exception):
    """Base class for all domain errors"""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ============================================================================
# Synchronous caller errors
# ============================================================================

class ValidationError(CampusDeskError):
    """Bad input or an operation not allowed in the ticket's current state"""
    status_code = 400
    code = "validation_error"


class NotFoundError(CampusDeskError):
    status_code = 404
    code = "not_found"


class ForbiddenError(CampusDeskError):
    status_code = 403
    code = "forbidden"


class TerminalStateError(CampusDeskError):
    """The target is in a state from which the requested transition is impossible"""
    status_code = 409
    code = "terminal_state"


class TerminalLevelError(TerminalStateError):
    code = "terminal_level"


class AlreadyRatedError(TerminalStateError):
    code = "already_rated"


# ============================================================================
# Recoverable errors
# ============================================================================

class ConflictError(CampusDeskError):
    status_code = 409
    code = "conflict"


class EscalationConflictError(ConflictError):
    code = "escalation_conflict"


class StorageError(CampusDeskError):
    code = "storage_error"


class DuplicateKeyError(StorageError):
    """A unique constraint rejected the write"""
    status_code = 409
    code = "duplicate_key"


class AIGatewayError(CampusDeskError):
    """The AI service was unreachable or answered with something unusable"""
    status_code = 503
    code = "ai_gateway_error"

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint


class AIGatewayTimeoutError(AIGatewayError):
    code = "ai_gateway_timeout"


class AIGatewayHTTPError(AIGatewayError):
    def __init__(self, message: str, endpoint: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, endpoint)
        self.status = status


class AIGatewayResponseError(AIGatewayError):
    """Malformed JSON or an envelope with success=false"""
