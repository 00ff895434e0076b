import logging
from fastapi import status
from fastapi.responses import JSONResponse
from fastapi.requests import Request

logger = logging.getLogger(__name__)

# ---------------------------
# CRUD (Database abstraction)
# ---------------------------

class DatabaseError(Exception):
    """Base class for all database-related errors."""
    pass

class DatabaseConflictError(DatabaseError):
    """Raised when a database constraint is violated (e.g., unique key)."""
    pass

# ---------------------------
# Service (Business logic)
# ---------------------------

class BusinessError(Exception):
    """Base class for all business logic errors."""
    code = "error"
    default_detail = "Request failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

class UnavailableError(BusinessError):
    """Raised when the store or a collaborator cannot be reached. Safe to retry."""
    code = "unavailable"
    default_detail = "Service temporarily unavailable"

class NotFoundError(BusinessError):
    """Raised when a requested resource does not exist."""
    code = "not_found"
    default_detail = "Resource not found"

class ChallengeNotFoundError(NotFoundError):
    default_detail = "Challenge not found"

class TaskNotFoundError(NotFoundError):
    code = "task_not_found"
    default_detail = "Task not found"

class ConflictError(BusinessError):
    """Raised when a resource already exists or conflicts with another resource."""
    code = "conflict"
    default_detail = "Conflict"

class AlreadyJoinedError(ConflictError):
    code = "already_joined"
    default_detail = "You have already joined this challenge"

class AlreadyCompletedTodayError(ConflictError):
    code = "already_completed_today"
    default_detail = "Task already completed for this date"

class ChallengeEndedError(ConflictError):
    code = "challenge_ended"
    default_detail = "Challenge has ended"

class ChallengeNotActiveError(ConflictError):
    code = "challenge_not_active"
    default_detail = "Challenge has not started yet"

class TaskNotScheduledError(ConflictError):
    code = "task_not_scheduled"
    default_detail = "Task is not scheduled for this date"

class ForbiddenError(BusinessError):
    """Raised when a user does not have permission to perform an action."""
    code = "forbidden"
    default_detail = "Permission denied"

class NotAParticipantError(ForbiddenError):
    code = "not_a_participant"
    default_detail = "Join the challenge before completing its tasks"

class ValidationError(BusinessError):
    """Raised when business rule validation fails (e.g., invalid input)."""
    code = "validation_error"
    default_detail = "Validation failed"

class InvalidSpecError(ValidationError):
    code = "invalid_spec"
    default_detail = "Invalid specification"


# ---------------------------
# FastAPI Exception Handlers
# ---------------------------

def _error_response(status_code: int, exc: BusinessError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


def register_exception_handlers(app):
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError):
        # Expected under retries, not a system error
        logger.info(f"{exc.code} on {request.url.path}")
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError):
        return _error_response(status.HTTP_403_FORBIDDEN, exc)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)

    @app.exception_handler(UnavailableError)
    async def unavailable_handler(request: Request, exc: UnavailableError):
        logger.warning(f"Unavailable: {exc.detail}")
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError):
        logger.error(f"Unhandled business error: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "code": exc.code},
        )
