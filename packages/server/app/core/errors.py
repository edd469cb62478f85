"""
Typed domain errors and the handlers that render them.

Every failure raised by the service layer is a ``PrereqError`` subclass with
a stable ``code`` and an HTTP ``status``. The API layer never builds error
bodies by hand; the handlers below render all of them as::

    {"error": {"code": "...", "message": "...", "status": 409}}
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()


class PrereqError(Exception):
    status: int = 400
    code: str = "BAD_REQUEST"

    def __init__(self, message: str, *, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------

class ValidationError(PrereqError):
    """Client-correctable input problem."""
    status = 422
    code = "VALIDATION_ERROR"


class NotFoundError(PrereqError):
    status = 404
    code = "NOT_FOUND"


class ConflictError(PrereqError):
    status = 409
    code = "CONFLICT"


class StructuralError(PrereqError):
    """The change would break a WBS or dependency-graph invariant."""
    status = 422
    code = "STRUCTURAL_ERROR"


class AuthenticationError(PrereqError):
    status = 401
    code = "AUTHENTICATION_REQUIRED"


class PermissionDeniedError(PrereqError):
    status = 403
    code = "PERMISSION_DENIED"


# ---------------------------------------------------------------------------
# Concrete conditions
# ---------------------------------------------------------------------------

class ProjectNotFound(NotFoundError):
    code = "PROJECT_NOT_FOUND"


class TaskNotFound(NotFoundError):
    code = "TASK_NOT_FOUND"


class ParentNotFound(NotFoundError):
    code = "PARENT_NOT_FOUND"


class DependencyNotFound(NotFoundError):
    code = "DEPENDENCY_NOT_FOUND"


class UserNotFound(NotFoundError):
    code = "USER_NOT_FOUND"


class MemberNotFound(NotFoundError):
    code = "MEMBER_NOT_FOUND"


class ResourceTypeNotFound(NotFoundError):
    code = "RESOURCE_TYPE_NOT_FOUND"


class ResourceNotFound(NotFoundError):
    code = "RESOURCE_NOT_FOUND"


class AssignmentNotFound(NotFoundError):
    code = "ASSIGNMENT_NOT_FOUND"


class RootExists(ConflictError):
    code = "ROOT_ALREADY_EXISTS"


class DuplicateDependency(ConflictError):
    code = "DUPLICATE_DEPENDENCY"


class DuplicateActivityId(ConflictError):
    code = "DUPLICATE_ACTIVITY_ID"


class MemberExists(ConflictError):
    code = "MEMBER_ALREADY_EXISTS"


class ResourceTypeExists(ConflictError):
    code = "RESOURCE_TYPE_ALREADY_EXISTS"


class ResourceInUse(ConflictError):
    """A resource type with resources, or a resource with assignments."""
    code = "RESOURCE_IN_USE"


class ResourceAlreadyAssigned(ConflictError):
    code = "RESOURCE_ALREADY_ASSIGNED"


class ReverseDependency(ConflictError):
    code = "IMMEDIATE_CIRCULAR_DEPENDENCY"


class LevelMismatch(StructuralError):
    code = "LEVEL_MISMATCH"


class MaxDepthExceeded(StructuralError):
    code = "MAX_DEPTH_EXCEEDED"


class WbsCycle(StructuralError):
    code = "WBS_CYCLE"


class CircularDependency(StructuralError):
    code = "CIRCULAR_DEPENDENCY"


class TaskHasChildren(StructuralError):
    code = "TASK_HAS_CHILDREN"


class RootTaskProtected(StructuralError):
    code = "ROOT_TASK_PROTECTED"


class SelfLink(ValidationError):
    code = "SELF_LINK"


class CrossProjectDependency(ValidationError):
    code = "CROSS_PROJECT_DEPENDENCY"


class InvalidDateRange(ValidationError):
    code = "INVALID_DATE_RANGE"


class UnsupportedImportFile(ValidationError):
    code = "UNSUPPORTED_IMPORT_FILE"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def error_body(code: str, message: str, status: int, details: Any = None) -> dict:
    body: dict[str, Any] = {"code": code, "message": message, "status": status}
    if details is not None:
        body["details"] = details
    return {"error": body}


async def prereq_error_handler(request: Request, exc: PrereqError) -> JSONResponse:
    log.info(
        "request.rejected",
        code=exc.code,
        status=exc.status,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status,
        content=jsonable_encoder(error_body(exc.code, exc.message, exc.status, exc.details)),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            error_body(
                ValidationError.code,
                "Request validation failed",
                422,
                details=exc.errors(),
            )
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PrereqError, prereq_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
