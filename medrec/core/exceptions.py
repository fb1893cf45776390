# medrec/core/exceptions.py

from typing import Any, Dict, Iterable, Optional


class AppError(Exception):
    """
    Base class for errors that map onto a JSON error envelope:
    {"success": false, "message": ..., "code": ..., **extra}
    """

    status_code: int = 500
    code: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.extra = extra or {}

    def to_content(self) -> Dict[str, Any]:
        content: Dict[str, Any] = {"success": False, "message": self.message}
        if self.code:
            content["code"] = self.code
        content.update(self.extra)
        return content


class BadRequestError(AppError):
    status_code = 400
    code = "BAD_REQUEST"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class StateConflictError(ConflictError):
    """Raised when an entity is already in a state that forbids the change."""

    code = "STATE_CONFLICT"

    def __init__(self, message: str, state: str):
        super().__init__(message, extra={"state": state})
        self.state = state


class UnauthenticatedError(AppError):
    status_code = 401

    def __init__(self, message: str = "Authentication required", code: str = "UNAUTHENTICATED"):
        super().__init__(message, code=code)


class PermissionDeniedError(AppError):
    status_code = 403
    code = "PERMISSION_DENIED"

    def __init__(
        self,
        resource: str,
        action: str,
        reason: str,
        required_roles: Iterable[str] = (),
        your_role: Optional[str] = None,
    ):
        super().__init__(
            f"You do not have permission to {action} {resource}",
            extra={
                "resource": resource,
                "action": action,
                "reason": reason,
                "required_roles": sorted(required_roles),
                "your_role": your_role,
            },
        )


class PermissionConfigError(AppError):
    """A (resource, action) pair was exercised that the permission matrix does not define."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, detail: str):
        super().__init__("Internal server error")
        self.detail = detail
