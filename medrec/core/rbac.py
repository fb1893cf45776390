# medrec/core/rbac.py

from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Mapping, Optional, Tuple, Union
from uuid import UUID

from fastapi import Depends, Request
from loguru import logger

from medrec.api.deps import get_current_user
from medrec.core.exceptions import (
    PermissionConfigError,
    PermissionDeniedError,
    UnauthenticatedError,
)
from medrec.core.permissions import (
    OWNERSHIP_RULES,
    PERMISSION_MATRIX,
    OwnershipPolicy,
    OwnershipRules,
    PermissionMatrix,
)
from medrec.models.user import User, UserRole
from medrec.services.audit_service import log_access_denied


@dataclass(frozen=True)
class Principal:
    id: UUID
    role: UserRole
    active: bool

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(id=user.id, role=UserRole(user.role), active=bool(user.is_active))


# ------------------------------------------------------------
# Decisions
# ------------------------------------------------------------
@dataclass(frozen=True)
class Allow:
    via: str = "role"  # "role" | "admin" | "ownership"


@dataclass(frozen=True)
class Deny:
    reason: str
    resource: str
    action: str
    required_roles: Tuple[str, ...] = ()
    actual_role: Optional[str] = None


@dataclass(frozen=True)
class ConfigError:
    resource: str
    action: str
    message: str


Decision = Union[Allow, Deny, ConfigError]

DENY_UNAUTHENTICATED = "unauthenticated"
DENY_INACTIVE = "inactive"
DENY_INSUFFICIENT_ROLE = "insufficient role"
DENY_NOT_OWNER = "not owner"


def _role_names(roles: FrozenSet[UserRole]) -> Tuple[str, ...]:
    return tuple(sorted(r.value for r in roles))


class AuthorizationEngine:
    """
    Pure authorization decisions over an injected matrix and ownership rules.
    Holds no mutable state, so one instance serves every request.
    """

    def __init__(self, matrix: PermissionMatrix, ownership: OwnershipRules):
        self.matrix = matrix
        self.ownership = ownership

    def authorize(
        self,
        principal: Optional[Principal],
        resource: str,
        action: str,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Decision:
        if principal is None:
            return Deny(DENY_UNAUTHENTICATED, resource, action)
        if not principal.active:
            return Deny(DENY_INACTIVE, resource, action, actual_role=principal.role.value)

        allowed = self.matrix.allowed_roles(resource, action)
        if allowed is None:
            return ConfigError(resource, action, f"No permission rule for {resource}.{action}")

        if principal.role == UserRole.Admin:
            return Allow(via="admin")

        rule = self.ownership.rule_for(resource, action)

        if principal.role in allowed:
            if rule.policy != OwnershipPolicy.REQUIRED:
                return Allow(via="role")
            if context is None:
                return ConfigError(
                    resource, action, f"{resource}.{action} requires an ownership context"
                )
            if rule.predicate(principal.id, context):
                return Allow(via="ownership")
            return Deny(
                DENY_NOT_OWNER, resource, action,
                required_roles=_role_names(allowed),
                actual_role=principal.role.value,
            )

        if (
            rule.policy == OwnershipPolicy.OVERRIDE
            and context is not None
            and rule.predicate(principal.id, context)
        ):
            return Allow(via="ownership")

        return Deny(
            DENY_INSUFFICIENT_ROLE, resource, action,
            required_roles=_role_names(allowed),
            actual_role=principal.role.value,
        )


# Built once at process start
authorization_engine = AuthorizationEngine(PERMISSION_MATRIX, OWNERSHIP_RULES)


def get_authorization_engine() -> AuthorizationEngine:
    return authorization_engine


def authorize(
    principal: Optional[Principal],
    resource: str,
    action: str,
    context: Optional[Mapping[str, Any]] = None,
) -> Decision:
    return authorization_engine.authorize(principal, resource, action, context)


def raise_for_decision(decision: Decision) -> None:
    """Translate a non-Allow decision into the matching AppError."""
    if isinstance(decision, Allow):
        return

    if isinstance(decision, ConfigError):
        logger.critical(f"Permission configuration error: {decision.message}")
        raise PermissionConfigError(decision.message)

    if decision.reason == DENY_UNAUTHENTICATED:
        raise UnauthenticatedError("Authentication required", code="UNAUTHENTICATED")
    if decision.reason == DENY_INACTIVE:
        raise UnauthenticatedError(
            "User account is inactive. Please contact administrator.",
            code="ACCOUNT_INACTIVE",
        )

    raise PermissionDeniedError(
        decision.resource,
        decision.action,
        decision.reason,
        required_roles=decision.required_roles,
        your_role=decision.actual_role,
    )


# ------------------------------------------------------------
# FastAPI dependency
# ------------------------------------------------------------
async def no_context() -> None:
    return None


def RequirePermission(
    resource: str,
    action: str,
    context: Optional[Callable[..., Any]] = None,
):
    """
    Route dependency: authorize the current user for (resource, action).

    `context` is an optional dependency returning the ownership context
    (e.g. {"owner_id": note.clinician_id}) for instance-scoped rules.
    On success the principal is stored on request.state for the audit layer.
    """

    async def _enforce(request: Request, principal: Principal, decision: Decision) -> None:
        if isinstance(decision, Deny):
            logger.warning(
                f"Access denied: user={principal.id} role={principal.role.value} "
                f"{resource}.{action} reason='{decision.reason}'"
            )
            await log_access_denied(principal, resource, action, decision.reason, request)

        raise_for_decision(decision)

    # Resolved before the context dependency, which may itself raise (e.g. 404)
    async def active_principal(
        request: Request,
        current_user: User = Depends(get_current_user),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> Principal:
        principal = Principal.from_user(current_user)
        if not principal.active:
            await _enforce(request, principal, engine.authorize(principal, resource, action))
        return principal

    async def permission_checker(
        request: Request,
        principal: Principal = Depends(active_principal),
        current_user: User = Depends(get_current_user),
        ctx: Optional[Mapping[str, Any]] = Depends(context or no_context),
        engine: AuthorizationEngine = Depends(get_authorization_engine),
    ) -> User:
        await _enforce(request, principal, engine.authorize(principal, resource, action, ctx))

        request.state.principal = principal
        return current_user

    permission_checker.permission = (resource, action)
    return permission_checker
