# medrec/core/permissions.py

"""
Permission matrix and ownership rules.

Both tables are built once at import time and frozen. Handlers never check
roles themselves; they declare a (resource, action) pair and let
`medrec.core.rbac` decide.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, FrozenSet, Mapping, Optional, Tuple

from medrec.models.user import UserRole

Role = UserRole

ALL_ROLES: FrozenSet[Role] = frozenset(UserRole)


def _roles(*names: str) -> FrozenSet[Role]:
    return frozenset(UserRole(n) for n in names)


# ==========================================================
# ROLE -> PERMISSION MATRIX
# ==========================================================
_MATRIX = {
    # Patient Registration
    "patient": {
        "create": _roles("admin", "records_staff", "clinician"),
        "read": _roles(
            "admin", "records_staff", "clinician", "lab_tech", "radiographer", "data_manager"
        ),
        "update": _roles("admin", "records_staff", "clinician"),
        "delete": _roles("admin"),
    },
    # Encounters
    "encounter": {
        "create": _roles("admin", "records_staff", "clinician"),
        "read": _roles("admin", "records_staff", "clinician", "lab_tech", "radiographer"),
        "update": _roles("admin", "clinician"),
        "delete": _roles("admin"),
        "close": _roles("admin", "clinician"),
    },
    # Clinical Notes
    "clinicalNote": {
        "create": _roles("admin", "clinician"),
        "read": _roles("admin", "clinician"),
        "update": _roles("admin", "clinician"),
        "delete": _roles("admin"),
    },
    # Lab Orders & Results
    "labOrder": {
        "create": _roles("admin", "clinician"),
        "read": _roles("admin", "clinician", "lab_tech"),
        "update": _roles("admin", "lab_tech"),
        "delete": _roles("admin"),
        "close": _roles("admin", "clinician"),
    },
    # Radiology Orders & Results
    "radiologyOrder": {
        "create": _roles("admin", "clinician"),
        "read": _roles("admin", "clinician", "radiographer"),
        "update": _roles("admin", "radiographer"),
        "delete": _roles("admin"),
        "close": _roles("admin", "clinician"),
    },
    # Records / Files
    "record": {
        "create": _roles("admin", "records_staff"),
        "read": _roles("admin", "records_staff", "clinician"),
        "update": _roles("admin", "records_staff"),
        "delete": _roles("admin"),
    },
    # KPIs / Dashboard
    "kpi": {
        "read": ALL_ROLES,
    },
    # Data Quality
    "dataQuality": {
        "create": _roles("admin", "data_manager"),
        "read": _roles("admin", "data_manager"),
        "update": _roles("admin", "data_manager"),
        "delete": _roles("admin"),
    },
    # Issues assigned to the caller
    "assignedIssue": {
        "read": ALL_ROLES,
    },
    # Departments
    "department": {
        "create": _roles("admin"),
        "read": ALL_ROLES,
        "update": _roles("admin"),
        "delete": _roles("admin"),
    },
    # User Management
    "user": {
        "create": _roles("admin"),
        "read": _roles("admin"),
        "update": _roles("admin"),
        "delete": _roles("admin"),
    },
    # Own account (profile, password)
    "profile": {
        "read": ALL_ROLES,
        "update": ALL_ROLES,
    },
    # Internal messaging
    "message": {
        "create": ALL_ROLES,
        "read": ALL_ROLES,
        "update": ALL_ROLES,
        "delete": ALL_ROLES,
    },
    # Audit trail
    "auditLog": {
        "read": _roles("admin"),
    },
    # Infrastructure stats (Redis, rate limit windows)
    "system": {
        "read": _roles("admin"),
    },
}


class PermissionMatrix:
    """Read-only (resource, action) -> allowed roles lookup."""

    def __init__(self, rules: Mapping[str, Mapping[str, FrozenSet[Role]]]):
        self._rules = MappingProxyType({
            resource: MappingProxyType({a: frozenset(r) for a, r in actions.items()})
            for resource, actions in rules.items()
        })

    def allowed_roles(self, resource: str, action: str) -> Optional[FrozenSet[Role]]:
        """Return the allowed roles, or None when the pair is not configured."""
        actions = self._rules.get(resource)
        if actions is None:
            return None
        return actions.get(action)

    def pairs(self) -> Tuple[Tuple[str, str], ...]:
        return tuple(
            (resource, action)
            for resource, actions in self._rules.items()
            for action in actions
        )

    def __contains__(self, pair: Tuple[str, str]) -> bool:
        return self.allowed_roles(*pair) is not None


# ==========================================================
# OWNERSHIP RULES
# ==========================================================
class OwnershipPolicy(str, Enum):
    # Role decides alone
    NONE = "none"
    # Owner may act even when the role is not in the allowed set
    OVERRIDE = "override"
    # Non-admin roles in the allowed set must also own the instance
    REQUIRED = "required"


# (principal_id, context) -> bool
OwnershipPredicate = Callable[[Any, Mapping[str, Any]], bool]


def owner_id_matches(principal_id, context: Mapping[str, Any]) -> bool:
    owner_id = context.get("owner_id")
    return owner_id is not None and str(owner_id) == str(principal_id)


def is_participant(principal_id, context: Mapping[str, Any]) -> bool:
    participants = context.get("participant_ids") or ()
    return str(principal_id) in {str(p) for p in participants}


@dataclass(frozen=True)
class OwnershipRule:
    policy: OwnershipPolicy
    predicate: OwnershipPredicate = field(default=owner_id_matches)


_OWNERSHIP = {
    ("clinicalNote", "update"): OwnershipRule(OwnershipPolicy.REQUIRED),
    ("labOrder", "close"): OwnershipRule(OwnershipPolicy.REQUIRED),
    ("radiologyOrder", "close"): OwnershipRule(OwnershipPolicy.REQUIRED),
    ("profile", "read"): OwnershipRule(OwnershipPolicy.REQUIRED),
    ("profile", "update"): OwnershipRule(OwnershipPolicy.REQUIRED),
    ("message", "read"): OwnershipRule(OwnershipPolicy.REQUIRED, is_participant),
    ("message", "update"): OwnershipRule(OwnershipPolicy.REQUIRED),
    ("message", "delete"): OwnershipRule(OwnershipPolicy.REQUIRED, is_participant),
    ("assignedIssue", "read"): OwnershipRule(OwnershipPolicy.REQUIRED),
}

NO_OWNERSHIP = OwnershipRule(OwnershipPolicy.NONE)


class OwnershipRules:
    def __init__(self, rules: Mapping[Tuple[str, str], OwnershipRule]):
        self._rules = MappingProxyType(dict(rules))

    def rule_for(self, resource: str, action: str) -> OwnershipRule:
        return self._rules.get((resource, action), NO_OWNERSHIP)

    def items(self):
        return self._rules.items()


PERMISSION_MATRIX = PermissionMatrix(_MATRIX)
OWNERSHIP_RULES = OwnershipRules(_OWNERSHIP)


def allowed_roles(resource: str, action: str) -> Optional[FrozenSet[Role]]:
    return PERMISSION_MATRIX.allowed_roles(resource, action)
