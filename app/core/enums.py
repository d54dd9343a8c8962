from enum import Enum


class UserRole(str, Enum):
    STAFF = "staff"
    HOD = "hod"
    DEAN = "dean"
    ADMIN = "admin"


class LeaveStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class LeaveAuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


# Any role other than plain staff may approve or reject.
PRIVILEGED_ROLES = frozenset({UserRole.HOD.value, UserRole.DEAN.value, UserRole.ADMIN.value})


def is_privileged(role: str) -> bool:
    return role in PRIVILEGED_ROLES
