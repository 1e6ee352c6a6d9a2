"""Domain layer: entities, identifiers and errors. No dependencies on outer layers."""

from wagroups.domain.entities import Contact, Group, GroupMember
from wagroups.domain.errors import (
    Conflict,
    DirectoryError,
    NotFound,
    StoreError,
    ValidationError,
    WaGroupsError,
)
from wagroups.domain.identifiers import (
    Normalized,
    Rejected,
    RejectionReason,
    bare_identifier,
    normalize,
)

__all__ = [
    "Conflict",
    "Contact",
    "DirectoryError",
    "Group",
    "GroupMember",
    "Normalized",
    "NotFound",
    "Rejected",
    "RejectionReason",
    "StoreError",
    "ValidationError",
    "WaGroupsError",
    "bare_identifier",
    "normalize",
]
