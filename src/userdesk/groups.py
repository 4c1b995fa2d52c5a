"""User groups and the permission profile each one grants.

Every group id, including ``None`` and ids that are not defined below, maps to
exactly one :class:`Capabilities` row. Unknown ids fall back to the
unassigned row, which grants nothing.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional

TRUE = "true"
FALSE = "false"
SELF = "self"

CAN_CREATE = "CanCreate"
CAN_EDIT = "CanEdit"
CAN_DELETE = "CanDelete"
CAN_VIEW = "CanView"

CAPABILITY_NAMES = (CAN_CREATE, CAN_EDIT, CAN_DELETE, CAN_VIEW)


class UserGroup(IntEnum):
    ADMIN = 1
    EDITOR = 2
    REGULAR_USER = 3
    VIEW_ONLY = 4


@dataclass(frozen=True)
class Capabilities:
    """The four permission claims carried in a session token."""

    can_create: str
    can_edit: str
    can_delete: str
    can_view: str

    def as_claims(self) -> Dict[str, str]:
        return {
            CAN_CREATE: self.can_create,
            CAN_EDIT: self.can_edit,
            CAN_DELETE: self.can_delete,
            CAN_VIEW: self.can_view,
        }


UNASSIGNED_CAPABILITIES = Capabilities(FALSE, FALSE, FALSE, FALSE)

GROUP_CAPABILITIES: Dict[UserGroup, Capabilities] = {
    UserGroup.ADMIN: Capabilities(TRUE, TRUE, TRUE, TRUE),
    UserGroup.EDITOR: Capabilities(TRUE, TRUE, FALSE, TRUE),
    UserGroup.REGULAR_USER: Capabilities(FALSE, SELF, FALSE, TRUE),
    UserGroup.VIEW_ONLY: Capabilities(FALSE, SELF, FALSE, TRUE),
}

GROUP_NAMES: Dict[UserGroup, str] = {
    UserGroup.ADMIN: "Admin",
    UserGroup.EDITOR: "Editor",
    UserGroup.REGULAR_USER: "Regular User",
    UserGroup.VIEW_ONLY: "View Only",
}

# Role label stored in the token's "role" claim.
GROUP_ROLES: Dict[UserGroup, str] = {
    UserGroup.ADMIN: "Admin",
    UserGroup.EDITOR: "Editor",
    UserGroup.REGULAR_USER: "User",
    UserGroup.VIEW_ONLY: "Viewer",
}

GROUP_PERMISSION_SUMMARIES: Dict[UserGroup, str] = {
    UserGroup.ADMIN: "Full Access (Create, Edit, Delete, View)",
    UserGroup.EDITOR: "Create, Edit, View",
    UserGroup.REGULAR_USER: "Edit Own Profile, View",
    UserGroup.VIEW_ONLY: "View Only",
}

UNASSIGNED = "Unassigned"


def resolve_group(group_id: Optional[int]) -> Optional[UserGroup]:
    """Return the matching group, or ``None`` for unassigned/unknown ids."""
    if group_id is None:
        return None
    try:
        return UserGroup(group_id)
    except ValueError:
        return None


def capabilities_for(group_id: Optional[int]) -> Capabilities:
    group = resolve_group(group_id)
    if group is None:
        return UNASSIGNED_CAPABILITIES
    return GROUP_CAPABILITIES[group]


def group_name(group_id: Optional[int]) -> str:
    group = resolve_group(group_id)
    return GROUP_NAMES[group] if group is not None else UNASSIGNED


def role_name(group_id: Optional[int]) -> str:
    group = resolve_group(group_id)
    return GROUP_ROLES[group] if group is not None else UNASSIGNED


def permission_summary(group_id: Optional[int]) -> str:
    group = resolve_group(group_id)
    return GROUP_PERMISSION_SUMMARIES[group] if group is not None else "No Access"
