"""
Capability checks for file actions.

The panel hands the dashboard a list of permission names for the current
user on a server. Evaluating who gets which permission is the panel's job;
this module only answers "may this action be offered".
"""

from enum import Enum
from typing import FrozenSet, Iterable, Optional

WILDCARD = "*"


class FileAction(Enum):
    """File operations reachable from an entry menu."""

    RENAME = "rename"
    MOVE = "move"
    COPY = "copy"
    DOWNLOAD = "download"
    DELETE = "delete"


# Download is not gated on the client.
ACTION_PERMISSIONS = {
    FileAction.RENAME: "file.update",
    FileAction.MOVE: "file.update",
    FileAction.COPY: "file.create",
    FileAction.DOWNLOAD: None,
    FileAction.DELETE: "file.delete",
}


def has_permission(permissions: Iterable[str], permission: str) -> bool:
    """
    Check whether a permission set grants ``permission``.

    Args:
        permissions: Permission names granted to the user
        permission: The permission name to check, e.g. ``file.delete``

    Returns:
        True on an exact match, on ``*`` or on a matching ``prefix.*`` wildcard.
    """
    granted = set(permissions)

    if permission in granted or WILDCARD in granted:
        return True

    for perm in granted:
        if perm.endswith(".*"):
            prefix = perm[:-2]
            if permission.startswith(prefix + "."):
                return True

    return False


def required_permission(action: FileAction) -> Optional[str]:
    return ACTION_PERMISSIONS[action]


def allowed_actions(permissions: Iterable[str]) -> FrozenSet[FileAction]:
    """Compute the file actions a permission set allows."""
    granted = frozenset(permissions)
    return frozenset(
        action
        for action, permission in ACTION_PERMISSIONS.items()
        if permission is None or has_permission(granted, permission)
    )
