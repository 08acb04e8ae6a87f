"""
Per-server session handle.

The monitor, the directory store and the file actions all receive a
ServerContext at construction instead of reaching into shared global state.
"""

from dataclasses import dataclass, field
from typing import FrozenSet

from .models import Instance
from .panel_client import PanelClient
from .permissions import FileAction, allowed_actions, has_permission, required_permission


@dataclass
class ServerContext:
    """The server being viewed, the client to reach it and the user's permissions."""

    instance: Instance
    client: PanelClient
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        self.permissions = frozenset(self.permissions)

    @property
    def server_uuid(self) -> str:
        return self.instance.uuid

    def capability_allowed(self, permission: str) -> bool:
        """Synchronous policy check for a single permission name."""
        return has_permission(self.permissions, permission)

    def action_allowed(self, action: FileAction) -> bool:
        permission = required_permission(action)
        return permission is None or self.capability_allowed(permission)

    def allowed_actions(self) -> FrozenSet[FileAction]:
        return allowed_actions(self.permissions)
