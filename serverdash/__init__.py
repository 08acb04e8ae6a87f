"""
serverdash

Client-side state for a game server management dashboard: live resource
monitoring with alarm thresholds, and a synchronized view of a server's
files with optimistic updates after file actions.
"""

from .config import Config, MonitorSettings
from .context import ServerContext
from .errors import (
    ActionInProgressError,
    ActionNotPermittedError,
    DashboardError,
    TransportError,
    ValidationError,
    http_error_to_human,
)
from .files import DirectoryStore, FileActionOrchestrator, RenameFlow
from .flash import FlashMessage, FlashStore
from .models import (
    AlarmState,
    Allocation,
    DirectoryEntry,
    DirectoryState,
    Instance,
    Limits,
    TelemetrySample,
)
from .monitor import MonitorSnapshot, MonitorState, ResourceMonitor, compute_alarms
from .panel_client import PanelClient
from .paths import join_path, normalize
from .permissions import FileAction, allowed_actions

__version__ = "0.1.0"

__all__ = [
    "ActionInProgressError",
    "ActionNotPermittedError",
    "AlarmState",
    "Allocation",
    "Config",
    "DashboardError",
    "DirectoryEntry",
    "DirectoryState",
    "DirectoryStore",
    "FileAction",
    "FileActionOrchestrator",
    "FlashMessage",
    "FlashStore",
    "Instance",
    "Limits",
    "MonitorSettings",
    "MonitorSnapshot",
    "MonitorState",
    "PanelClient",
    "RenameFlow",
    "ResourceMonitor",
    "ServerContext",
    "TelemetrySample",
    "TransportError",
    "ValidationError",
    "allowed_actions",
    "compute_alarms",
    "http_error_to_human",
    "join_path",
    "normalize",
]
