"""
Data models for servers, resource telemetry and directory listings.

All models are immutable; a new value replaces the old one wholesale so a
snapshot handed to a renderer can never change underneath it.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from .paths import ROOT, normalize


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the panel, tolerating a trailing Z."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Limits:
    """Resource limits of a server. A value of 0 means unlimited."""

    cpu: int = 0
    memory: int = 0
    disk: int = 0

    def __post_init__(self):
        """Validate limits after initialization."""
        for name in ("cpu", "memory", "disk"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} limit must be non-negative")

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "Limits":
        return cls(
            cpu=int(data.get("cpu") or 0),
            memory=int(data.get("memory") or 0),
            disk=int(data.get("disk") or 0),
        )


@dataclass(frozen=True)
class Allocation:
    """A network allocation (ip:port) assigned to a server."""

    ip: str
    port: int
    alias: Optional[str] = None
    is_default: bool = False

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "Allocation":
        return cls(
            ip=data.get("ip", ""),
            port=int(data.get("port", 0)),
            alias=data.get("ip_alias") or data.get("alias"),
            is_default=bool(data.get("is_default", False)),
        )

    @property
    def display_name(self) -> str:
        return f"{self.alias or self.ip}:{self.port}"


@dataclass(frozen=True)
class Instance:
    """A managed server as loaded from the panel."""

    id: str
    uuid: str
    name: str
    limits: Limits = field(default_factory=Limits)
    allocations: Tuple[Allocation, ...] = ()
    is_installing: bool = False
    is_suspended: bool = False

    def __post_init__(self):
        """Validate instance after initialization."""
        if not self.uuid:
            raise ValueError("Instance uuid cannot be empty")

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "Instance":
        """
        Create an Instance from a panel server object.

        Accepts either the full ``{"object": "server", "attributes": {...}}``
        envelope or the bare attributes.
        """
        attributes = data.get("attributes", data)
        relationships = attributes.get("relationships", {}) or {}
        allocation_data = (relationships.get("allocations") or {}).get("data", [])

        return cls(
            id=attributes.get("identifier") or attributes.get("id") or "",
            uuid=attributes.get("uuid", ""),
            name=attributes.get("name", ""),
            limits=Limits.from_api_response(attributes.get("limits", {}) or {}),
            allocations=tuple(
                Allocation.from_api_response(item.get("attributes", item))
                for item in allocation_data
            ),
            is_installing=bool(attributes.get("is_installing", False)),
            is_suspended=bool(attributes.get("is_suspended", False)),
        )

    @property
    def default_allocations(self) -> List[Allocation]:
        return [allocation for allocation in self.allocations if allocation.is_default]


@dataclass(frozen=True)
class TelemetrySample:
    """One resource usage reading; replaced as a whole by the next one."""

    cpu_usage_percent: float
    memory_usage_in_bytes: int
    disk_usage_in_bytes: int

    def __post_init__(self):
        """Validate sample after initialization."""
        if self.cpu_usage_percent < 0:
            raise ValueError("cpu_usage_percent must be non-negative")
        if self.memory_usage_in_bytes < 0:
            raise ValueError("memory_usage_in_bytes must be non-negative")
        if self.disk_usage_in_bytes < 0:
            raise ValueError("disk_usage_in_bytes must be non-negative")

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "TelemetrySample":
        attributes = data.get("attributes", data)
        resources = attributes.get("resources", {}) or {}
        return cls(
            cpu_usage_percent=float(resources.get("cpu_absolute") or 0.0),
            memory_usage_in_bytes=int(resources.get("memory_bytes") or 0),
            disk_usage_in_bytes=int(resources.get("disk_bytes") or 0),
        )


@dataclass(frozen=True)
class AlarmState:
    """Which metrics are within 10% of their configured limit."""

    cpu: bool = False
    memory: bool = False
    disk: bool = False

    @property
    def any(self) -> bool:
        return self.cpu or self.memory or self.disk

    def to_dict(self) -> Dict[str, bool]:
        return {"cpu": self.cpu, "memory": self.memory, "disk": self.disk}


@dataclass(frozen=True)
class DirectoryEntry:
    """
    A file or directory inside a listing.

    The panel does not hand out identifiers for files, so each listed object
    gets a client-side uuid. Identity inside a listing is the uuid.
    """

    uuid: str
    name: str
    is_file: bool = True
    size: int = 0
    modified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    mode: str = ""
    mimetype: str = ""
    is_symlink: bool = False
    is_editable: bool = False

    def __post_init__(self):
        """Validate entry after initialization."""
        if not self.uuid:
            raise ValueError("Entry uuid cannot be empty")
        if not self.name:
            raise ValueError("Entry name cannot be empty")

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> "DirectoryEntry":
        """Create a DirectoryEntry from a panel ``file_object``."""
        attributes = data.get("attributes", data)
        return cls(
            uuid=attributes.get("uuid") or str(uuid4()),
            name=attributes.get("name", ""),
            is_file=bool(attributes.get("is_file", True)),
            size=int(attributes.get("size") or 0),
            modified_at=_parse_timestamp(attributes.get("modified_at")),
            created_at=_parse_timestamp(attributes.get("created_at")),
            mode=attributes.get("mode", "") or "",
            mimetype=attributes.get("mimetype", "") or "",
            is_symlink=bool(attributes.get("is_symlink", False)),
            is_editable=bool(attributes.get("is_editable", False)),
        )

    @property
    def is_directory(self) -> bool:
        return not self.is_file

    def renamed(self, name: str) -> "DirectoryEntry":
        """Return a copy of this entry under a new name, keeping its identity."""
        return replace(self, name=name)


@dataclass(frozen=True)
class DirectoryState:
    """The current directory and its entries, in server order."""

    path: str = ROOT
    entries: Tuple[DirectoryEntry, ...] = ()

    def __post_init__(self):
        """Keep the path canonical and the entries immutable."""
        object.__setattr__(self, "path", normalize(self.path))
        object.__setattr__(self, "entries", tuple(self.entries))

    def find(self, uuid: str) -> Optional[DirectoryEntry]:
        for entry in self.entries:
            if entry.uuid == uuid:
                return entry
        return None

    def __len__(self) -> int:
        return len(self.entries)
