"""
Data Model

Routers discovered by scans, their OSPF neighbor tables, and scan jobs.
"""

import uuid
from datetime import datetime, timezone
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

# Device status values
DEVICE_UNKNOWN = "unknown"
DEVICE_ONLINE = "online"
DEVICE_OFFLINE = "offline"
DEVICE_SCANNING = "scanning"
DEVICE_ERROR = "error"
DEVICE_STATUSES = (DEVICE_UNKNOWN, DEVICE_ONLINE, DEVICE_OFFLINE, DEVICE_SCANNING, DEVICE_ERROR)

# Scan job status values, in lifecycle order
SCAN_PENDING = "pending"
SCAN_SCANNING = "scanning"
SCAN_COMPLETED = "completed"
SCAN_ERROR = "error"

SCAN_TRANSITIONS = {
    SCAN_PENDING: (SCAN_SCANNING, SCAN_ERROR),
    SCAN_SCANNING: (SCAN_COMPLETED, SCAN_ERROR),
    SCAN_COMPLETED: (),
    SCAN_ERROR: (),
}


class ScanStateError(Exception):
    """Raised on a scan job status change that would move backwards."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class NeighborRecord:
    """One row of a router's OSPF neighbor table."""
    neighbor_id: str = ""
    neighbor_ip: str = ""
    cost: int = 0
    state: str = "unknown"
    priority: int = 0
    dead_time: str = ""
    address: str = ""
    interface: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Device:
    """A discovered router, keyed by management IP."""
    ip: str
    id: str = field(default_factory=new_id)
    hostname: Optional[str] = None
    identity: Optional[str] = None
    version: Optional[str] = None
    model: Optional[str] = None
    status: str = DEVICE_UNKNOWN
    last_seen: datetime = field(default_factory=utcnow)
    neighbors: List[NeighborRecord] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.identity or self.hostname or self.ip

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ip": self.ip,
            "hostname": self.hostname,
            "identity": self.identity,
            "version": self.version,
            "model": self.model,
            "status": self.status,
            "last_seen": _isoformat(self.last_seen),
            "neighbors": [n.to_dict() for n in self.neighbors],
        }


@dataclass
class ScanResults:
    """Snapshot stored on a scan job when it completes."""
    device_ids: List[str] = field(default_factory=list)
    asymmetric_routes: List[Any] = field(default_factory=list)
    topology: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_ids": list(self.device_ids),
            "asymmetric_routes": [r.to_dict() for r in self.asymmetric_routes],
            "topology": self.topology.to_dict() if self.topology is not None else None,
        }


@dataclass
class ScanJob:
    """One discovery run over a subnet."""
    subnet: str
    id: str = field(default_factory=new_id)
    status: str = SCAN_PENDING
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    routers_found: int = 0
    asymmetries_found: int = 0
    results: Optional[ScanResults] = None
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in (SCAN_COMPLETED, SCAN_ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "subnet": self.subnet,
            "status": self.status,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "routers_found": self.routers_found,
            "asymmetries_found": self.asymmetries_found,
            "results": self.results.to_dict() if self.results is not None else None,
            "error": self.error,
        }


def check_transition(current: str, new: str) -> None:
    """
    Ensure a scan job status change only moves forward.

    Raises:
        ScanStateError: If the change is not allowed
    """
    if current == new:
        return
    if new not in SCAN_TRANSITIONS.get(current, ()):
        raise ScanStateError(f"Invalid scan status change: {current} -> {new}")
