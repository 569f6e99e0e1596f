"""
In-Memory Store

Thread-safe storage for devices and scan jobs. Devices are upserted
atomically by IP; every record handed out is a copy.
"""

import copy
import logging
import threading
from typing import Dict, List, Optional

from models import Device, ScanJob, check_transition, utcnow

logger = logging.getLogger(__name__)

DEVICE_FIELDS = ("hostname", "identity", "version", "model", "status", "last_seen", "neighbors")
SCAN_FIELDS = (
    "status", "completed_at", "routers_found", "asymmetries_found", "results", "error",
)


class StoreError(Exception):
    """Raised for unknown fields or missing records."""
    pass


class MemoryStore:
    """Devices and scan jobs held in memory behind a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._devices: Dict[str, Device] = {}
        self._ip_index: Dict[str, str] = {}
        self._scans: Dict[str, ScanJob] = {}

    # Devices

    def get_device(self, device_id: str) -> Optional[Device]:
        with self._lock:
            device = self._devices.get(device_id)
            return copy.deepcopy(device) if device else None

    def get_device_by_ip(self, ip: str) -> Optional[Device]:
        with self._lock:
            device_id = self._ip_index.get(ip)
            if device_id is None:
                return None
            return copy.deepcopy(self._devices[device_id])

    def list_devices(self) -> List[Device]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._devices.values()]

    def upsert_device(self, ip: str, **fields) -> Device:
        """
        Create or update the device with this IP.

        Given fields overwrite the stored ones (the neighbor list is
        replaced, never merged) and last_seen is always refreshed. A new
        device takes its hostname from the identity when none is given.

        Raises:
            StoreError: If an unknown field is passed
        """
        unknown = set(fields) - set(DEVICE_FIELDS)
        if unknown:
            raise StoreError(f"Unknown device fields: {', '.join(sorted(unknown))}")

        fields = copy.deepcopy(fields)
        fields.setdefault("last_seen", utcnow())

        with self._lock:
            device_id = self._ip_index.get(ip)
            if device_id is None:
                if "hostname" not in fields and fields.get("identity"):
                    fields["hostname"] = fields["identity"]
                device = Device(ip=ip, **fields)
                self._devices[device.id] = device
                self._ip_index[ip] = device.id
                logger.debug(f"Created device {device.id} for {ip}")
            else:
                device = self._devices[device_id]
                for name, value in fields.items():
                    setattr(device, name, value)
                logger.debug(f"Updated device {device.id} for {ip}")
            return copy.deepcopy(device)

    def delete_device(self, device_id: str) -> bool:
        with self._lock:
            device = self._devices.pop(device_id, None)
            if device is None:
                return False
            self._ip_index.pop(device.ip, None)
            return True

    # Scan jobs

    def create_scan_job(self, subnet: str) -> ScanJob:
        job = ScanJob(subnet=subnet)
        with self._lock:
            self._scans[job.id] = job
            return copy.deepcopy(job)

    def update_scan_job(self, job_id: str, **fields) -> ScanJob:
        """
        Update a scan job.

        Raises:
            StoreError: If the job does not exist or a field is unknown
            ScanStateError: If the status change would move backwards
        """
        unknown = set(fields) - set(SCAN_FIELDS)
        if unknown:
            raise StoreError(f"Unknown scan job fields: {', '.join(sorted(unknown))}")

        with self._lock:
            job = self._scans.get(job_id)
            if job is None:
                raise StoreError(f"Scan job not found: {job_id}")
            if "status" in fields:
                check_transition(job.status, fields["status"])
            for name, value in copy.deepcopy(fields).items():
                setattr(job, name, value)
            return copy.deepcopy(job)

    def get_scan_job(self, job_id: str) -> Optional[ScanJob]:
        with self._lock:
            job = self._scans.get(job_id)
            return copy.deepcopy(job) if job else None

    def list_scan_jobs(self) -> List[ScanJob]:
        """All scan jobs, newest first."""
        with self._lock:
            jobs = [copy.deepcopy(j) for j in self._scans.values()]
        return sorted(jobs, key=lambda j: j.started_at, reverse=True)

    def recent_scan_jobs(self, limit: int = 10) -> List[ScanJob]:
        return self.list_scan_jobs()[:limit]
