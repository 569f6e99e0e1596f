"""
Scan Orchestrator

Drives a scan job over every address of a subnet:
1. Probe each address in order, publishing progress before each one
2. Fetch system info and OSPF neighbors from reachable routers
3. Upsert the routers into the store
4. Snapshot topology and asymmetric routes when the job completes

A broken tunnel aborts the job with status "error"; an unreachable router
only means that address is skipped.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

from models import (
    Device,
    ScanJob,
    ScanResults,
    DEVICE_OFFLINE,
    DEVICE_ONLINE,
    SCAN_COMPLETED,
    SCAN_ERROR,
    SCAN_PENDING,
    SCAN_SCANNING,
    ScanStateError,
    utcnow,
)
from collector.routeros import RouterOSProbe
from engine.asymmetry import AsymmetricRoute, AsymmetryDetector
from engine.infer import TopologyBuilder, TopologyGraph
from store import MemoryStore
from subnet import MAX_SCAN_ADDRESSES, enumerate_hosts, parse_subnet
from transport import Transport, TunnelUnavailable

from .progress import ProgressEvent, ProgressHub, Subscription

logger = logging.getLogger(__name__)


class ScanNotFound(Exception):
    """Raised when a scan job or device does not exist."""
    pass


class ScanOrchestrator:
    """
    Runs scan jobs and owns their progress channels.

    Each job runs on its own background thread and probes its addresses
    one at a time; several jobs may run at once.
    """

    def __init__(
        self,
        store: MemoryStore,
        transport: Transport,
        credentials,
        hub: Optional[ProgressHub] = None,
        port: int = 22,
        timeout: float = 5,
        max_addresses: int = MAX_SCAN_ADDRESSES,
        probe_factory: Callable[..., RouterOSProbe] = RouterOSProbe,
        builder: Optional[TopologyBuilder] = None,
        detector: Optional[AsymmetryDetector] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Device and scan job store
            transport: Transport used by every probe
            credentials: Credential provider, read once per job
            hub: Progress channel registry (created if omitted)
            port: Router SSH port
            timeout: Per-probe timeout in seconds
            max_addresses: Largest subnet accepted for one job
            probe_factory: Builds a probe from (transport, credentials, port, timeout)
            builder: Topology builder
            detector: Asymmetry detector
        """
        self.store = store
        self.transport = transport
        self.credentials = credentials
        self.hub = hub or ProgressHub()
        self.port = port
        self.timeout = timeout
        self.max_addresses = max_addresses
        self.probe_factory = probe_factory
        self.builder = builder or TopologyBuilder()
        self.detector = detector or AsymmetryDetector()

        self._workers: Dict[str, threading.Thread] = {}
        self._workers_lock = threading.Lock()

    def _new_probe(self) -> RouterOSProbe:
        credentials = self.credentials.get_credentials()
        return self.probe_factory(self.transport, credentials, port=self.port, timeout=self.timeout)

    # Derived views

    def topology(self) -> TopologyGraph:
        return self.builder.build(self.store.list_devices())

    def asymmetric_routes(self) -> List[AsymmetricRoute]:
        return self.detector.detect(self.store.list_devices())

    # Progress

    def subscribe(self, job_id: str) -> Subscription:
        return self.hub.subscribe(job_id)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.hub.unsubscribe(subscription)

    # Jobs

    def create_scan(self, subnet: str) -> ScanJob:
        """
        Validate the subnet and create a pending scan job.

        Raises:
            InvalidSubnet / SubnetTooLarge: Before any job is created
        """
        network = parse_subnet(subnet, self.max_addresses)
        job = self.store.create_scan_job(str(network))
        logger.info(f"Created scan {job.id} for {job.subnet}")
        return job

    def start_scan(self, subnet: str) -> ScanJob:
        """Create a scan job and run it on a background thread."""
        job = self.create_scan(subnet)
        self.launch(job.id)
        return job

    def launch(self, job_id: str) -> None:
        """Run an already created job on a background thread."""
        worker = threading.Thread(
            target=self._run_in_background,
            args=(job_id,),
            name=f"scan-{job_id[:8]}",
            daemon=True,
        )
        with self._workers_lock:
            self._workers[job_id] = worker
        worker.start()

    def _run_in_background(self, job_id: str) -> None:
        try:
            self.run_scan(job_id)
        except Exception as e:
            # Already recorded on the job and in its terminal event
            logger.error(f"Scan {job_id} failed: {e}")
        finally:
            with self._workers_lock:
                self._workers.pop(job_id, None)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[ScanJob]:
        """Block until a background job finishes, then return it."""
        with self._workers_lock:
            worker = self._workers.get(job_id)
        if worker is not None:
            worker.join(timeout)
        return self.store.get_scan_job(job_id)

    def run_scan(self, job_id: str) -> ScanJob:
        """
        Run a pending scan job to completion in the calling thread.

        Returns:
            The completed ScanJob

        Raises:
            ScanNotFound: If the job does not exist
            TunnelUnavailable: If the tunnel broke; the job is left in "error"
        """
        job = self.store.get_scan_job(job_id)
        if job is None:
            raise ScanNotFound(f"Scan job not found: {job_id}")
        if job.status != SCAN_PENDING:
            raise ScanStateError(f"Scan {job_id} already ran (status: {job.status})")

        percent = 0
        found: List[Device] = []

        try:
            job = self.store.update_scan_job(job_id, status=SCAN_SCANNING)
            addresses = enumerate_hosts(job.subnet, self.max_addresses)
            probe = self._new_probe()
            total = len(addresses)
            logger.info(f"Scanning subnet {job.subnet} with {total} IPs")

            for index, ip in enumerate(addresses):
                percent = (index + 1) * 100 // total
                self.hub.publish(job_id, ProgressEvent(
                    percent_complete=percent,
                    status=SCAN_SCANNING,
                    routers_found=len(found),
                    current_address=ip,
                ))

                device = self._scan_address(probe, ip)
                if device is not None:
                    found.append(device)

            routes = self.asymmetric_routes()
            topology = self.topology()
            job = self.store.update_scan_job(
                job_id,
                status=SCAN_COMPLETED,
                completed_at=utcnow(),
                routers_found=len(found),
                asymmetries_found=len(routes),
                results=ScanResults(
                    device_ids=[d.id for d in found],
                    asymmetric_routes=routes,
                    topology=topology,
                ),
            )
        except Exception as e:
            self._fail(job_id, e, percent, len(found))
            raise

        logger.info(
            f"Scan {job_id} completed: {job.routers_found} routers, "
            f"{job.asymmetries_found} asymmetric routes"
        )
        self.hub.publish(job_id, ProgressEvent(
            percent_complete=100,
            status=SCAN_COMPLETED,
            routers_found=job.routers_found,
            asymmetries_found=job.asymmetries_found,
        ))
        self.hub.close(job_id)
        return job

    def _scan_address(self, probe: RouterOSProbe, ip: str) -> Optional[Device]:
        """Probe one address; return the upserted device if it answered."""
        if not probe.probe(ip):
            existing = self.store.get_device_by_ip(ip)
            if existing is not None and existing.status != DEVICE_OFFLINE:
                self.store.upsert_device(ip, status=DEVICE_OFFLINE, last_seen=existing.last_seen)
                logger.info(f"Known router {ip} is offline")
            return None

        info = probe.fetch_system_info(ip)
        neighbors = probe.fetch_neighbors(ip)
        device = self.store.upsert_device(
            ip,
            status=DEVICE_ONLINE,
            identity=info.identity,
            version=info.version,
            model=info.model,
            neighbors=neighbors,
        )
        logger.info(f"Found router {ip} ({device.display_name}) with {len(neighbors)} OSPF neighbors")
        return device

    def _fail(self, job_id: str, error: Exception, percent: int, routers_found: int) -> None:
        reason = str(error) or type(error).__name__
        if isinstance(error, TunnelUnavailable):
            logger.error(f"Scan {job_id} aborted, tunnel unavailable: {reason}")
        else:
            logger.exception(f"Scan {job_id} aborted: {reason}")

        current = self.store.get_scan_job(job_id)
        if current is not None and not current.finished:
            self.store.update_scan_job(
                job_id,
                status=SCAN_ERROR,
                completed_at=utcnow(),
                routers_found=routers_found,
                error=reason,
            )
        self.hub.publish(job_id, ProgressEvent(
            percent_complete=percent,
            status=SCAN_ERROR,
            routers_found=routers_found,
            error=reason,
        ))
        self.hub.close(job_id)

    def rescan_device(self, device_id: str) -> Device:
        """
        Re-probe one known router and refresh its record.

        Raises:
            ScanNotFound: If the device does not exist
            TunnelUnavailable: If the tunnel broke
        """
        device = self.store.get_device(device_id)
        if device is None:
            raise ScanNotFound(f"Device not found: {device_id}")

        probe = self._new_probe()
        if not probe.probe(device.ip):
            logger.info(f"Rescan: {device.ip} is offline")
            return self.store.upsert_device(device.ip, status=DEVICE_OFFLINE, last_seen=device.last_seen)

        info = probe.fetch_system_info(device.ip)
        neighbors = probe.fetch_neighbors(device.ip)
        return self.store.upsert_device(
            device.ip,
            status=DEVICE_ONLINE,
            identity=info.identity,
            version=info.version,
            model=info.model,
            neighbors=neighbors,
        )
