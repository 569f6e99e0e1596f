"""
RouterOS Probe

Talks to MikroTik RouterOS routers over SSH to fetch:
1. Identity (/system identity)
2. Version and board model (/system resource)
3. OSPF neighbor table (/routing ospf neighbor)

Each call opens its own session on a channel from the transport and closes
it on every exit path. Ordinary failures (offline host, refused login,
unparseable output) degrade to empty results; a broken tunnel is re-raised.
"""

import re
import logging
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterator, List, Optional

from models import NeighborRecord
from ssh_client import SSHClient, SSHClientError
from transport import DeviceUnreachable, Transport

logger = logging.getLogger(__name__)

IDENTITY_CMD = "/system identity print"
RESOURCE_CMD = "/system resource print"
NEIGHBOR_CMD = "/routing ospf neighbor print detail without-paging"

# RouterOS answers a bad command with one of these instead of failing the exec
ERROR_MARKERS = (
    "bad command name",
    "syntax error",
    "expected end of command",
    "input does not match any value",
    "no such item",
)

_FIELD_RE = re.compile(r'^\s*([\w-]+):\s*(.*?)\s*$')
_PAIR_RE = re.compile(r'([\w.-]+)=("[^"]*"|\S*)')
_ENTRY_RE = re.compile(r'^\s*\d+\s')


class ProtocolDecodeError(Exception):
    """Raised when a router answers with output that cannot be decoded."""
    pass


@dataclass
class SystemInfo:
    """Identity, software version and board model of a router."""
    identity: Optional[str] = None
    version: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


def check_output(output: str, command: str) -> str:
    """Raise ProtocolDecodeError if the output is a RouterOS error message."""
    lowered = output.lower()
    for marker in ERROR_MARKERS:
        if marker in lowered:
            raise ProtocolDecodeError(f"'{command}' failed: {output.strip()[:120]}")
    return output


def parse_fields(output: str) -> Dict[str, str]:
    """Parse "key: value" lines as printed by /system print commands."""
    fields = {}
    for line in output.splitlines():
        match = _FIELD_RE.match(line)
        if match and match.group(2):
            fields[match.group(1).lower()] = match.group(2)
    return fields


def parse_entries(output: str) -> List[Dict[str, str]]:
    """
    Parse "print detail" output into one dict per numbered entry.

    An entry starts with its index and may continue over several indented
    lines of key=value pairs. The flags legend is ignored.
    """
    entries: List[Dict[str, str]] = []
    current: Optional[Dict[str, str]] = None

    for line in output.splitlines():
        if not line.strip():
            continue
        if _ENTRY_RE.match(line):
            current = {}
            entries.append(current)
        if current is None:
            continue
        for key, value in _PAIR_RE.findall(line):
            current[key] = value.strip('"')

    return entries


def _to_int(value: Any) -> int:
    try:
        return max(int(str(value).strip()), 0)
    except (TypeError, ValueError):
        return 0


def to_neighbor(entry: Dict[str, str]) -> NeighborRecord:
    """Build a NeighborRecord from a parsed entry, defaulting missing fields."""
    address = entry.get("address", "")
    return NeighborRecord(
        neighbor_id=entry.get("router-id", ""),
        neighbor_ip=address,
        cost=_to_int(entry.get("cost", 0)),
        state=entry.get("state") or "unknown",
        priority=_to_int(entry.get("priority", 0)),
        dead_time=entry.get("dead-time", ""),
        address=address,
        interface=entry.get("interface", ""),
    )


class RouterOSProbe:
    """Fetches system info and OSPF neighbors from RouterOS routers."""

    ORDINARY_ERRORS = (DeviceUnreachable, SSHClientError, ProtocolDecodeError)

    def __init__(self, transport: Transport, credentials, port: int = 22, timeout: float = 5):
        """
        Initialize the probe.

        Args:
            transport: Transport providing channels to routers
            credentials: Credentials with username and password
            port: Router SSH port
            timeout: Per-operation timeout in seconds
        """
        self.transport = transport
        self.credentials = credentials
        self.port = port
        self.timeout = timeout

    @contextmanager
    def _session(self, host: str) -> Iterator[SSHClient]:
        with self.transport.acquire(host, self.port) as channel:
            with SSHClient(
                hostname=host,
                port=self.port,
                username=self.credentials.username,
                auth_type="password",
                password=self.credentials.password,
                timeout=self.timeout,
                sock=channel,
            ) as ssh:
                yield ssh

    def _failed(self, host: str, what: str, error: Exception) -> None:
        # A tunnel that died mid-session looks like an ordinary failure here
        self.transport.verify()
        logger.debug(f"Failed to get {what} from {host}: {error}")

    def probe(self, host: str) -> bool:
        """Check that the router accepts a login and answers a cheap query."""
        try:
            with self._session(host) as ssh:
                check_output(ssh.execute(IDENTITY_CMD), IDENTITY_CMD)
        except self.ORDINARY_ERRORS as e:
            self._failed(host, "a response", e)
            logger.debug(f"Connection failed: {host}")
            return False

        logger.info(f"Connection successful: {host}")
        return True

    def fetch_system_info(self, host: str) -> SystemInfo:
        """Fetch identity, version and model; empty SystemInfo on failure."""
        try:
            with self._session(host) as ssh:
                identity = parse_fields(check_output(ssh.execute(IDENTITY_CMD), IDENTITY_CMD))
                resource = parse_fields(check_output(ssh.execute(RESOURCE_CMD), RESOURCE_CMD))
        except self.ORDINARY_ERRORS as e:
            self._failed(host, "system info", e)
            return SystemInfo()

        return SystemInfo(
            identity=identity.get("name"),
            version=resource.get("version"),
            model=resource.get("board-name"),
        )

    def fetch_neighbors(self, host: str) -> List[NeighborRecord]:
        """Fetch the OSPF neighbor table; empty list on failure."""
        try:
            with self._session(host) as ssh:
                output = check_output(ssh.execute(NEIGHBOR_CMD), NEIGHBOR_CMD)
        except self.ORDINARY_ERRORS as e:
            self._failed(host, "OSPF neighbors", e)
            return []

        neighbors = [to_neighbor(entry) for entry in parse_entries(output)]
        logger.debug(f"{host}: {len(neighbors)} OSPF neighbors")
        return neighbors

    def __repr__(self) -> str:
        return f"RouterOSProbe({self.credentials.username}@*:{self.port} via {self.transport!r})"
