import sys
from pathlib import Path

import pytest

root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from collector.routeros import SystemInfo  # noqa: E402
from models import Device, NeighborRecord  # noqa: E402
from transport import TunnelUnavailable  # noqa: E402


def nbr(ip, cost, state="Full"):
    return NeighborRecord(
        neighbor_id=ip,
        neighbor_ip=ip,
        cost=cost,
        state=state,
        priority=1,
        dead_time="38s",
        address=ip,
        interface="ether1",
    )


def device(device_id, ip, neighbors=(), identity=None, hostname=None):
    return Device(
        ip=ip,
        id=device_id,
        identity=identity,
        hostname=hostname,
        status="online",
        neighbors=list(neighbors),
    )


class FakeProbe:
    """Probe answering from a table of routers; addresses in `fatal` break the tunnel."""

    def __init__(self, routers, fatal=()):
        self.routers = routers
        self.fatal = set(fatal)
        self.probed = []
        self.credentials = None

    def probe(self, host):
        self.probed.append(host)
        if host in self.fatal:
            raise TunnelUnavailable("SSH tunnel not connected")
        return host in self.routers

    def fetch_system_info(self, host):
        router = self.routers[host]
        return SystemInfo(identity=router.get("identity"), version="7.12 (stable)", model="RB4011")

    def fetch_neighbors(self, host):
        return list(self.routers[host].get("neighbors", []))


def probe_factory(probe):
    def factory(transport, credentials, port=22, timeout=5):
        probe.credentials = credentials
        return probe
    return factory


@pytest.fixture()
def two_routers():
    return {
        "10.0.0.1": {"identity": "R1", "neighbors": [nbr("10.0.0.2", 10)]},
        "10.0.0.2": {"identity": "R2", "neighbors": [nbr("10.0.0.1", 35)]},
    }
