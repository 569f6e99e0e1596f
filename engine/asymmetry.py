"""
Asymmetric Routing Detection

Compares the OSPF cost each router reports for a shared adjacency and
flags pairs whose two directions disagree:
- difference above the high threshold: high
- difference above the medium threshold: medium
- any other non-zero difference: low
"""

import logging
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, asdict

from models import Device, NeighborRecord
from .infer import pair_key

logger = logging.getLogger(__name__)

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"


@dataclass
class AsymmetricRoute:
    """A router pair whose costs differ by direction."""
    router1: str
    router2: str
    router1_ip: str
    router2_ip: str
    cost1to2: int
    cost2to1: int
    difference: int
    severity: str  # "low", "medium", "high"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AsymmetryDetector:
    """
    Finds asymmetric OSPF costs across all known devices.

    Thresholds are policy: a difference greater than high_threshold is
    high, greater than medium_threshold is medium, anything else is low.
    """

    DEFAULT_MEDIUM_THRESHOLD = 20
    DEFAULT_HIGH_THRESHOLD = 50

    def __init__(
        self,
        medium_threshold: int = DEFAULT_MEDIUM_THRESHOLD,
        high_threshold: int = DEFAULT_HIGH_THRESHOLD
    ):
        if medium_threshold >= high_threshold:
            raise ValueError("medium_threshold must be lower than high_threshold")
        self.medium_threshold = medium_threshold
        self.high_threshold = high_threshold

    def classify(self, difference: int) -> str:
        if difference > self.high_threshold:
            return SEVERITY_HIGH
        if difference > self.medium_threshold:
            return SEVERITY_MEDIUM
        return SEVERITY_LOW

    def detect(self, devices: List[Device]) -> List[AsymmetricRoute]:
        by_ip: Dict[str, Device] = {device.ip: device for device in devices}
        visited = set()
        routes: List[AsymmetricRoute] = []

        for device in devices:
            for neighbor in device.neighbors:
                remote = by_ip.get(neighbor.neighbor_ip)
                if remote is None or remote.id == device.id:
                    continue

                key = pair_key(device.id, remote.id)
                if key in visited:
                    continue
                visited.add(key)

                reverse = _find_neighbor(remote, device.ip)
                if reverse is None:
                    continue

                if neighbor.cost == reverse.cost:
                    continue

                difference = abs(neighbor.cost - reverse.cost)
                routes.append(AsymmetricRoute(
                    router1=device.display_name,
                    router2=remote.display_name,
                    router1_ip=device.ip,
                    router2_ip=remote.ip,
                    cost1to2=neighbor.cost,
                    cost2to1=reverse.cost,
                    difference=difference,
                    severity=self.classify(difference),
                ))

        logger.info(
            f"Asymmetry check complete: {len(routes)} asymmetric routes "
            f"({sum(1 for r in routes if r.severity == SEVERITY_HIGH)} high)"
        )
        return routes


def _find_neighbor(device: Device, ip: str) -> Optional[NeighborRecord]:
    for neighbor in device.neighbors:
        if neighbor.neighbor_ip == ip:
            return neighbor
    return None
