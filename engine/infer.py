"""
Topology Inference Engine

Builds the OSPF topology from stored devices by:
1. Creating one node per device
2. Resolving each neighbor record's IP to a known device
3. Emitting a link only once both routers report each other
"""

import logging
from typing import Dict, List, Optional, Tuple, Any
from dataclasses import dataclass, field, asdict

from models import Device

logger = logging.getLogger(__name__)


@dataclass
class TopologyNode:
    """A router in the topology."""
    id: str
    ip: str
    hostname: Optional[str] = None
    identity: Optional[str] = None
    status: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TopologyEdge:
    """An OSPF adjacency confirmed from both ends."""
    id: str
    source: str
    target: str
    cost: int
    reverse_cost: int
    is_asymmetric: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TopologyGraph:
    """Complete OSPF topology."""
    nodes: List[TopologyNode] = field(default_factory=list)
    edges: List[TopologyEdge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "summary": {
                "node_count": len(self.nodes),
                "edge_count": len(self.edges),
                "asymmetric_edges": sum(1 for e in self.edges if e.is_asymmetric),
            }
        }

    def get_edges_for_node(self, node_id: str) -> List[TopologyEdge]:
        """Get all edges touching a specific node."""
        return [
            edge for edge in self.edges
            if edge.source == node_id or edge.target == node_id
        ]

    def get_edge(self, device_a: str, device_b: str) -> Optional[TopologyEdge]:
        """Get the edge between two devices, if any."""
        key = pair_key(device_a, device_b)
        for edge in self.edges:
            if edge.id == key:
                return edge
        return None


def pair_key(device_a: str, device_b: str) -> str:
    """Order-independent key for a pair of device IDs."""
    return "-".join(sorted((device_a, device_b)))


class TopologyBuilder:
    """
    Builds a TopologyGraph from devices and their OSPF neighbor tables.

    The first direction seen for a device pair records a baseline cost.
    When the other device reports the reverse direction, one edge is emitted
    carrying that report's cost and the baseline as reverse cost. A pair
    reported from one side only never becomes an edge, so the edge set does
    not depend on device order (only the cost/reverse_cost labelling does).
    """

    def build(self, devices: List[Device]) -> TopologyGraph:
        graph = TopologyGraph()
        by_ip: Dict[str, Device] = {device.ip: device for device in devices}

        for device in devices:
            graph.nodes.append(TopologyNode(
                id=device.id,
                ip=device.ip,
                hostname=device.hostname,
                identity=device.identity,
                status=device.status,
            ))

        # pair key -> (reporting device id, cost)
        baselines: Dict[str, Tuple[str, int]] = {}
        emitted = set()

        for device in devices:
            for neighbor in device.neighbors:
                remote = by_ip.get(neighbor.neighbor_ip)
                if remote is None:
                    logger.debug(f"Unknown neighbor {neighbor.neighbor_ip} seen from {device.ip}")
                    continue

                # Skip self-references
                if remote.id == device.id:
                    continue

                key = pair_key(device.id, remote.id)
                if key in emitted:
                    continue

                if key not in baselines:
                    baselines[key] = (device.id, neighbor.cost)
                    continue

                seeded_by, baseline_cost = baselines[key]
                if seeded_by == device.id:
                    # Same router listing the neighbor twice
                    continue

                graph.edges.append(TopologyEdge(
                    id=key,
                    source=device.id,
                    target=remote.id,
                    cost=neighbor.cost,
                    reverse_cost=baseline_cost,
                    is_asymmetric=neighbor.cost != baseline_cost,
                ))
                emitted.add(key)

        logger.info(
            f"Built topology: {len(graph.nodes)} nodes, {len(graph.edges)} edges "
            f"({sum(1 for e in graph.edges if e.is_asymmetric)} asymmetric)"
        )
        return graph
