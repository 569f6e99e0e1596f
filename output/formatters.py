"""
Output Formatters

Provides functions to format the topology, asymmetric routes and scan
summaries for different output formats.
"""

import json
import logging
from typing import List, Optional, TextIO, Dict, Any
from pathlib import Path

from engine.infer import TopologyGraph
from engine.asymmetry import AsymmetricRoute
from models import ScanJob

logger = logging.getLogger(__name__)


def build_report(
    topology: TopologyGraph,
    routes: List[AsymmetricRoute],
    jobs: Optional[List[ScanJob]] = None
) -> Dict[str, Any]:
    """Assemble the serializable report dictionary."""
    report = {
        "topology": topology.to_dict(),
        "asymmetric_routes": [route.to_dict() for route in routes],
        "scans": [
            {k: v for k, v in job.to_dict().items() if k != "results"}
            for job in (jobs or [])
        ],
    }
    report["topology"]["summary"]["asymmetric_route_count"] = len(routes)
    return report


def to_json(
    topology: TopologyGraph,
    routes: List[AsymmetricRoute],
    path: str,
    jobs: Optional[List[ScanJob]] = None,
    indent: int = 2
) -> None:
    """
    Write the topology report to a JSON file.

    Args:
        topology: Topology graph to serialize
        routes: Asymmetric routes to include
        path: Output file path
        jobs: Optional scan jobs to summarize
        indent: JSON indentation level
    """
    output = build_report(topology, routes, jobs)

    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(output, f, indent=indent, ensure_ascii=False)

    logger.info(f"Report written to {path}")


def to_text(
    topology: TopologyGraph,
    routes: List[AsymmetricRoute],
    jobs: Optional[List[ScanJob]] = None,
    file: Optional[TextIO] = None
) -> str:
    """
    Format the topology report as human-readable text.

    Args:
        topology: Topology graph to format
        routes: Asymmetric routes to list
        jobs: Optional scan jobs to summarize
        file: Optional file to write to

    Returns:
        Formatted text string
    """
    lines = []
    names = {node.id: node.identity or node.hostname or node.ip for node in topology.nodes}

    # Header
    lines.append("=" * 60)
    lines.append("OSPF TOPOLOGY REPORT")
    lines.append("=" * 60)
    lines.append("")

    # Summary
    summary = topology.to_dict()["summary"]
    lines.append("SUMMARY")
    lines.append("-" * 40)
    lines.append(f"  Routers:            {summary['node_count']}")
    lines.append(f"  Links:              {summary['edge_count']}")
    lines.append(f"  Asymmetric links:   {summary['asymmetric_edges']}")
    lines.append("")

    if jobs:
        lines.append("SCANS")
        lines.append("-" * 40)
        for job in jobs:
            line = f"  {job.subnet:<20} {job.status:<10} routers={job.routers_found}"
            if job.error:
                line += f"  ({job.error})"
            lines.append(line)
        lines.append("")

    # Routers
    lines.append("ROUTERS")
    lines.append("-" * 40)
    for node in sorted(topology.nodes, key=lambda n: n.ip):
        lines.append(f"  {node.ip:<16} {names[node.id]:<24} [{node.status}]")
    if not topology.nodes:
        lines.append("  No routers discovered")
    lines.append("")

    # Links
    lines.append("LINKS")
    lines.append("-" * 40)
    if topology.edges:
        for edge in topology.edges:
            marker = "  [ASYMMETRIC]" if edge.is_asymmetric else ""
            lines.append(
                f"  {names.get(edge.source, edge.source)} <--> "
                f"{names.get(edge.target, edge.target)}  "
                f"cost {edge.cost}/{edge.reverse_cost}{marker}"
            )
    else:
        lines.append("  No links discovered")
    lines.append("")

    if routes:
        lines.append("ASYMMETRIC ROUTES")
        lines.append("-" * 40)
        lines.extend(f"  {line}" for line in format_routes(routes).splitlines()[2:])
        lines.append("")

    # Footer
    lines.append("=" * 60)

    text = "\n".join(lines)

    if file is not None:
        file.write(text)

    return text


def format_routes(routes: List[AsymmetricRoute]) -> str:
    """
    Format asymmetric routes as a summary text.

    Args:
        routes: List of asymmetric routes

    Returns:
        Formatted summary string
    """
    if not routes:
        return "No asymmetric routes found."

    lines = []

    high = sum(1 for r in routes if r.severity == "high")
    medium = sum(1 for r in routes if r.severity == "medium")
    low = sum(1 for r in routes if r.severity == "low")

    lines.append(f"Found {len(routes)} asymmetric routes: {high} high, {medium} medium, {low} low")
    lines.append("")

    for route in routes:
        prefix = {
            "high": "HIGH",
            "medium": "MED",
            "low": "LOW"
        }.get(route.severity, "???")

        lines.append(
            f"[{prefix}] {route.router1} ({route.router1_ip}) -> {route.router2} ({route.router2_ip}): "
            f"cost {route.cost1to2} vs {route.cost2to1} (diff {route.difference})"
        )

    return "\n".join(lines)
