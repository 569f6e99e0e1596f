"""
Engine module - Topology inference and asymmetry detection

Contains:
- infer: Topology graph from OSPF neighbor tables
- asymmetry: Directional cost comparison
"""

from .infer import TopologyBuilder, TopologyGraph, TopologyNode, TopologyEdge
from .asymmetry import AsymmetryDetector, AsymmetricRoute

__all__ = [
    'TopologyBuilder',
    'TopologyGraph',
    'TopologyNode',
    'TopologyEdge',
    'AsymmetryDetector',
    'AsymmetricRoute',
]
