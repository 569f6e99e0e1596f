"""
Collector module - router data collection

Contains:
- routeros: identity, resource and OSPF neighbor queries over SSH
"""

from .routeros import RouterOSProbe, SystemInfo, ProtocolDecodeError

__all__ = ['RouterOSProbe', 'SystemInfo', 'ProtocolDecodeError']
