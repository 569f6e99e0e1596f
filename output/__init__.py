"""
Output module - Report formatters

Contains formatters for different output formats:
- JSON
- Text (human-readable)
"""

from .formatters import build_report, to_json, to_text, format_routes

__all__ = ['build_report', 'to_json', 'to_text', 'format_routes']
