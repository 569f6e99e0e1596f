"""
Scanner module - scan jobs and progress reporting

Contains:
- orchestrator: Runs scan jobs over a subnet
- progress: Per-job progress channels
"""

from .orchestrator import ScanOrchestrator, ScanNotFound
from .progress import ProgressEvent, ProgressHub, Subscription

__all__ = ['ScanOrchestrator', 'ScanNotFound', 'ProgressEvent', 'ProgressHub', 'Subscription']
