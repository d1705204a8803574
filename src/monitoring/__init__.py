"""Monitoring module - Job audit log and timeouts."""

from .audit import (
    AuditLog, AuditEntry, AuditRun, JobResult,
    STATUS_RUNNING, STATUS_SUCCESS, STATUS_FAILED, STATUS_WARNING, TERMINAL_STATUSES
)
from .timeout import timeout

__all__ = [
    'AuditLog', 'AuditEntry', 'AuditRun', 'JobResult',
    'STATUS_RUNNING', 'STATUS_SUCCESS', 'STATUS_FAILED', 'STATUS_WARNING', 'TERMINAL_STATUSES',
    'timeout'
]
