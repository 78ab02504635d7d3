"""
Audit log package.
"""

from .log import AuditLog, LogEntry

__all__ = ["AuditLog", "LogEntry"]
