"""Structured audit events returned by mutating operations.

The engine never writes its own audit trail; callers decide whether to
persist an event (see ``DependencyStore.record_activity``).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

DEPENDENCY_ADDED = 'dependency_added'
DEPENDENCY_REMOVED = 'dependency_removed'
STATUS_CHANGED = 'status_changed'
TASK_TRANSFERRED = 'task_transferred'


@dataclass
class AuditEvent:
    action: str
    task_id: Optional[int]
    project_id: Optional[int]
    actor_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=timezone.now)
