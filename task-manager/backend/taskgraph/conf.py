"""Engine rules, overridable through the ``TASKGRAPH`` Django setting.

    TASKGRAPH = {
        'MAX_ACTIVE_TASKS': 8,
        'ALLOW_CROSS_PROJECT_DEPENDENCIES': True,
    }
"""
from typing import Any, Dict

from django.conf import settings

DEFAULTS: Dict[str, Any] = {
    # Hard ceiling of active tasks a person may hold
    'MAX_ACTIVE_TASKS': 10,
    'MODERATE_WORKLOAD_THRESHOLD': 8,
    'HEAVY_WORKLOAD_THRESHOLD': 12,
    'MAX_DEPENDENCIES_PER_TASK': 20,
    'MAX_DEPENDENCY_DEPTH': 10,
    'ALLOW_CROSS_PROJECT_DEPENDENCIES': False,
    'SUGGESTION_LIMIT': 5,
    # Chains deeper than this are reported by the integrity report
    'LONG_CHAIN_DEPTH': 5,
}


def get_setting(name: str) -> Any:
    if name not in DEFAULTS:
        raise KeyError(f"Unknown taskgraph setting: {name!r}")
    overrides = getattr(settings, 'TASKGRAPH', None) or {}
    return overrides.get(name, DEFAULTS[name])
