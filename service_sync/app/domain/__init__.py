"""
Domain helpers for the sync client.

Client-side validation and plan status; neither talks to the backend.
"""

from .plan import PlanLimits, PlanStatus, current_day

__all__ = [
    "PlanLimits",
    "PlanStatus",
    "current_day",
]
