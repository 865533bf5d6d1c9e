"""Reconciliation, pruning, discovery and ordering of tracked sessions."""

from .discovery import SessionDiscovery, discovered_session_id
from .liveness import LivenessProber, WindowExpiryPolicy
from .loops import PeriodicTask, PrunedSession, Pruner, Reconciler
from .ranking import rank_sessions, status_rank
from .view import SessionSnapshot, SessionView

__all__ = [
    "LivenessProber",
    "PeriodicTask",
    "PrunedSession",
    "Pruner",
    "Reconciler",
    "SessionDiscovery",
    "SessionSnapshot",
    "SessionView",
    "WindowExpiryPolicy",
    "discovered_session_id",
    "rank_sessions",
    "status_rank",
]
