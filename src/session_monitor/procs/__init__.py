"""Process inspection used for liveness checks, discovery and kills."""

from .inspector import (
    CommandResult,
    DiscoveryProcessError,
    FakeProcessInspector,
    LivenessQueryError,
    ProcessInfo,
    ProcessInspectionError,
    ProcessInspector,
    PsProcessInspector,
)

__all__ = [
    "CommandResult",
    "DiscoveryProcessError",
    "FakeProcessInspector",
    "LivenessQueryError",
    "ProcessInfo",
    "ProcessInspectionError",
    "ProcessInspector",
    "PsProcessInspector",
]
