"""Building blocks for activated payloads: declarative rules and the control surface."""

from remote_loader.payload.rules import DocumentCapability, ProcessingStats, Rule, RuleExecutor
from remote_loader.payload.script import RemoteScript
from remote_loader.payload.surface import ControlSurface, missing_surface_members

__all__ = [
    "ControlSurface",
    "DocumentCapability",
    "ProcessingStats",
    "RemoteScript",
    "Rule",
    "RuleExecutor",
    "missing_surface_members",
]
