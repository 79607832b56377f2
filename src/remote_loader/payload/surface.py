from __future__ import annotations

from typing import Any, Protocol

CALLABLE_MEMBERS = (
    "get_stats",
    "reprocess",
    "cleanup",
    "restart",
    "execute_global_rule",
    "reset_global_rule",
)


class ControlSurface(Protocol):
    """Object an activated payload publishes to expose its lifecycle to the host."""

    version: str

    def get_stats(self) -> dict[str, Any]: ...

    def reprocess(self) -> None: ...

    def cleanup(self) -> None: ...

    def restart(self) -> None: ...

    def execute_global_rule(self, name: str) -> bool: ...

    def reset_global_rule(self, name: str) -> None: ...


def missing_surface_members(obj: object) -> list[str]:
    missing = []
    if not isinstance(getattr(obj, "version", None), str):
        missing.append("version")
    for name in CALLABLE_MEMBERS:
        if not callable(getattr(obj, name, None)):
            missing.append(name)
    return missing
