"""Resolve, fetch, activate and record a remote payload."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remote_loader.loader.pipeline import Pipeline
    from remote_loader.loader.session import LoaderSession

__all__ = ["LoaderSession", "Pipeline"]


def __getattr__(name: str):
    if name == "Pipeline":
        from remote_loader.loader.pipeline import Pipeline as _Pipeline

        return _Pipeline
    if name == "LoaderSession":
        from remote_loader.loader.session import LoaderSession as _LoaderSession

        return _LoaderSession
    raise AttributeError(name)
