from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from remote_loader.payload.rules import RuleExecutor

logger = logging.getLogger(__name__)


class RemoteScript:
    """
    Control surface for a rule-driven payload.

    A payload builds one of these around its RuleExecutor, calls `start()` and binds it to
    the module-level name the loader looks for.
    """

    def __init__(self, *, version: str, executor: RuleExecutor):
        self.version = version
        self._executor = executor
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            logger.debug("remote_script.already_active version=%s", self.version)
            return
        self._active = True
        self._executor.process()
        logger.info("remote_script.started version=%s", self.version)

    def get_stats(self) -> dict[str, Any]:
        return {**asdict(self._executor.stats), "active": self._active, "version": self.version}

    def reprocess(self) -> None:
        self._executor.process()

    def cleanup(self) -> None:
        if self._active:
            self._active = False
            logger.info("remote_script.stopped version=%s", self.version)

    def restart(self) -> None:
        self.cleanup()
        self._executor.reset()
        self.start()

    def execute_global_rule(self, name: str) -> bool:
        return self._executor.execute_global_rule(name)

    def reset_global_rule(self, name: str) -> None:
        self._executor.reset_global_rule(name)
