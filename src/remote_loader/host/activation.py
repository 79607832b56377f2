from __future__ import annotations

import asyncio
import logging
import types
from itertools import count
from typing import Optional

from remote_loader.errors import ActivationError
from remote_loader.host.interfaces import CodeActivator

logger = logging.getLogger(__name__)


class ModuleActivator(CodeActivator):
    """
    Executes a Python payload as a fresh, unregistered module.

    Each activation gets its own module object; nothing is added to sys.modules.
    The payload publishes its control surface by binding `surface_name` at module level.
    """

    def __init__(self, *, surface_name: str = "REMOTE_SCRIPT", module_prefix: str = "remote_payload"):
        self._surface_name = surface_name
        self._module_prefix = module_prefix
        self._sequence = count(1)
        self.active_module: Optional[types.ModuleType] = None

    async def activate(self, payload: str) -> Optional[object]:
        module_name = f"{self._module_prefix}_{next(self._sequence)}"
        try:
            code = compile(payload, f"<{module_name}>", "exec")
        except (SyntaxError, ValueError) as e:
            raise ActivationError(f"Payload failed to compile: {e}") from e

        module = types.ModuleType(module_name)
        try:
            exec(code, module.__dict__)
        except (KeyboardInterrupt, asyncio.CancelledError):
            raise
        except BaseException as e:
            raise ActivationError(f"Payload raised during execution: {type(e).__name__}: {e}") from e

        self.active_module = module
        surface = module.__dict__.get(self._surface_name)
        logger.debug(
            "activation.module_executed module=%s surface_published=%s",
            module_name,
            surface is not None,
        )
        return surface
