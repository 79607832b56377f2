from __future__ import annotations

import logging
from typing import Optional

from remote_loader.errors import ActivationError
from remote_loader.host.interfaces import CodeActivator
from remote_loader.loader.models import Activated, ActivationFailure, ActivationOutcome
from remote_loader.loader.session import LoaderSession
from remote_loader.payload.surface import missing_surface_members
from remote_loader.utils import is_blank

logger = logging.getLogger(__name__)


class Activator:
    def __init__(self, host: CodeActivator, *, session: Optional[LoaderSession] = None):
        self._host = host
        self._session = session

    async def activate(self, payload: str) -> ActivationOutcome:
        """
        Hand a payload to the host once. Failures are returned, never retried.

        A published control surface replaces the previous one in the session after the
        previous one has been cleaned up.
        """
        if is_blank(payload):
            logger.error("Refusing to activate an empty payload.")
            return ActivationFailure(reason="empty payload")

        try:
            surface = await self._host.activate(payload)
        except ActivationError as e:
            logger.error("Payload activation failed. error=%s", e)
            return ActivationFailure(reason=str(e))
        except (Exception, SystemExit) as e:
            logger.exception("Unexpected payload activation error.")
            return ActivationFailure(reason=f"{type(e).__name__}: {e}")

        if surface is not None:
            missing = missing_surface_members(surface)
            if missing:
                logger.warning("Ignoring incomplete control surface. missing=%s", ",".join(missing))
                surface = None

        if surface is not None and self._session is not None:
            self._replace_surface(surface)
        logger.info("activator.activated size=%d surface=%s", len(payload), surface is not None)
        return Activated(surface=surface)

    def _replace_surface(self, surface: object) -> None:
        assert self._session is not None
        previous = self._session.control_surface
        if previous is not None and previous is not surface:
            try:
                previous.cleanup()  # type: ignore[attr-defined]
            except Exception:
                logger.exception("Previous control surface cleanup failed.")
        self._session.control_surface = surface
        logger.info("activator.surface_published version=%s", getattr(surface, "version", None))
