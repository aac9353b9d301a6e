"""Per-requester cooldown guard."""

import math
import time

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger()


class Admission(BaseModel):
    model_config = ConfigDict(frozen=True)

    admitted: bool
    remaining_seconds: int = 0


class CooldownGuard:
    """Admits one request per requester per cooldown window.

    ``try_admit`` checks and arms the window without awaiting, so interleaved
    admissions on one event loop cannot both pass.
    """

    def __init__(self, cooldown_seconds: float = 10.0) -> None:
        self._period = cooldown_seconds
        self._until: dict[str, float] = {}

    @property
    def period(self) -> float:
        return self._period

    def try_admit(self, requester: str, now: float | None = None) -> Admission:
        now = time.monotonic() if now is None else now
        cooldown_end = self._until.get(requester)
        if cooldown_end is not None and now < cooldown_end:
            remaining = math.ceil(cooldown_end - now)
            logger.info("cooldown_rejected", requester=requester, remaining=remaining)
            return Admission(admitted=False, remaining_seconds=remaining)

        self._until[requester] = now + self._period
        return Admission(admitted=True)

    def release(self, requester: str) -> None:
        """Forget the requester's window so a failed attempt costs nothing."""
        if self._until.pop(requester, None) is not None:
            logger.debug("cooldown_released", requester=requester)

    def cooldown_end(self, requester: str) -> float | None:
        return self._until.get(requester)

    def reset(self) -> None:
        self._until.clear()
