import logging
import re
from datetime import date

from app.core.config import settings
from app.core.errors import CollisionError, ValidationError

logger = logging.getLogger(__name__)

_TITLES = {"dr", "dr.", "prof", "prof."}


def doctor_initials(name: str | None) -> str:
    """``Dr. Sarah Johnson`` -> ``SJ``; ``Madonna`` -> ``MA``; nothing -> ``DR``."""
    parts = [p for p in (name or "").split() if p.lower() not in _TITLES]
    if len(parts) >= 2:
        return (parts[0][0] + parts[-1][0]).upper()
    if len(parts) == 1 and parts[0]:
        return parts[0][:2].upper()
    return "DR"


def format_token(initials: str, day: date, seq: int, follow_up: bool = False) -> str:
    marker = "FU-" if follow_up else ""
    return f"{initials}-{marker}{day:%Y%m%d}-{seq:03d}"


class TokenSequencer:
    """Date-scoped token numbers, one sequence per doctor initials.

    Must be called with the store's mutation lock held; ``taken`` is the set
    of numbers already in the store and is extended with each allocation.
    """

    def __init__(self, max_attempts: int | None = None):
        self.max_attempts = max_attempts or settings.TOKEN_MAX_ATTEMPTS
        self._last: dict[tuple[str, date], int] = {}

    def _start(self, initials: str, day: date, taken: set[str]) -> int:
        pattern = re.compile(rf"^{re.escape(initials)}-(?:FU-)?{day:%Y%m%d}-\d+$")
        issued = sum(1 for t in taken if pattern.match(t))
        return max(self._last.get((initials, day), 0), issued) + 1

    def allocate(self, doctor_name: str | None, day: date, taken: set[str], follow_up: bool = False) -> str:
        initials = doctor_initials(doctor_name)
        seq = self._start(initials, day, taken)
        for _ in range(self.max_attempts):
            candidate = format_token(initials, day, seq, follow_up)
            if candidate not in taken:
                self._last[(initials, day)] = seq
                taken.add(candidate)
                return candidate
            logger.info(f"Token {candidate} already issued, retrying with next sequence")
            seq += 1
        logger.error(f"Gave up allocating a token for {initials} on {day} after {self.max_attempts} attempts")
        raise ValidationError(
            "tokenNo", f"no free token number after {self.max_attempts} attempts"
        ) from CollisionError("tokenNo", candidate)
