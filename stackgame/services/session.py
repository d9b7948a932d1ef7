"""Parsing of submitted game-session payloads."""
import math
from dataclasses import dataclass, field
from typing import List, Optional

from stackgame.errors import InvalidInput

MAX_ZONE_LENGTH = 64
MAX_SESSION_KEY_LENGTH = 64


def _as_count(payload, key, required=False):
    value = payload.get(key)
    if value is None:
        if required:
            raise InvalidInput(f"'{key}' is required")
        return 0
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"'{key}' must be a number")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise InvalidInput(f"'{key}' must be a whole number")
        value = int(value)
    if value < 0:
        raise InvalidInput(f"'{key}' must not be negative")
    return value


def _as_achievements(payload):
    value = payload.get('achievements')
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(a, str) for a in value):
        raise InvalidInput("'achievements' must be a list of strings")
    # Keep first-seen order, drop duplicates
    return list(dict.fromkeys(a for a in value if a))


@dataclass
class SessionResult:
    """The outcome of one played game round."""
    score: int
    max_combo: int = 0
    perfects: int = 0
    xp_earned: int = 0
    zone: str = ''
    achievements: List[str] = field(default_factory=list)
    session_key: Optional[str] = None

    @classmethod
    def from_payload(cls, payload):
        """
        Validate a JSON session body.

        Raises:
            InvalidInput: if the score is missing, non-numeric or negative,
                or any optional field is malformed
        """
        if not isinstance(payload, dict):
            raise InvalidInput("Session must be an object")

        zone = payload.get('zone') or ''
        if not isinstance(zone, str):
            raise InvalidInput("'zone' must be a string")

        session_key = payload.get('sessionId')
        if session_key is not None:
            if isinstance(session_key, bool) or not isinstance(session_key, (str, int)):
                raise InvalidInput("'sessionId' must be a string")
            session_key = str(session_key) or None
            if session_key and len(session_key) > MAX_SESSION_KEY_LENGTH:
                raise InvalidInput("'sessionId' is too long")

        return cls(score=_as_count(payload, 'score', required=True),
                   max_combo=_as_count(payload, 'maxCombo'),
                   perfects=_as_count(payload, 'perfects'),
                   xp_earned=_as_count(payload, 'xpEarned'),
                   zone=zone[:MAX_ZONE_LENGTH],
                   achievements=_as_achievements(payload),
                   session_key=session_key)
