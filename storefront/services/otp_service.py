"""
OTP Service
Single-use 4-digit phone verification codes, one live code per phone number.
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from flask import current_app

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OtpSession:
    phone_number: str
    code: str
    issued_at: datetime


class OtpSessionManager:
    """
    In-memory store of pending verification codes keyed by phone number.

    Issuing replaces any unconsumed code for the same number. A code is
    deleted on its first successful verification; a wrong guess leaves it
    in place so the user can retry. With `ttl` set, codes older than the
    TTL fail verification and are discarded.
    """

    def __init__(self, ttl: Optional[timedelta] = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self.ttl = ttl
        self._clock = clock
        self._sessions: Dict[str, OtpSession] = {}
        self._lock = threading.Lock()

    def issue(self, phone_number: str) -> str:
        code = str(1000 + secrets.randbelow(9000))
        with self._lock:
            self._sessions[phone_number] = OtpSession(phone_number, code, self._clock())
        return code

    def verify(self, phone_number: str, submitted_code) -> bool:
        if submitted_code is None:
            return False
        submitted = str(submitted_code).strip()
        with self._lock:
            session = self._sessions.get(phone_number)
            if session is None:
                return False
            if self.ttl is not None and self._clock() - session.issued_at > self.ttl:
                del self._sessions[phone_number]
                logger.info("Expired OTP discarded for %s", phone_number)
                return False
            if submitted != session.code:
                return False
            del self._sessions[phone_number]
            return True

    def pending(self, phone_number: str) -> Optional[OtpSession]:
        with self._lock:
            return self._sessions.get(phone_number)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


class OtpDeliveryChannel:
    """Delivers an issued code. Returns the code only if the caller may see it."""

    def deliver(self, phone_number: str, code: str) -> Optional[str]:
        raise NotImplementedError


class InsecureDemoChannel(OtpDeliveryChannel):
    # Hands the code straight back to the requester. Demo and tests only.
    def deliver(self, phone_number: str, code: str) -> Optional[str]:
        logger.debug("Demo channel surfacing OTP for %s", phone_number)
        return code


class LogOnlyChannel(OtpDeliveryChannel):
    def deliver(self, phone_number: str, code: str) -> Optional[str]:
        logger.info("OTP for %s: %s", phone_number, code)
        return None


CHANNELS = {
    'demo': InsecureDemoChannel,
    'log': LogOnlyChannel,
}


def make_channel(name: str) -> OtpDeliveryChannel:
    try:
        return CHANNELS[name]()
    except KeyError:
        raise ValueError(f"Unknown OTP_CHANNEL {name!r}; expected one of {sorted(CHANNELS)}")


def get_otp_sessions() -> OtpSessionManager:
    return current_app.extensions['otp_sessions']


def get_otp_channel() -> OtpDeliveryChannel:
    return current_app.extensions['otp_channel']
