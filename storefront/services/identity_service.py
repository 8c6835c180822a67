"""
Identity Service
Turns a verified phone number into a user identity. Nothing is stored:
identity and role are recomputed from the phone number on every login.
"""

import enum
import logging
from dataclasses import dataclass

from flask import current_app

from storefront.services import simulate_latency
from storefront.services.otp_service import get_otp_channel, get_otp_sessions

logger = logging.getLogger(__name__)


class UserRole(str, enum.Enum):
    USER = 'USER'
    OWNER = 'OWNER'


@dataclass(frozen=True)
class UserIdentity:
    id: str
    phone_number: str
    role: UserRole
    display_name: str

    def to_dict(self):
        return {
            'id': self.id,
            'phone_number': self.phone_number,
            'role': self.role.value,
            'display_name': self.display_name,
        }


def role_for(phone_number, owner_phone_number):
    return UserRole.OWNER if phone_number == owner_phone_number else UserRole.USER


def derive_identity(phone_number, owner_phone_number):
    role = role_for(phone_number, owner_phone_number)
    if role is UserRole.OWNER:
        display_name = 'Store Owner'
    else:
        display_name = f"User {phone_number[-4:]}"
    return UserIdentity(
        id=f"u_{phone_number}",
        phone_number=phone_number,
        role=role,
        display_name=display_name,
    )


def request_code(phone_number):
    """
    Issue a code for `phone_number` and hand it to the delivery channel.
    Returns the code only when the configured channel surfaces it.
    """
    simulate_latency('request_code')
    code = get_otp_sessions().issue(phone_number)
    return get_otp_channel().deliver(phone_number, code)


def verify_code(phone_number, code):
    """Returns the UserIdentity on a matching code, otherwise None."""
    simulate_latency('verify_code')
    if not get_otp_sessions().verify(phone_number, code):
        logger.warning("OTP verification failed for %s", phone_number)
        return None
    identity = derive_identity(phone_number, current_app.config['OWNER_PHONE_NUMBER'])
    logger.info("User %s logged in as %s", identity.id, identity.role.value)
    return identity
