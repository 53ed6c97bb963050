"""End-to-end password reset for an email address.

The caller always gets the same answer whether or not the email belongs to a
directory account. Only infrastructure failures (connection, bind, search,
modify) produce a different, error-shaped outcome.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict

from .config import ServiceCredentials
from .directory import Change, DirectorySession, ModificationRequest
from .errors import DirectoryError, PasswordResetError
from .lookup import find_account_dn
from .password import encode_password, generate_password

logger = logging.getLogger(__name__)

RESET_MESSAGE = "If an account exists with this email, you will receive instructions to reset your password."

PASSWORD_ATTRIBUTE = 'unicodePwd'
PASSWORD_LAST_SET_ATTRIBUTE = 'pwdLastSet'
# pwdLastSet=0 forces a password change at next logon
PASSWORD_EXPIRED = '0'

RESET_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class ResetOutcome:
    status: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self):
        return self.status == 200


GENERIC_FAILURE = "Password reset failed due to a server error. Please try again later."


def success_outcome():
    return ResetOutcome(200, {'message': RESET_MESSAGE})


def failure_outcome(error):
    """500 outcome naming only the failed operation; targets stay in the server log"""
    if isinstance(error, DirectoryError):
        return ResetOutcome(500, {'error': f"LDAP {error.operation} failed"})
    return ResetOutcome(500, {'error': GENERIC_FAILURE})


def build_reset_request(password, audit_attribute='description'):
    """Changes that set a new password and expire it immediately.

    When ``audit_attribute`` is set the plaintext is also written there so a
    directory administrator can hand it to the user.
    """
    changes = [Change('replace', PASSWORD_ATTRIBUTE, encode_password(password))]
    if audit_attribute:
        changes.append(Change('replace', audit_attribute, password))
    changes.append(Change('replace', PASSWORD_LAST_SET_ATTRIBUTE, PASSWORD_EXPIRED))
    return ModificationRequest(changes)


class PasswordResetService:
    """Reset directory passwords on behalf of the HTTP layer"""

    def __init__(self, credentials: ServiceCredentials,
                 password_generator: Callable[[], str] = None,
                 session_factory=DirectorySession):
        self.credentials = credentials
        self.password_generator = password_generator or (
            lambda: generate_password(RESET_PASSWORD_LENGTH, exclude_similar=True, exclude_duplicates=True))
        self.session_factory = session_factory

    def reset_password(self, email) -> ResetOutcome:
        logger.info(f"Received password reset request for email {email}")
        try:
            with self.session_factory(self.credentials) as session:
                session.authenticate()
                dn = find_account_dn(session, email)
                if dn is None:
                    return success_outcome()

                password = self.password_generator()
                request = build_reset_request(password, self.credentials.audit_attribute)
                session.modify(dn, request)
                logger.info(f"Password reset successful for {dn}")
                return success_outcome()
        except PasswordResetError as e:
            logger.error(f"Password reset failed for email {email}: {e}")
            return failure_outcome(e)
