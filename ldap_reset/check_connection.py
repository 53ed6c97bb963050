#!/usr/bin/env python3
"""
LDAP connection and account lookup check.
Used to diagnose directory connectivity and email lookup problems.

    ldap-reset-check                    # connect and bind only
    ldap-reset-check john@example.com   # also resolve the email
"""
import logging
import sys

from .config import load_credentials
from .directory import DirectorySession
from .errors import PasswordResetError
from .lookup import find_account_dn, find_account_name

logger = logging.getLogger('ldap_reset.check')


def check_connection(credentials, email=None):
    """Bind with the service account and optionally look up ``email``. Returns True on success."""
    logger.info("=== Testing LDAP connection ===")
    logger.info(f"LDAP server: {credentials.server_url}")
    logger.info(f"Base DN: {credentials.base_dn}")
    logger.info(f"Bind DN: {credentials.bind_dn}")
    logger.info(f"TLS verification: {'strict' if credentials.tls_verify else 'disabled'}")

    try:
        with DirectorySession(credentials) as session:
            session.authenticate()
            logger.info("LDAP connection successful!")

            if email is None:
                return True

            logger.info(f"=== Searching account for email: {email} ===")
            dn = find_account_dn(session, email)
            if dn is None:
                logger.warning(f"No unique account found for email: {email}")
                return False
            logger.info(f"  DN: {dn}")
            logger.info(f"  sAMAccountName: {find_account_name(session, email) or 'N/A'}")
            return True
    except PasswordResetError as e:
        logger.error(f"LDAP check failed: {e}")
        logger.error(f"Exception type: {type(e).__name__}")
        return False


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    argv = sys.argv[1:] if argv is None else argv

    try:
        credentials = load_credentials()
    except PasswordResetError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    email = argv[0] if argv else None
    if email is None:
        logger.info("To look up an account, pass an email address: ldap-reset-check <email>")
    return 0 if check_connection(credentials, email) else 1


if __name__ == '__main__':
    sys.exit(main())
