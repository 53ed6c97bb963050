import logging
from itertools import islice

import ldap3
from ldap3.utils.conv import escape_filter_chars

logger = logging.getLogger(__name__)


def email_filter(email):
    """Search filter for user accounts whose mail attribute equals ``email``"""
    return f'(&(objectCategory=person)(objectClass=user)(mail={escape_filter_chars(email)}))'


def _matching_entries(session, email, attributes):
    # Two entries are enough to tell a unique match from an ambiguous one
    entries = list(islice(
        session.search(session.credentials.base_dn, email_filter(email), attributes=attributes), 2))
    if not entries:
        logger.info(f"No directory account found for email {email}")
        return None
    if len(entries) > 1:
        logger.warning(f"Multiple directory accounts share email {email}; treating it as not found")
        return None
    return entries[0]


def find_account_dn(session, email):
    """Return the DN of the account owning ``email``, or None.

    Only the DN is requested from the server. An email shared by several
    accounts resolves to None rather than to an arbitrary one of them.
    """
    entry = _matching_entries(session, email, [ldap3.NO_ATTRIBUTES])
    if entry is None:
        return None
    logger.info(f"Email {email} resolved to {entry.dn}")
    return entry.dn


def find_account_name(session, email):
    """Return the sAMAccountName of the account owning ``email``, or None"""
    entry = _matching_entries(session, email, ['sAMAccountName'])
    if entry is None:
        return None
    value = entry.attributes.get('sAMAccountName')
    if isinstance(value, list):
        value = value[0] if value else None
    return value or None
