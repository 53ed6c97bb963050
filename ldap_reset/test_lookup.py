from unittest.mock import MagicMock

import ldap3
import pytest

from .directory import DirectoryEntry
from .errors import SearchError
from .lookup import email_filter, find_account_dn, find_account_name


@pytest.fixture
def session():
    session = MagicMock()
    session.credentials.base_dn = 'DC=example,DC=com'
    session.search.return_value = iter([])
    return session


def _stream(*entries):
    """Generator that records how far it was consumed."""
    consumed = []

    def gen():
        for entry in entries:
            consumed.append(entry.dn)
            yield entry
        consumed.append('<end>')

    return gen(), consumed


def test_email_filter_escapes_special_characters():
    """Filter metacharacters in the email cannot widen the search."""
    assert email_filter('john@example.com') == \
        '(&(objectCategory=person)(objectClass=user)(mail=john@example.com))'
    assert email_filter('*)(mail=*') == \
        '(&(objectCategory=person)(objectClass=user)(mail=\\2a\\29\\28mail=\\2a))'


def test_email_filter_keeps_case():
    assert 'mail=John.Doe@Example.com' in email_filter('John.Doe@Example.com')


def test_find_account_dn_single_match(session):
    session.search.return_value = iter([DirectoryEntry('CN=john,OU=Users,DC=example,DC=com')])

    assert find_account_dn(session, 'john@example.com') == 'CN=john,OU=Users,DC=example,DC=com'
    session.search.assert_called_once_with(
        'DC=example,DC=com', email_filter('john@example.com'), attributes=[ldap3.NO_ATTRIBUTES])


def test_find_account_dn_not_found(session):
    assert find_account_dn(session, 'nobody@example.com') is None


def test_find_account_dn_ambiguous_is_not_found(session):
    """Two accounts with the same email resolve to nobody."""
    stream, consumed = _stream(DirectoryEntry('CN=a,DC=example,DC=com'),
                               DirectoryEntry('CN=b,DC=example,DC=com'),
                               DirectoryEntry('CN=c,DC=example,DC=com'))
    session.search.return_value = stream

    assert find_account_dn(session, 'shared@example.com') is None
    # stops reading after the second match
    assert consumed == ['CN=a,DC=example,DC=com', 'CN=b,DC=example,DC=com']


def test_find_account_dn_propagates_search_error(session):
    def failing():
        raise SearchError('search', 'filter', 'operationsError')
        yield

    session.search.return_value = failing()
    with pytest.raises(SearchError):
        find_account_dn(session, 'john@example.com')


def test_find_account_name(session):
    session.search.return_value = iter([
        DirectoryEntry('CN=john,DC=example,DC=com', {'sAMAccountName': 'jdoe'})])

    assert find_account_name(session, 'john@example.com') == 'jdoe'
    assert session.search.call_args[1]['attributes'] == ['sAMAccountName']


def test_find_account_name_missing_attribute(session):
    session.search.return_value = iter([DirectoryEntry('CN=john,DC=example,DC=com', {'sAMAccountName': []})])
    assert find_account_name(session, 'john@example.com') is None


def test_find_account_name_ambiguous_is_not_found(session):
    """Two accounts sharing an email resolve to no name, not the first one."""
    session.search.return_value = iter([
        DirectoryEntry('CN=john,DC=example,DC=com', {'sAMAccountName': 'jdoe'}),
        DirectoryEntry('CN=john2,DC=example,DC=com', {'sAMAccountName': 'jdoe2'}),
    ])
    assert find_account_name(session, 'john@example.com') is None
