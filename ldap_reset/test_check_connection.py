from unittest.mock import patch

import pytest

from .check_connection import check_connection, main
from .config import ServiceCredentials
from .errors import ConfigurationError


@pytest.fixture
def credentials():
    return ServiceCredentials(
        server_url='ldaps://dc01.example.com', bind_dn='cn=svc-reset,dc=example,dc=com',
        bind_password='secret', base_dn='dc=example,dc=com')


@pytest.fixture
def mock_conn():
    with patch('ldap_reset.directory.ldap3.Server'), \
            patch('ldap_reset.directory.ldap3.Connection') as MockConnection:
        conn = MockConnection.return_value
        conn.bind.return_value = True
        conn.result = {'result': 0, 'description': 'success', 'message': ''}
        conn.response = []
        yield conn


def test_check_connection_bind_only(mock_conn, credentials):
    assert check_connection(credentials) is True
    mock_conn.search.assert_not_called()
    mock_conn.unbind.assert_called_once()


def test_check_connection_bind_failure(mock_conn, credentials):
    mock_conn.bind.return_value = False
    mock_conn.result = {'result': 49, 'description': 'invalidCredentials', 'message': ''}
    assert check_connection(credentials) is False
    mock_conn.unbind.assert_called_once()


def test_check_connection_resolves_email(mock_conn, credentials):
    mock_conn.response = [{'type': 'searchResEntry', 'dn': 'cn=john,ou=users,dc=example,dc=com',
                           'attributes': {'sAMAccountName': 'john'}}]
    assert check_connection(credentials, 'john@example.com') is True
    assert mock_conn.search.call_count == 2


def test_check_connection_unknown_email(mock_conn, credentials):
    assert check_connection(credentials, 'nobody@example.com') is False


@patch('ldap_reset.check_connection.check_connection', return_value=True)
@patch('ldap_reset.check_connection.load_credentials')
def test_main_exit_codes(mock_load, mock_check, credentials):
    mock_load.return_value = credentials
    assert main([]) == 0
    mock_check.assert_called_once_with(credentials, None)

    mock_check.return_value = False
    assert main(['john@example.com']) == 1
    mock_check.assert_called_with(credentials, 'john@example.com')

    mock_load.side_effect = ConfigurationError('LDAP_URL is not set')
    assert main([]) == 2
