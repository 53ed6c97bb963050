"""One service-account session against the directory server.

A ``DirectorySession`` owns a single ldap3 connection for the lifetime of one
request. It is used as a context manager so the connection is unbound on every
exit path::

    with DirectorySession(credentials) as session:
        session.authenticate()
        for entry in session.search(base_dn, '(mail=john@example.com)'):
            ...

Sessions are never shared between requests or threads.
"""
import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional

import ldap3
from ldap3.core.exceptions import LDAPException
from ldap3.core.results import RESULT_SIZE_LIMIT_EXCEEDED, RESULT_SUCCESS

from .config import ServiceCredentials
from .errors import (
    AuthenticationError,
    DirectoryConnectionError,
    InvalidModificationError,
    ModifyError,
    SearchError,
)

logger = logging.getLogger(__name__)

PAGED_RESULTS_OID = '1.2.840.113556.1.4.319'

MODIFY_OPERATIONS = {
    'replace': ldap3.MODIFY_REPLACE,
    'add': ldap3.MODIFY_ADD,
    'delete': ldap3.MODIFY_DELETE,
}


@dataclass(frozen=True)
class DirectoryEntry:
    dn: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Change:
    """A single attribute change inside a ``ModificationRequest``"""
    operation: str
    attribute: str
    values: Any

    def value_list(self):
        if isinstance(self.values, (list, tuple)):
            return list(self.values)
        return [self.values]


class ModificationRequest:
    """Ordered attribute changes sent to the server as one modify operation.

    The directory applies all of them or none. The request is checked when it
    is built, so a malformed one never reaches the network.
    """

    def __init__(self, changes: Iterable[Change]):
        self.changes: List[Change] = list(changes)
        self.validate()

    def validate(self):
        if not self.changes:
            raise InvalidModificationError("Modification request must contain at least one change")
        for index, change in enumerate(self.changes):
            if not isinstance(change, Change):
                raise InvalidModificationError(f"Change #{index} is not a Change: {type(change).__name__}")
            if change.operation not in MODIFY_OPERATIONS:
                raise InvalidModificationError(
                    f"Change #{index} has invalid operation {change.operation!r}, "
                    f"expected one of {', '.join(MODIFY_OPERATIONS)}")
            if not change.attribute:
                raise InvalidModificationError(f"Change #{index} has no attribute name")
            values = change.value_list()
            if not values or any(v is None or v == '' or v == b'' for v in values):
                raise InvalidModificationError(f"Change #{index} ({change.attribute}) has no values")

    @property
    def attributes(self):
        return [change.attribute for change in self.changes]

    def to_ldap3(self):
        """Changes in the ``{attribute: [(operation, values), ...]}`` shape ldap3 expects"""
        modifications = {}
        for change in self.changes:
            modifications.setdefault(change.attribute, []).append(
                (MODIFY_OPERATIONS[change.operation], change.value_list()))
        return modifications

    def __iter__(self):
        return iter(self.changes)

    def __len__(self):
        return len(self.changes)


def describe_result(result):
    """Human readable reason from an ldap3 result dict"""
    if not result:
        return 'no result returned by server'
    description = result.get('description') or 'unknown error'
    message = (result.get('message') or '').strip()
    return f"{description} ({message})" if message else description


def build_server(credentials: ServiceCredentials):
    tls = ldap3.Tls(
        validate=ssl.CERT_REQUIRED if credentials.tls_verify else ssl.CERT_NONE,
        ca_certs_file=credentials.ca_certs_file,
    )
    return ldap3.Server(
        credentials.server_url,
        connect_timeout=credentials.connect_timeout,
        tls=tls,
        get_info=ldap3.NONE,
    )


class DirectorySession:
    """Service-account connection to the directory, released on exit"""

    def __init__(self, credentials: ServiceCredentials):
        self.credentials = credentials
        self.connection: Optional[ldap3.Connection] = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

    def acquire(self):
        """Open the network connection. Nothing needs releasing if this fails."""
        if self.connection is not None:
            return self.connection

        server_url = self.credentials.server_url
        if not self.credentials.tls_verify:
            logger.warning(f"TLS certificate verification is disabled for {server_url}")

        connection = None
        try:
            connection = ldap3.Connection(
                build_server(self.credentials),
                user=self.credentials.bind_dn,
                password=self.credentials.bind_password,
                auto_bind=ldap3.AUTO_BIND_NONE,
                receive_timeout=self.credentials.operation_timeout,
                raise_exceptions=False,
            )
            connection.open()
            if self.credentials.start_tls:
                connection.start_tls()
        except LDAPException as e:
            logger.error(f"LDAP connection to {server_url} failed: {e}")
            if connection is not None and connection.closed is False:
                self._unbind(connection)
            raise DirectoryConnectionError('open', server_url, str(e)) from e

        logger.info(f"LDAP connection opened: {server_url}")
        self.connection = connection
        return connection

    def authenticate(self):
        connection = self._require_connection('bind')
        bind_dn = self.credentials.bind_dn
        try:
            bound = connection.bind()
        except LDAPException as e:
            logger.error(f"LDAP bind for {bind_dn} could not complete: {e}")
            raise DirectoryConnectionError('bind', bind_dn, str(e)) from e

        if not bound:
            reason = describe_result(connection.result)
            logger.error(f"LDAP binding failed for {bind_dn}: {reason}")
            raise AuthenticationError('bind', bind_dn, reason)
        logger.info(f"LDAP connection binding successful: {bind_dn}")

    def search(self, search_base, search_filter, attributes=None, scope=ldap3.SUBTREE) -> Iterator[DirectoryEntry]:
        """Yield matching entries page by page until the server signals the end.

        Entries are produced lazily, so a caller that stops iterating early
        never asks the server for further pages.
        """
        connection = self._require_connection('search')
        target = f"{search_filter} under {search_base}"
        cookie = None
        while True:
            try:
                connection.search(
                    search_base=search_base,
                    search_filter=search_filter,
                    search_scope=scope,
                    attributes=attributes,
                    paged_size=self.credentials.page_size,
                    paged_cookie=cookie,
                )
            except LDAPException as e:
                logger.error(f"LDAP search error for {target}: {e}")
                raise SearchError('search', target, str(e)) from e

            result = connection.result or {}
            if result.get('result', RESULT_SUCCESS) not in (RESULT_SUCCESS, RESULT_SIZE_LIMIT_EXCEEDED):
                reason = describe_result(result)
                logger.error(f"LDAP search error for {target}: {reason}")
                raise SearchError('search', target, reason)

            # Copy: the connection reuses its response list for the next page
            for response in list(connection.response or []):
                if response.get('type') == 'searchResEntry':
                    yield DirectoryEntry(dn=response['dn'], attributes=dict(response.get('attributes') or {}))

            cookie = _paged_cookie(result)
            if not cookie:
                return

    def modify(self, dn, request):
        if not isinstance(request, ModificationRequest):
            request = ModificationRequest(request)
        connection = self._require_connection('modify')
        try:
            modified = connection.modify(dn, request.to_ldap3())
        except LDAPException as e:
            logger.error(f"LDAP modify error for {dn}: {e}")
            raise ModifyError('modify', dn, str(e)) from e

        if not modified:
            reason = describe_result(connection.result)
            logger.error(f"LDAP modify rejected for {dn} ({', '.join(request.attributes)}): {reason}")
            raise ModifyError('modify', dn, reason)
        logger.info(f"LDAP modify successful for {dn}: {', '.join(request.attributes)}")

    def release(self):
        """Unbind the connection. Safe to call repeatedly; never raises."""
        connection, self.connection = self.connection, None
        if connection is not None:
            self._unbind(connection)

    def _unbind(self, connection):
        try:
            connection.unbind()
        except Exception as e:
            # release never raises over an error already in flight
            logger.warning(f"Failed to unbind LDAP connection to {self.credentials.server_url}: {e}")

    def _require_connection(self, operation):
        if self.connection is None:
            raise DirectoryConnectionError(operation, self.credentials.server_url, 'connection is not open')
        return self.connection


def _paged_cookie(result):
    try:
        return result['controls'][PAGED_RESULTS_OID]['value']['cookie']
    except (KeyError, TypeError):
        return None
