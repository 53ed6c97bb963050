import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

TLS_STRICT = 'strict'
TLS_NONE = 'none'
NON_PRODUCTION_ENVIRONMENTS = ('development', 'test')

DEFAULT_TIMEOUT = 5
DEFAULT_PAGE_SIZE = 100
DEFAULT_AUDIT_ATTRIBUTE = 'description'

TRUE_VALUES = ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class ServiceCredentials:
    """Directory connection settings for the service account.

    Built once at startup and shared read-only by every reset request.
    """
    server_url: str
    bind_dn: str
    bind_password: str
    base_dn: str
    tls_verify: bool = True
    ca_certs_file: Optional[str] = None
    start_tls: bool = False
    connect_timeout: float = DEFAULT_TIMEOUT
    operation_timeout: float = DEFAULT_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    audit_attribute: Optional[str] = DEFAULT_AUDIT_ATTRIBUTE

    def __repr__(self):
        # keep the bind password out of tracebacks and log lines
        return (f"ServiceCredentials(server_url={self.server_url!r}, bind_dn={self.bind_dn!r}, "
                f"base_dn={self.base_dn!r}, tls_verify={self.tls_verify})")


def normalize_base_dn(raw_base_dn):
    """Expand a dotted domain (``example.com``) into ``DC=example,DC=com``"""
    raw_base_dn = raw_base_dn.strip()
    if '=' in raw_base_dn:
        return raw_base_dn
    return ','.join([f'DC={x}' for x in raw_base_dn.split('.') if x])


def _required(environ, name):
    value = (environ.get(name) or '').strip()
    if not value:
        raise ConfigurationError(f"{name} is not set")
    return value


def _number(environ, name, default, cast=float):
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero")
    return value


def _tls_verify(environ):
    mode = (environ.get('LDAP_TLS_VERIFY') or TLS_STRICT).strip().lower()
    if mode == TLS_STRICT:
        return True
    if mode != TLS_NONE:
        raise ConfigurationError(f"LDAP_TLS_VERIFY must be '{TLS_STRICT}' or '{TLS_NONE}', got {mode!r}")
    app_env = (environ.get('APP_ENV') or 'production').strip().lower()
    if app_env not in NON_PRODUCTION_ENVIRONMENTS:
        raise ConfigurationError(
            f"LDAP_TLS_VERIFY={TLS_NONE} is only allowed when APP_ENV is one of "
            f"{', '.join(NON_PRODUCTION_ENVIRONMENTS)} (APP_ENV={app_env})")
    return False


def load_credentials(environ: Optional[Mapping[str, str]] = None) -> ServiceCredentials:
    """Read service credentials from the environment.

    When ``environ`` is omitted a ``.env`` file is loaded first and the process
    environment is used. Raises ``ConfigurationError`` for anything missing or
    malformed.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    server_url = _required(environ, 'LDAP_URL')
    if not server_url.lower().startswith(('ldap://', 'ldaps://')):
        raise ConfigurationError(f"LDAP_URL must start with ldap:// or ldaps://, got {server_url!r}")

    audit_attribute = (environ.get('LDAP_AUDIT_ATTRIBUTE') or DEFAULT_AUDIT_ATTRIBUTE).strip()
    if audit_attribute.lower() == 'none':
        audit_attribute = None

    return ServiceCredentials(
        server_url=server_url,
        bind_dn=_required(environ, 'LDAP_BIND_DN'),
        bind_password=_required(environ, 'LDAP_BIND_PASSWORD'),
        base_dn=normalize_base_dn(_required(environ, 'LDAP_BASE_DN')),
        tls_verify=_tls_verify(environ),
        ca_certs_file=(environ.get('LDAP_CA_CERTS_FILE') or '').strip() or None,
        start_tls=(environ.get('LDAP_START_TLS') or '').strip().lower() in TRUE_VALUES,
        connect_timeout=_number(environ, 'LDAP_CONNECT_TIMEOUT', DEFAULT_TIMEOUT),
        operation_timeout=_number(environ, 'LDAP_OPERATION_TIMEOUT', DEFAULT_TIMEOUT),
        page_size=_number(environ, 'LDAP_PAGE_SIZE', DEFAULT_PAGE_SIZE, cast=int),
        audit_attribute=audit_attribute,
    )
