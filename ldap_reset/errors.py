"""Exceptions raised by the password reset gateway"""


class PasswordResetError(Exception):
    """Base class for every error raised by the gateway"""


class ConfigurationError(PasswordResetError):
    """Required configuration is missing or invalid"""


class GenerationExhaustedError(PasswordResetError):
    """Not enough unique characters left to build a password"""


class InvalidModificationError(PasswordResetError):
    """A modification request is empty or has an incomplete change"""


class DirectoryError(PasswordResetError):
    """Failure talking to the directory server.

    ``operation`` names the LDAP operation (open, bind, search, modify) and
    ``target`` what it was aimed at (server, bind DN, filter or entry DN).
    Neither ever contains a password.
    """

    def __init__(self, operation, target, reason):
        self.operation = operation
        self.target = target
        self.reason = reason
        super().__init__(f"LDAP {operation} failed for {target}: {reason}")


class DirectoryConnectionError(DirectoryError):
    """The server is unreachable, the address is malformed or the socket failed"""


class AuthenticationError(DirectoryError):
    """The directory rejected the service account bind"""


class SearchError(DirectoryError):
    """The directory reported an error while returning search results"""


class ModifyError(DirectoryError):
    """The directory rejected a modify request"""
