"""
Exceptions raised by the score-ingestion core.

Every error here is per-request and recoverable: the HTTP layer turns a
StackError into a JSON body with its status code, nothing more.
"""


class StackError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class InvalidInput(StackError):
    """Missing, malformed or negative session data."""


class IdentityRequired(StackError):
    """No authenticated identity and no device id on the request."""

    def __init__(self, message="Need deviceId"):
        super().__init__(message)


class NameUnavailable(StackError):
    """A display name is taken or reserved. Never reaches the caller."""

    def __init__(self, name):
        super().__init__(f"Name '{name}' is not available", 409)
        self.name = name


class ProviderError(StackError):
    """The identity provider refused or could not verify a token."""
    status_code = 401
