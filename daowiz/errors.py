"""
Error types raised by daowiz.

Every failure surfaces as one DaoWizError subclass carrying the underlying
exception in `cause`, so the CLI can report it and exit non-zero.
"""

from typing import Optional


class DaoWizError(Exception):
    """Base class for all daowiz failures"""

    kind = "error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self):
        if self.cause is not None:
            return f"{self.kind}: {self.message}: {self.cause}"
        return f"{self.kind}: {self.message}"


class ConfigurationError(DaoWizError):
    """A required input was not provided"""

    kind = "configuration error"


class NetworkError(DaoWizError):
    """The content store or the chain RPC endpoint failed"""

    kind = "network error"


class ConfirmationTimeoutError(NetworkError):
    """A transaction was not confirmed in time"""

    kind = "confirmation timeout"


class SerializationError(DaoWizError):
    """A JSON document could not be parsed or produced"""

    kind = "serialization error"


class EncodingError(DaoWizError):
    """Invalid hex or text encoding"""

    kind = "encoding error"


class InvalidInputError(DaoWizError):
    """The input was well-formed but violates an expectation"""

    kind = "invalid input"


class ReadError(DaoWizError):
    """A local file could not be read"""

    kind = "IO error"


class SigningError(DaoWizError):
    """The private key could not be used to sign"""

    kind = "signing error"


class ContractError(DaoWizError):
    """Constructor encoding failed or the deployment reverted"""

    kind = "contract error"
