"""Error taxonomy for wallet and payment operations.

Every failure is raised as a :class:`PaymentError` subclass carrying an
:class:`ErrorKind`. The process exit code is derived from the kind alone,
so scripts driving the CLI can branch on the failure class without parsing
messages.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agent_payment.wallet.resolver import MissingConfigPrompt


class ErrorKind(str, Enum):
    ALREADY_EXISTS = "already_exists"
    WALLET_NOT_FOUND = "wallet_not_found"
    MALFORMED = "malformed"
    INVALID_PASSWORD = "invalid_password"
    MISSING_CONFIG = "missing_config"
    INVALID_CONFIG = "invalid_config"
    INVALID_ARGUMENT = "invalid_argument"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NETWORK = "network"
    TRANSACTION_FAILED = "transaction_failed"
    OTHER = "other"


_EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.ALREADY_EXISTS: 1,
    ErrorKind.WALLET_NOT_FOUND: 12,
    ErrorKind.MALFORMED: 1,
    ErrorKind.INVALID_PASSWORD: 1,
    ErrorKind.MISSING_CONFIG: 10,
    ErrorKind.INVALID_CONFIG: 11,
    ErrorKind.INVALID_ARGUMENT: 20,
    ErrorKind.INSUFFICIENT_BALANCE: 1,
    ErrorKind.NETWORK: 3,
    ErrorKind.TRANSACTION_FAILED: 2,
    ErrorKind.OTHER: 1,
}


def exit_code_for(kind: ErrorKind) -> int:
    """Return the process exit code for an error kind."""
    return _EXIT_CODES[kind]


class PaymentError(Exception):
    """Base class for every error raised by this package."""

    kind: ErrorKind = ErrorKind.OTHER
    label: str = ""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        message = f"{self.label}: {detail}" if self.label and detail else (self.label or detail)
        super().__init__(message)

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.kind)


class WalletExistsError(PaymentError):
    kind = ErrorKind.ALREADY_EXISTS
    label = "Wallet already exists at"

    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.path = path


class WalletNotFoundError(PaymentError):
    kind = ErrorKind.WALLET_NOT_FOUND
    label = "Wallet not found"


class MalformedKeystoreError(PaymentError):
    kind = ErrorKind.MALFORMED
    label = "Malformed keystore"


class InvalidPasswordError(PaymentError):
    kind = ErrorKind.INVALID_PASSWORD
    label = "Invalid password"


class MissingConfigError(PaymentError):
    """Raised when the network configuration is incomplete.

    ``prompt`` holds the structured remediation request that the CLI
    prints as JSON on stderr.
    """

    kind = ErrorKind.MISSING_CONFIG
    label = "Missing configuration"

    def __init__(self, detail: str, prompt: MissingConfigPrompt | None = None) -> None:
        super().__init__(detail)
        self.prompt = prompt


class InvalidConfigError(PaymentError):
    kind = ErrorKind.INVALID_CONFIG
    label = "Invalid configuration"


class InvalidArgumentError(PaymentError):
    kind = ErrorKind.INVALID_ARGUMENT
    label = "Invalid argument"


class InvalidAmountError(InvalidArgumentError):
    label = "Invalid amount"


class InsufficientBalanceError(PaymentError):
    kind = ErrorKind.INSUFFICIENT_BALANCE
    label = "Insufficient balance"


class NetworkError(PaymentError):
    kind = ErrorKind.NETWORK
    label = "Network error"


class TransactionFailedError(PaymentError):
    kind = ErrorKind.TRANSACTION_FAILED
    label = "Transaction failed"
