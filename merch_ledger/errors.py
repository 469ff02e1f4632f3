"""
Exceptions raised by the ledger engine.

Hierarchy:
    LedgerError (base)
    ├── InvalidRequest - rejected before any transaction opens
    │   ├── InvalidAmount
    │   └── SameAccount
    ├── AccountNotFound
    │   └── DestinationNotFound
    ├── ItemNotFound
    ├── InsufficientBalance
    ├── InvalidCredential
    ├── InvalidToken
    ├── AlreadyExists - username conflict, resolved inside authenticate()
    ├── MalformedCredentialHash
    └── DeadlineExceeded

Database errors propagate as SQLAlchemy exceptions, except lock and
statement timeouts inside a transaction with a deadline, which become
DeadlineExceeded.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    default_error_code: str = "LEDGER_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message, "details": self.details}


class InvalidRequest(LedgerError):
    default_error_code = "INVALID_REQUEST"


class InvalidAmount(InvalidRequest):
    default_error_code = "INVALID_AMOUNT"


class SameAccount(InvalidRequest):
    default_error_code = "SAME_ACCOUNT"


class AccountNotFound(LedgerError):
    default_error_code = "ACCOUNT_NOT_FOUND"


class DestinationNotFound(AccountNotFound):
    default_error_code = "DESTINATION_NOT_FOUND"


class ItemNotFound(LedgerError):
    default_error_code = "ITEM_NOT_FOUND"


class InsufficientBalance(LedgerError):
    """
    Raised when a debit would take an account below zero.

    Attributes:
        account_id: account that would have been overdrawn
        required: coins the operation needed
        available: balance observed under the row lock
    """

    default_error_code = "INSUFFICIENT_BALANCE"

    def __init__(self, account_id, required: int, available: int):
        self.account_id = account_id
        self.required = required
        self.available = available
        # The message reaches API clients; the account id stays in details.
        super().__init__(
            "not enough coins",
            details={
                "account_id": str(account_id),
                "required": required,
                "available": available,
            },
        )


class InvalidCredential(LedgerError):
    default_error_code = "INVALID_CREDENTIAL"


class InvalidToken(LedgerError):
    default_error_code = "INVALID_TOKEN"


class AlreadyExists(LedgerError):
    default_error_code = "ALREADY_EXISTS"


class MalformedCredentialHash(LedgerError):
    default_error_code = "MALFORMED_CREDENTIAL_HASH"


class DeadlineExceeded(LedgerError):
    default_error_code = "DEADLINE_EXCEEDED"
