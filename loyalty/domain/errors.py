"""Domain error taxonomy

Every error carries a stable ``code`` that survives all the way to API
responses and operational alerts.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DomainError):
    """Bad input, rejected before any mutation"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        if code:
            self.code = code


class AccountNotFound(DomainError):
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} not found", {"account_id": account_id})
        self.account_id = account_id


class InsufficientFunds(DomainError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, account_id: int, balance: int, stamps: int, delta_balance: int, delta_stamps: int):
        super().__init__(
            f"Insufficient funds for account {account_id}: "
            f"balance={balance} (delta {delta_balance}), stamps={stamps} (delta {delta_stamps})",
            {
                "account_id": account_id,
                "balance": balance,
                "stamps": stamps,
                "delta_balance": delta_balance,
                "delta_stamps": delta_stamps,
            },
        )


class ConflictError(DomainError):
    code = "CONFLICT"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        if code:
            self.code = code


class UpstreamUnavailable(DomainError):
    """Transient failure of an external platform (timeout, non-2xx, bad envelope, expired session)"""

    code = "UPSTREAM_UNAVAILABLE"


class MintFailed(DomainError):
    code = "MINT_FAILED"


class SyncFailed(DomainError):
    """A sync cycle ended Failed; its cursor watermark did not move"""

    code = "SYNC_FAILED"


class SyncLeaseLost(SyncFailed):
    code = "SYNC_LEASE_LOST"

    def __init__(self, holder: str):
        super().__init__(f"Sync lease held by {holder} was taken over", {"holder": holder})
        self.holder = holder


class PartialRedemptionFailure(DomainError):
    """Stamps/balance were debited and committed but the code was not delivered"""

    code = "PARTIAL_REDEMPTION_FAILURE"

    def __init__(self, ledger_transaction_id: int, account_id: int, code_value: str, reason: str):
        super().__init__(
            f"Redemption debit {ledger_transaction_id} committed but discount code {code_value} "
            f"was not issued: {reason}",
            {
                "ledger_transaction_id": ledger_transaction_id,
                "account_id": account_id,
                "code": code_value,
            },
        )
        self.ledger_transaction_id = ledger_transaction_id
        self.account_id = account_id
        self.code_value = code_value
        self.reason = reason
