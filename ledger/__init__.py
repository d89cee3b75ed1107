"""
Credit Ledger for PhotoRevive

This module provides:
- A durable SQLite user store keyed by case-insensitive name
- Login-or-create, spend and credit operations, each atomic per account
- One-shot referral bonuses applied when a referred account is created
- An isolated allow-list policy for privileged accounts
"""

from .models import (
    Account,
    AccountResponse,
)
from .policy import PrivilegedAccountPolicy
from .referral import ReferralEngine
from .service import (
    LedgerService,
    LedgerServiceError,
    InvalidRequestError,
    AccountNotFoundError,
    InsufficientCreditsError,
)
from .storage import SqliteUserStore

__all__ = [
    "Account",
    "AccountResponse",
    "PrivilegedAccountPolicy",
    "ReferralEngine",
    "LedgerService",
    "LedgerServiceError",
    "InvalidRequestError",
    "AccountNotFoundError",
    "InsufficientCreditsError",
    "SqliteUserStore",
]
