import random
from typing import Optional

import structlog

from .errors import (
    LedgerServiceError,
    InvalidRequestError,
    AccountNotFoundError,
    InsufficientCreditsError,
)
from .models import Account
from .policy import PrivilegedAccountPolicy
from .referral import ReferralEngine, generate_referral_code
from .storage import SqliteUserStore

logger = structlog.get_logger(__name__)

STARTING_CREDITS = 50
REFERRAL_CODE_ATTEMPTS = 20


def normalize_name(name: Optional[str]) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidRequestError("Name is required")
    return name.strip().lower()


def validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidRequestError("Amount must be a positive integer")
    return amount


class LedgerService:
    def __init__(
        self,
        store: Optional[SqliteUserStore] = None,
        privileged_policy: Optional[PrivilegedAccountPolicy] = None,
        referral_engine: Optional[ReferralEngine] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store or SqliteUserStore()
        self.privileged_policy = privileged_policy or PrivilegedAccountPolicy()
        self.referral_engine = referral_engine or ReferralEngine(self.store)
        self.rng = rng or random.Random()

    def login_or_create(self, name: str, referral_code: Optional[str] = None) -> Account:
        normalized = normalize_name(name)

        with self.store.transaction():
            account = self.store.get_by_name(normalized)
            is_new = account is None
            if is_new:
                account = self.store.insert(
                    normalized, STARTING_CREDITS, self._unique_referral_code(name)
                )
                logger.info("account_created", name=normalized, referral_code=account.referral_code)

            if self.privileged_policy.is_privileged(normalized):
                account = self.store.set_credits(account.id, self.privileged_policy.credits)
                logger.warning("privileged_credits_applied", name=normalized, credits=account.credits)

            if is_new and referral_code:
                self.referral_engine.apply(account, referral_code)
                account = self.store.get_by_id(account.id)

        return account

    def spend(self, name: str, amount: int) -> Account:
        normalized = normalize_name(name)
        amount = validate_amount(amount)

        with self.store.transaction():
            account = self._require_account(normalized)
            if account.credits < amount:
                logger.info(
                    "spend_rejected", name=normalized, amount=amount, credits=account.credits
                )
                raise InsufficientCreditsError("Insufficient credits")
            account = self.store.adjust_credits(account.id, -amount)

        logger.info("credits_spent", name=normalized, amount=amount, credits=account.credits)
        return account

    def credit(self, name: str, amount: int) -> Account:
        normalized = normalize_name(name)
        amount = validate_amount(amount)

        with self.store.transaction():
            account = self._require_account(normalized)
            account = self.store.adjust_credits(account.id, amount)

        logger.info("credits_added", name=normalized, amount=amount, credits=account.credits)
        return account

    def get_account(self, name: str) -> Account:
        return self._require_account(normalize_name(name))

    def _require_account(self, normalized_name: str) -> Account:
        account = self.store.get_by_name(normalized_name)
        if account is None:
            raise AccountNotFoundError("User not found")
        return account

    def _unique_referral_code(self, name: str) -> str:
        for _ in range(REFERRAL_CODE_ATTEMPTS):
            code = generate_referral_code(name, self.rng)
            if not self.store.referral_code_exists(code):
                return code
        raise LedgerServiceError(f"Could not allocate a unique referral code for {name!r}")
