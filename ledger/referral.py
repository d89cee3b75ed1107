import random
import re
from typing import Optional

import structlog

from .models import Account
from .storage import SqliteUserStore

logger = structlog.get_logger(__name__)

REFERRAL_BONUS = 25

_WHITESPACE = re.compile(r"\s")


def generate_referral_code(name: str, rng: Optional[random.Random] = None) -> str:
    """Uppercased name without whitespace, followed by a random 3-digit suffix."""
    rng = rng or random
    return f"{_WHITESPACE.sub('', name.upper())}{rng.randint(100, 999)}"


def normalize_referral_code(code: Optional[str]) -> Optional[str]:
    if code is None:
        return None
    code = code.strip().lower()
    return code or None


class ReferralEngine:
    def __init__(self, store: SqliteUserStore, bonus: int = REFERRAL_BONUS):
        self.store = store
        self.bonus = bonus

    def apply(self, new_account: Account, referral_code: Optional[str]) -> Optional[Account]:
        """
        Credit the owner of `referral_code` for bringing in `new_account`.

        Only called while `new_account` is being created. Returns the credited
        referrer, or None when the code is unknown or belongs to the new
        account itself.
        """
        code = normalize_referral_code(referral_code)
        if code is None:
            return None

        with self.store.transaction():
            referrer = self.store.get_by_referral_code(code)
            if referrer is None:
                logger.info("referral_code_unknown", referred=new_account.name, code=code)
                return None
            if referrer.id == new_account.id or referrer.name == new_account.name:
                logger.info("referral_self_ignored", name=new_account.name)
                return None

            referrer = self.store.record_referral(referrer.id, self.bonus)

        logger.info(
            "referral_applied",
            referrer=referrer.name,
            referred=new_account.name,
            bonus=self.bonus,
            referral_count=referrer.referral_count,
        )
        return referrer
