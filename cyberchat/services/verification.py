"""Verification Code Issuer: short-lived email verification codes."""
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union
import logging
import secrets

from cyberchat.core.clock import Clock, utcnow
from cyberchat.models.account import Account
from cyberchat.services.store import CredentialStore

logger = logging.getLogger(__name__)

CODE_BYTES = 3  # 6 hex characters


def generate_code() -> str:
    return secrets.token_hex(CODE_BYTES).upper()


class VerificationCodeIssuer:
    """
    Issues and checks verification codes.

    Only the most recently issued code for an account is valid, and a code
    is usable strictly before its expiry.
    """

    def __init__(
        self,
        store: CredentialStore,
        ttl_minutes: int = 10,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock or utcnow

    def issue(self, account: Account) -> Tuple[str, datetime]:
        """
        Generate a code for `account` and record it, replacing any earlier one.

        Returns:
            (code, expiry)
        """
        code = generate_code()
        expiry = self.clock() + self.ttl
        self.store.set_verification_code(account.id, code, expiry)
        logger.info(f"Verification code issued: account={account.id}, expires={expiry.isoformat()}")
        return code, expiry

    def check(self, account: Union[Account, str], submitted_code: str) -> bool:
        """
        Verify `account` (an Account or its email) with `submitted_code`.

        On success the account becomes verified and the code is cleared in
        one atomic store operation. On failure nothing changes.
        """
        email = account.email if isinstance(account, Account) else account
        if not email or not submitted_code:
            return False
        verified_account = self.store.consume_verification_code(email, submitted_code.strip(), self.clock())
        if verified_account is None:
            logger.info(f"Verification rejected for {email}")
            return False
        logger.info(f"Account verified: account={verified_account.id}")
        return True
