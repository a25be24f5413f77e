"""Credential Store: persistence for accounts and conversation turns.

Handles:
- Account creation and lookup (by id, by email)
- Verification code bookkeeping, including the atomic consume step
- Conversation turn storage and per-account history

Two backends implement the same interface: `MemoryCredentialStore` for
development and tests, `SqlCredentialStore` for SQLModel persistence.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional
import logging
import threading

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from cyberchat.core.errors import EmailAlreadyRegistered
from cyberchat.models.account import Account
from cyberchat.models.conversation import ConversationTurn

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Storage interface owned by the services layer."""

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        """Return the account with `account_id`, or None."""

    @abstractmethod
    def get_account_by_email(self, email: str) -> Optional[Account]:
        """Return the account registered under `email` (exact match), or None."""

    @abstractmethod
    def create_account(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
    ) -> Account:
        """
        Create an unverified account.

        Raises:
            EmailAlreadyRegistered: If `email` is taken
        """

    @abstractmethod
    def set_verification_code(self, account_id: str, code: str, expiry: datetime) -> None:
        """Record `code` as the only valid code for the account until `expiry`."""

    @abstractmethod
    def consume_verification_code(self, email: str, code: str, now: datetime) -> Optional[Account]:
        """
        Atomically verify an account.

        Sets verified=True and clears the code and expiry only if `code`
        matches the stored code and `now` is strictly before the expiry.

        Returns:
            The updated account, or None when nothing matched (no change made)
        """

    @abstractmethod
    def save_turn(
        self,
        account_id: str,
        message: str,
        response: str,
        suggested_topics: List[str],
        is_cyber_security_related: bool = False,
    ) -> ConversationTurn:
        """Persist a new conversation turn and return it."""

    @abstractmethod
    def list_turns(self, account_id: str) -> List[ConversationTurn]:
        """Turns owned by `account_id`, oldest first."""


def _copy_account(account: Account) -> Account:
    return Account(**account.model_dump())


def _copy_turn(turn: ConversationTurn) -> ConversationTurn:
    data = turn.model_dump()
    data["suggested_topics"] = list(data["suggested_topics"])
    return ConversationTurn(**data)


class MemoryCredentialStore(CredentialStore):
    """
    Process-local store.

    A single lock serialises every mutation; callers always receive copies
    so records can only change through this class.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._accounts: Dict[str, Account] = {}
        self._ids_by_email: Dict[str, str] = {}
        self._turns: Dict[str, List[ConversationTurn]] = {}

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return _copy_account(account) if account else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            account_id = self._ids_by_email.get(email)
            if account_id is None:
                return None
            return _copy_account(self._accounts[account_id])

    def create_account(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
    ) -> Account:
        with self._lock:
            if email in self._ids_by_email:
                raise EmailAlreadyRegistered()
            account = Account(email=email, username=username, password_hash=password_hash)
            self._accounts[account.id] = account
            self._ids_by_email[email] = account.id
            return _copy_account(account)

    def set_verification_code(self, account_id: str, code: str, expiry: datetime) -> None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                return
            account.verification_code = code
            account.verification_expiry = expiry

    def consume_verification_code(self, email: str, code: str, now: datetime) -> Optional[Account]:
        with self._lock:
            account_id = self._ids_by_email.get(email)
            account = self._accounts.get(account_id) if account_id else None
            if (
                account is None
                or account.verification_code is None
                or account.verification_expiry is None
                or account.verification_code != code
                or not now < account.verification_expiry
            ):
                return None
            account.verified = True
            account.verification_code = None
            account.verification_expiry = None
            return _copy_account(account)

    def save_turn(
        self,
        account_id: str,
        message: str,
        response: str,
        suggested_topics: List[str],
        is_cyber_security_related: bool = False,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            account_id=account_id,
            message=message,
            response=response,
            suggested_topics=list(suggested_topics),
            is_cyber_security_related=is_cyber_security_related,
        )
        with self._lock:
            self._turns.setdefault(account_id, []).append(turn)
        return _copy_turn(turn)

    def list_turns(self, account_id: str) -> List[ConversationTurn]:
        with self._lock:
            return [_copy_turn(turn) for turn in self._turns.get(account_id, [])]


class SqlCredentialStore(CredentialStore):
    """SQLModel-backed store; one database session per operation."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_account(self, account_id: str) -> Optional[Account]:
        with Session(self.engine) as session:
            return session.get(Account, account_id)

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with Session(self.engine) as session:
            statement = select(Account).where(Account.email == email)
            return session.exec(statement).first()

    def create_account(
        self,
        email: str,
        password_hash: str,
        username: Optional[str] = None,
    ) -> Account:
        account = Account(email=email, username=username, password_hash=password_hash)
        with Session(self.engine) as session:
            session.add(account)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise EmailAlreadyRegistered()
            session.refresh(account)
            return account

    def set_verification_code(self, account_id: str, code: str, expiry: datetime) -> None:
        statement = (
            update(Account)
            .where(Account.id == account_id)
            .values(verification_code=code, verification_expiry=expiry)
        )
        with Session(self.engine) as session:
            session.connection().execute(statement)
            session.commit()

    def consume_verification_code(self, email: str, code: str, now: datetime) -> Optional[Account]:
        # Single conditional UPDATE so concurrent attempts cannot both win.
        statement = (
            update(Account)
            .where(
                Account.email == email,
                Account.verification_code == code,
                Account.verification_expiry > now,
            )
            .values(verified=True, verification_code=None, verification_expiry=None)
        )
        with Session(self.engine) as session:
            result = session.connection().execute(statement)
            session.commit()
            if result.rowcount != 1:
                return None
            return session.exec(select(Account).where(Account.email == email)).first()

    def save_turn(
        self,
        account_id: str,
        message: str,
        response: str,
        suggested_topics: List[str],
        is_cyber_security_related: bool = False,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            account_id=account_id,
            message=message,
            response=response,
            suggested_topics=list(suggested_topics),
            is_cyber_security_related=is_cyber_security_related,
        )
        with Session(self.engine) as session:
            session.add(turn)
            session.commit()
            session.refresh(turn)
            return turn

    def list_turns(self, account_id: str) -> List[ConversationTurn]:
        statement = (
            select(ConversationTurn)
            .where(ConversationTurn.account_id == account_id)
            .order_by(ConversationTurn.created_at)
        )
        with Session(self.engine) as session:
            return list(session.exec(statement).all())
