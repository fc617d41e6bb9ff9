"""MongoDB points ledger implementation"""
import logging
import time
import uuid
from typing import Callable, Optional, TypeVar

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from bet_ledger.application.ports.points_ledger_port import PointsLedgerPort
from bet_ledger.domain.errors import InsufficientFunds
from bet_ledger.infrastructure.persistence.store_retry import with_store_retry

logger = logging.getLogger(__name__)

T = TypeVar('T')


class MongoPointsLedger(PointsLedgerPort):
    """MongoDB implementation of the points ledger.

    Balances live in ``user_balances``. Every movement is journaled in
    ``ledger_entries`` under a unique idempotency key; the journal insert
    happens first, so a repeated key is detected before any balance moves.
    Debits are a single conditional update, which keeps balances from going
    below zero under concurrency.
    """

    def __init__(self, db: Database, default_balance: int = 1000, retry_attempts: int = 3, retry_delay: float = 0.1):
        self.db = db
        self.collection = db.user_balances
        self.entries = db.ledger_entries
        self.default_balance = default_balance
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay

    def ensure_indexes(self) -> None:
        self._retry(lambda: self.collection.create_index("user_id", unique=True), "index balances")
        self._retry(lambda: self.entries.create_index("idempotency_key", unique=True), "index ledger")

    def get_balance(self, user_id: str) -> int:
        """Get user balance, opening the account with the default balance if needed"""
        user = self._retry(lambda: self.collection.find_one({"user_id": user_id}), f"load balance of {user_id}")
        if user:
            return user.get('balance', self.default_balance)

        self._open_account(user_id)
        return self.default_balance

    def debit(self, user_id: str, amount: int, reason: str, idempotency_key: Optional[str] = None) -> int:
        self._check_amount(amount)
        key = idempotency_key or uuid.uuid4().hex
        if not self._journal(key, user_id, -amount, reason):
            logger.info(f"Debit {key} already applied, skipping")
            return self.get_balance(user_id)

        self._open_account(user_id)
        try:
            result = self._write(
                lambda: self.collection.find_one_and_update(
                    {"user_id": user_id, "balance": {"$gte": amount}},
                    {"$inc": {"balance": -amount}, "$set": {"updated_at": time.time()}},
                    return_document=ReturnDocument.AFTER
                ),
                f"debit {user_id}"
            )
        except Exception:
            self._unjournal(key)
            raise

        if result is None:
            self._unjournal(key)
            raise InsufficientFunds(user_id, amount, self.get_balance(user_id))

        logger.info(f"Debit: user={user_id}, amount={amount}, reason={reason}")
        return result['balance']

    def credit(self, user_id: str, amount: int, reason: str, idempotency_key: Optional[str] = None) -> int:
        self._check_amount(amount)
        key = idempotency_key or uuid.uuid4().hex
        if not self._journal(key, user_id, amount, reason):
            logger.info(f"Credit {key} already applied, skipping")
            return self.get_balance(user_id)

        self._open_account(user_id)
        try:
            result = self._write(
                lambda: self.collection.find_one_and_update(
                    {"user_id": user_id},
                    {"$inc": {"balance": amount}, "$set": {"updated_at": time.time()}},
                    return_document=ReturnDocument.AFTER
                ),
                f"credit {user_id}"
            )
        except Exception:
            self._unjournal(key)
            raise

        logger.info(f"Credit: user={user_id}, amount={amount}, reason={reason}")
        return result['balance']

    def _open_account(self, user_id: str) -> None:
        self._retry(
            lambda: self.collection.update_one(
                {"user_id": user_id},
                {"$setOnInsert": {
                    "user_id": user_id,
                    "balance": self.default_balance,
                    "created_at": time.time()
                }},
                upsert=True
            ),
            f"open account {user_id}"
        )

    def _journal(self, key: str, user_id: str, amount: int, reason: str) -> bool:
        """Record the movement; False when the key was already used"""
        try:
            self._write(
                lambda: self.entries.insert_one({
                    "idempotency_key": key,
                    "user_id": user_id,
                    "amount": amount,
                    "reason": reason,
                    "created_at": time.time()
                }),
                f"journal {key}"
            )
        except DuplicateKeyError:
            return False
        return True

    def _unjournal(self, key: str) -> None:
        self._retry(lambda: self.entries.delete_one({"idempotency_key": key}), f"unjournal {key}")

    def _retry(self, operation: Callable[[], T], description: str) -> T:
        return with_store_retry(operation, self.retry_attempts, self.retry_delay, description)

    def _write(self, operation: Callable[[], T], description: str) -> T:
        return with_store_retry(operation, 1, 0, description)

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValueError(f"Amount must be a positive integer, got {amount!r}")
