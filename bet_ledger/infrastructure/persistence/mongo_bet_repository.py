"""MongoDB bet repository implementation"""
import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from bet_ledger.application.ports.bet_repository_port import BetRepositoryPort
from bet_ledger.domain.entities.bet import Bet, BetStatus
from bet_ledger.domain.errors import ConcurrentModification, NotFound
from bet_ledger.infrastructure.persistence.store_retry import with_store_retry

logger = logging.getLogger(__name__)

T = TypeVar('T')


class MongoBetRepository(BetRepositoryPort):
    """MongoDB implementation of bet repository"""

    def __init__(self, db: Database, retry_attempts: int = 3, retry_delay: float = 0.1):
        self.db = db
        self.collection = db.bets
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay

    def ensure_indexes(self) -> None:
        self._retry(lambda: self.collection.create_index([("group_id", 1), ("created_at", DESCENDING)]), "index bets")
        self._retry(lambda: self.collection.create_index([("creator_id", 1)]), "index bets")
        self._retry(lambda: self.collection.create_index([("participants", 1)]), "index bets")
        self._retry(lambda: self.collection.create_index([("status", 1), ("expires_at", 1)]), "index bets")

    def create(self, bet: Bet) -> Bet:
        """Save a new bet to MongoDB"""
        bet.version = 0
        data = bet.to_dict()
        result = self._write(lambda: self.collection.insert_one(data), "insert bet")
        bet.id = str(result.inserted_id)
        return bet

    def get(self, bet_id: str) -> Bet:
        oid = self._object_id(bet_id)
        data = self._retry(lambda: self.collection.find_one({"_id": oid}), f"load bet {bet_id}")
        if data is None:
            raise NotFound(f"Bet {bet_id} not found")
        return Bet.from_dict(data)

    def update(self, bet_id: str, patch: Dict[str, Any]) -> Bet:
        oid = self._object_id(bet_id)
        patch = {k: v for k, v in patch.items() if k not in ("_id", "id", "version")}
        data = self._write(
            lambda: self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": patch, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER
            ),
            f"update bet {bet_id}"
        )
        if data is None:
            raise NotFound(f"Bet {bet_id} not found")
        return Bet.from_dict(data)

    def replace(self, bet: Bet, expected_version: int) -> Bet:
        oid = self._object_id(bet.id)
        data = bet.to_dict()
        data["version"] = expected_version + 1
        result = self._write(
            lambda: self.collection.replace_one({"_id": oid, "version": expected_version}, data),
            f"write bet {bet.id}"
        )
        if result.matched_count == 0:
            if self._retry(lambda: self.collection.count_documents({"_id": oid}), f"check bet {bet.id}") == 0:
                raise NotFound(f"Bet {bet.id} not found")
            raise ConcurrentModification(f"Bet {bet.id} was modified concurrently")
        bet.version = expected_version + 1
        return bet

    def delete(self, bet_id: str, expected_version: Optional[int] = None) -> None:
        oid = self._object_id(bet_id)
        query = {"_id": oid}
        if expected_version is not None:
            query["version"] = expected_version
        result = self._write(lambda: self.collection.delete_one(query), f"delete bet {bet_id}")
        if result.deleted_count == 0:
            if expected_version is not None and self._retry(
                lambda: self.collection.count_documents({"_id": oid}), f"check bet {bet_id}"
            ):
                raise ConcurrentModification(f"Bet {bet_id} was modified concurrently")
            raise NotFound(f"Bet {bet_id} not found")

    def list_by_group(self, group_id: str) -> List[Bet]:
        return self._find({"group_id": group_id}, f"list bets of group {group_id}")

    def list_by_user(self, user_id: str) -> List[Bet]:
        query = {"$or": [{"creator_id": user_id}, {"participants": user_id}]}
        return self._find(query, f"list bets of user {user_id}")

    def list_open_expiring_before(self, cutoff: float) -> List[Bet]:
        query = {"status": BetStatus.OPEN.value, "expires_at": {"$lte": cutoff}}
        return self._find(query, "list expiring bets")

    def _find(self, query: Dict[str, Any], description: str) -> List[Bet]:
        documents = self._retry(
            lambda: list(self.collection.find(query).sort("created_at", DESCENDING)),
            description
        )
        return [Bet.from_dict(data) for data in documents]

    def _retry(self, operation: Callable[[], T], description: str) -> T:
        return with_store_retry(operation, self.retry_attempts, self.retry_delay, description)

    def _write(self, operation: Callable[[], T], description: str) -> T:
        # Single attempt; writes are never replayed
        return with_store_retry(operation, 1, 0, description)

    @staticmethod
    def _object_id(bet_id: str) -> ObjectId:
        if not bet_id or not ObjectId.is_valid(bet_id):
            raise NotFound(f"Bet {bet_id} not found")
        return ObjectId(bet_id)
