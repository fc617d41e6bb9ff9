"""Dependency Injection Container"""
from pymongo import MongoClient

from bet_ledger.config.settings import Settings
from bet_ledger.infrastructure.persistence.mongo_bet_repository import MongoBetRepository
from bet_ledger.infrastructure.persistence.mongo_points_ledger import MongoPointsLedger
from bet_ledger.infrastructure.messaging.rabbitmq_message_publisher import RabbitMQMessagePublisher
from bet_ledger.infrastructure.external.http_group_membership_service import HttpGroupMembershipService
from bet_ledger.application.use_cases.bet_lifecycle_use_case import BetLifecycleUseCase
from bet_ledger.application.use_cases.place_bet_use_case import PlaceBetUseCase
from bet_ledger.application.use_cases.resolve_bet_use_case import ResolveBetUseCase
from bet_ledger.application.use_cases.bet_results_use_case import BetResultsUseCase


class Container:
    """Wires production adapters into the use cases. One per process."""

    def __init__(self, settings: Settings):
        self.settings = settings

        # MongoDB connection
        self.mongo_client = MongoClient(settings.mongodb_url)
        self.db = self.mongo_client[settings.mongodb_database]

        # Repositories
        self.bet_repository = MongoBetRepository(
            self.db,
            retry_attempts=settings.store_retry_attempts,
            retry_delay=settings.store_retry_delay
        )
        self.points_ledger = MongoPointsLedger(
            self.db,
            default_balance=settings.default_balance,
            retry_attempts=settings.store_retry_attempts,
            retry_delay=settings.store_retry_delay
        )
        self.bet_repository.ensure_indexes()
        self.points_ledger.ensure_indexes()

        # Message publisher
        self.message_publisher = RabbitMQMessagePublisher(
            settings.rabbitmq_url,
            exchange=settings.events_exchange
        )

        # External services (optional)
        self.group_membership = (
            HttpGroupMembershipService(settings.group_service_url) if settings.use_group_service else None
        )

        # Use cases
        self.lifecycle_use_case = BetLifecycleUseCase(
            bet_repository=self.bet_repository,
            message_publisher=self.message_publisher,
            group_membership=self.group_membership,
            cas_attempts=settings.cas_attempts,
            expiry_notice_hours=settings.expiry_notice_hours
        )
        self.place_bet_use_case = PlaceBetUseCase(
            bet_repository=self.bet_repository,
            points_ledger=self.points_ledger,
            lifecycle=self.lifecycle_use_case,
            cas_attempts=settings.cas_attempts
        )
        self.resolve_bet_use_case = ResolveBetUseCase(
            bet_repository=self.bet_repository,
            points_ledger=self.points_ledger,
            message_publisher=self.message_publisher,
            cas_attempts=settings.cas_attempts,
            payout_retry_attempts=settings.payout_retry_attempts,
            refund_on_no_winners=settings.refund_on_no_winners
        )
        self.results_use_case = BetResultsUseCase(self.bet_repository)

    def close(self):
        """Release broker and database connections"""
        self.message_publisher.close()
        self.mongo_client.close()
