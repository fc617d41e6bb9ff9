from .bet_repository_port import BetRepositoryPort
from .points_ledger_port import PointsLedgerPort
from .group_membership_port import GroupMembershipPort
from .message_publisher_port import MessagePublisherPort

__all__ = [
    'BetRepositoryPort',
    'PointsLedgerPort',
    'GroupMembershipPort',
    'MessagePublisherPort'
]
