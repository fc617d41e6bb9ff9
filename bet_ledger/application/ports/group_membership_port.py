"""Group membership port (interface)"""
from abc import ABC, abstractmethod


class GroupMembershipPort(ABC):
    """Port for the external group membership service"""

    @abstractmethod
    def is_member(self, group_id: str, user_id: str) -> bool:
        """Check whether the user belongs to the group"""
        pass
