"""HTTP client for the group membership service"""
import logging

import requests

from bet_ledger.application.ports.group_membership_port import GroupMembershipPort
from bet_ledger.domain.errors import Unavailable

logger = logging.getLogger(__name__)


class HttpGroupMembershipService(GroupMembershipPort):
    """HTTP implementation of the group membership check.

    ``GET {base_url}/groups/{group_id}/members/{user_id}`` answers 200 for
    a member and 404 otherwise.
    """

    def __init__(self, base_url: str, timeout: float = 5):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def is_member(self, group_id: str, user_id: str) -> bool:
        try:
            response = requests.get(
                f"{self.base_url}/groups/{group_id}/members/{user_id}",
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Failed to check membership of {user_id} in {group_id}: {e}")
            raise Unavailable("Group membership service unavailable") from e

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False

        logger.warning(f"Membership check failed: {response.status_code} - {response.text}")
        raise Unavailable(f"Group membership service answered {response.status_code}")
