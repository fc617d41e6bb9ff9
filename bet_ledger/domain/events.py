"""Bet lifecycle event types published to the notification dispatcher"""

BET_CREATED = "bet.created"
BET_LOCKED = "bet.locked"
BET_EXPIRING = "bet.expiring"
BET_RESOLVED = "bet.resolved"
