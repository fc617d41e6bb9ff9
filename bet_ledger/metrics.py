"""Prometheus business metrics for the bet ledger"""
from prometheus_client import Counter

BETS_CREATED = Counter(
    'bet_ledger_bets_created_total',
    'Bets created'
)
STAKES_PLACED = Counter(
    'bet_ledger_stakes_placed_total',
    'Stakes recorded on bets'
)
STAKES_REJECTED = Counter(
    'bet_ledger_stakes_rejected_total',
    'Stake attempts rejected',
    ['kind']
)
COMPENSATING_REFUNDS = Counter(
    'bet_ledger_compensating_refunds_total',
    'Debits reversed because the stake could not be recorded',
    ['outcome']
)
BETS_LOCKED = Counter(
    'bet_ledger_bets_locked_total',
    'Bets moved from open to locked',
    ['trigger']
)
SETTLEMENTS = Counter(
    'bet_ledger_settlements_total',
    'Bets resolved',
    ['payout_status']
)
COINS_STAKED = Counter(
    'bet_ledger_coins_staked_total',
    'Coins debited for stakes'
)
COINS_PAID_OUT = Counter(
    'bet_ledger_coins_paid_out_total',
    'Coins credited to winners and refunded participants'
)


class BetMetrics:
    """Thin facade so use cases don't touch prometheus objects directly"""

    @staticmethod
    def bet_created() -> None:
        BETS_CREATED.inc()

    @staticmethod
    def stake_placed(amount: int) -> None:
        STAKES_PLACED.inc()
        COINS_STAKED.inc(amount)

    @staticmethod
    def stake_rejected(kind: str) -> None:
        STAKES_REJECTED.labels(kind=kind).inc()

    @staticmethod
    def compensation(succeeded: bool) -> None:
        COMPENSATING_REFUNDS.labels(outcome="ok" if succeeded else "failed").inc()

    @staticmethod
    def bet_locked(trigger: str) -> None:
        BETS_LOCKED.labels(trigger=trigger).inc()

    @staticmethod
    def settled(payout_status: str, coins_paid: int) -> None:
        SETTLEMENTS.labels(payout_status=payout_status).inc()
        if coins_paid:
            COINS_PAID_OUT.inc(coins_paid)
