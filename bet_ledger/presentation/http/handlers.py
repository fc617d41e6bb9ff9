"""HTTP REST handlers for the bet ledger"""
import json
import logging
from typing import Any, Callable, Dict, Optional

import sentry_sdk
from sentry_sdk.tracing import Transaction
from tornado import web
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from bet_ledger.application.dto.bet_response import BetResponse
from bet_ledger.application.dto.create_bet_request import CreateBetRequest
from bet_ledger.application.dto.edit_bet_request import EditBetRequest
from bet_ledger.application.dto.place_bet_request import PlaceBetRequest
from bet_ledger.application.dto.resolve_bet_request import ResolveBetRequest
from bet_ledger.application.use_cases.bet_lifecycle_use_case import BetLifecycleUseCase
from bet_ledger.application.use_cases.bet_results_use_case import BetResultsUseCase
from bet_ledger.application.use_cases.place_bet_use_case import PlaceBetUseCase
from bet_ledger.application.use_cases.resolve_bet_use_case import ResolveBetUseCase
from bet_ledger.domain.errors import BetLedgerError, ValidationError

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "validation_error": 400,
    "insufficient_funds": 402,
    "unauthorized": 403,
    "not_found": 404,
    "invalid_state": 409,
    "already_staked": 409,
    "results_not_available": 409,
    "expired": 410,
    "partial_settlement_failure": 500,
    "unavailable": 503,
}


class HealthHandler(web.RequestHandler):
    """Health check endpoint"""

    def get(self):
        self.write({"status": "ok"})


class MetricsHandler(web.RequestHandler):
    """Prometheus metrics endpoint"""

    def get(self):
        self.set_header('Content-Type', CONTENT_TYPE_LATEST)
        self.write(generate_latest())


class BaseHandler(web.RequestHandler):
    """Shared request plumbing: trace continuation, JSON bodies, error mapping"""

    def json_body(self) -> Dict[str, Any]:
        if not self.request.body:
            return {}
        try:
            data = json.loads(self.request.body)
        except (TypeError, ValueError):
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def status_filter(self) -> Optional[str]:
        return self.get_query_argument('status', None) or None

    def respond(self, op: str, name: str, action: Callable[[], Optional[dict]], status: int = 200) -> None:
        """Run action inside a transaction continued from upstream and write its result"""
        sentry_trace = self.request.headers.get('sentry-trace', '')
        baggage = self.request.headers.get('baggage', '')

        if sentry_trace:
            transaction = sentry_sdk.continue_trace({
                "sentry-trace": sentry_trace,
                "baggage": baggage
            }, op=op, name=name)
        else:
            transaction = Transaction(op=op, name=name)

        with sentry_sdk.start_transaction(transaction):
            try:
                result = action()
            except BetLedgerError as e:
                self.send_error_body(e)
                return
            except Exception as e:
                logger.exception(f"Unhandled error in {name}")
                sentry_sdk.capture_exception(e)
                self.set_status(500)
                self.write({"error": {"code": "internal", "message": str(e)}})
                return

        self.set_status(status)
        if result is None:
            self.finish()
        else:
            self.write(result)

    def send_error_body(self, error: BetLedgerError) -> None:
        status = ERROR_STATUS.get(error.kind, 500)
        if status >= 500:
            sentry_sdk.capture_exception(error)
        self.set_status(status)
        self.write({"error": error.to_dict()})


class GroupBetsHandler(BaseHandler):
    """List and create the bets of a group"""

    def initialize(self, lifecycle_use_case: BetLifecycleUseCase):
        self.lifecycle = lifecycle_use_case

    async def get(self, group_id: str):
        """GET /groups/{group_id}/bets[?status=]"""
        def action():
            bets = self.lifecycle.list_group_bets(group_id, self.status_filter())
            return {"bets": [BetResponse.from_entity(bet).to_dict() for bet in bets]}

        self.respond("bet.list", "list_group_bets", action)

    async def post(self, group_id: str):
        """POST /groups/{group_id}/bets"""
        def action():
            data = self.json_body()
            data['group_id'] = group_id
            sentry_sdk.set_user({"id": data.get('creator_id')})
            bet = self.lifecycle.create_bet(CreateBetRequest.from_dict(data))
            return BetResponse.from_entity(bet).to_dict()

        self.respond("bet.create", "create_bet", action, status=201)


class BetHandler(BaseHandler):
    """Read, edit and delete a single bet"""

    def initialize(self, lifecycle_use_case: BetLifecycleUseCase):
        self.lifecycle = lifecycle_use_case

    async def get(self, bet_id: str):
        self.respond(
            "bet.get", "get_bet",
            lambda: BetResponse.from_entity(self.lifecycle.get_bet(bet_id)).to_dict()
        )

    async def put(self, bet_id: str):
        def action():
            request = EditBetRequest.from_dict(bet_id, self.json_body())
            return BetResponse.from_entity(self.lifecycle.edit_bet(request)).to_dict()

        self.respond("bet.edit", "edit_bet", action)

    async def delete(self, bet_id: str):
        def action():
            requester_id = self.get_query_argument('requester_id', '')
            if not requester_id:
                raise ValidationError("requester_id is required")
            self.lifecycle.delete_bet(bet_id, requester_id)

        self.respond("bet.delete", "delete_bet", action, status=204)


class JoinBetHandler(BaseHandler):
    """Stake on one option of a bet"""

    def initialize(self, place_bet_use_case: PlaceBetUseCase):
        self.place_bet_use_case = place_bet_use_case

    async def post(self, bet_id: str):
        """POST /bets/{bet_id}/join"""
        def action():
            request = PlaceBetRequest.from_dict(bet_id, self.json_body())
            sentry_sdk.set_user({"id": request.user_id})
            return BetResponse.from_entity(self.place_bet_use_case.execute(request)).to_dict()

        self.respond("bet.join", "place_bet", action)


class LockBetHandler(BaseHandler):
    """Close a bet for new stakes ahead of its expiry"""

    def initialize(self, lifecycle_use_case: BetLifecycleUseCase):
        self.lifecycle = lifecycle_use_case

    async def put(self, bet_id: str):
        def action():
            requester_id = self.json_body().get('requester_id')
            if not requester_id:
                raise ValidationError("requester_id is required")
            return BetResponse.from_entity(self.lifecycle.lock_bet(bet_id, requester_id)).to_dict()

        self.respond("bet.lock", "lock_bet", action)


class ResolveBetHandler(BaseHandler):
    """Release a bet's result and pay out"""

    def initialize(self, resolve_bet_use_case: ResolveBetUseCase):
        self.resolve_bet_use_case = resolve_bet_use_case

    async def put(self, bet_id: str):
        """PUT /bets/{bet_id}/resolve"""
        def action():
            request = ResolveBetRequest.from_dict(bet_id, self.json_body())
            return self.resolve_bet_use_case.execute(request).to_dict()

        self.respond("bet.resolve", "resolve_bet", action)


class RetryPayoutsHandler(BaseHandler):
    """Re-attempt failed payout credits of a completed bet"""

    def initialize(self, resolve_bet_use_case: ResolveBetUseCase):
        self.resolve_bet_use_case = resolve_bet_use_case

    async def post(self, bet_id: str):
        self.respond(
            "bet.payouts", "retry_failed_payouts",
            lambda: self.resolve_bet_use_case.retry_failed_payouts(bet_id).to_dict()
        )


class BetResultsHandler(BaseHandler):
    def initialize(self, results_use_case: BetResultsUseCase):
        self.results_use_case = results_use_case

    async def get(self, bet_id: str):
        self.respond(
            "bet.results", "get_bet_results",
            lambda: self.results_use_case.get_bet_results(bet_id).to_dict()
        )


class BetStatsHandler(BaseHandler):
    def initialize(self, results_use_case: BetResultsUseCase):
        self.results_use_case = results_use_case

    async def get(self, bet_id: str):
        self.respond(
            "bet.stats", "get_bet_stats",
            lambda: self.results_use_case.get_bet_stats(bet_id).to_dict()
        )


class UserBetsHandler(BaseHandler):
    """Bets a user created or staked on"""

    def initialize(self, lifecycle_use_case: BetLifecycleUseCase):
        self.lifecycle = lifecycle_use_case

    async def get(self, user_id: str):
        def action():
            bets = self.lifecycle.list_user_bets(user_id, self.status_filter())
            return {"bets": [BetResponse.from_entity(bet).to_dict() for bet in bets]}

        self.respond("bet.list", "list_user_bets", action)
