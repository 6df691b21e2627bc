"""
Order Completion Orchestrator.

Runs once per completed checkout:

    idle -> processing -> mirroring -> accruing -> tracked -> done

    Any step can move to error instead.

1. resolve the order id (explicit id, else checkout session id)
2. pass the processed-order gate (repeat calls for the same id are no-ops)
3. fetch the canonical order (falls back to a synthetic order)
4. start the notification relay in the background
5. for an identified customer: mirror the order, then accrue points
6. load recent points history for display
7. record the purchase conversion

The customer's payment already succeeded upstream, so the result is
always a confirmation; reconciliation problems are reported alongside it.
A run that ends in error releases the gate so the next call resumes. The
accrual check against points history keeps a resumed run from accruing
twice.
"""
import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

from flask import current_app

from ..models.order import Order
from ..models.points import PointsKind
from ..utils.cache import cache, cache_key
from ..utils.errors import ErrorCode
from .analytics_service import AnalyticsService, get_analytics_service
from .document_store import DocumentStoreReader, get_document_store_reader
from .ledger_store import LedgerStoreClient
from .notification_relay import NotificationRelay, get_notification_relay
from .points_service import PointsService, calculate_order_points

logger = logging.getLogger(__name__)

SUPPORT_MESSAGE = (
    'Your order is confirmed. We could not update your loyalty points right now, '
    'please contact support to reconcile your points.'
)

HISTORY_DISPLAY_LIMIT = 10


class CompletionState(str, Enum):
    IDLE = 'idle'
    PROCESSING = 'processing'
    MIRRORING = 'mirroring'
    ACCRUING = 'accruing'
    TRACKED = 'tracked'
    DONE = 'done'
    ERROR = 'error'


@dataclass
class CompletionResult:
    """Outcome of one order completion run."""
    order_id: Optional[str]
    user_id: Optional[str] = None
    state: CompletionState = CompletionState.IDLE
    duplicate: bool = False
    order: Optional[Order] = None
    mirrored: bool = False
    points_earned: int = 0
    previous_balance: Optional[int] = None
    new_balance: Optional[int] = None
    already_accrued: bool = False
    history: List[Dict[str, Any]] = field(default_factory=list)
    tracked: bool = False
    error: Optional[str] = None
    support_message: Optional[str] = None
    notification: Optional[Future] = field(default=None, repr=False)

    @property
    def confirmed(self) -> bool:
        return True

    @property
    def notification_status(self) -> Optional[str]:
        """'sending' until delivery finishes, then 'success' or 'error'."""
        if self.notification is None:
            return None
        if not self.notification.done():
            return 'sending'
        try:
            return 'success' if self.notification.result() else 'error'
        except Exception:
            return 'error'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order_id,
            'user_id': self.user_id,
            'state': self.state.value,
            'confirmed': self.confirmed,
            'duplicate': self.duplicate,
            'order': self.order.to_dict() if self.order else None,
            'mirrored': self.mirrored,
            'points_earned': self.points_earned,
            'previous_balance': self.previous_balance,
            'new_balance': self.new_balance,
            'already_accrued': self.already_accrued,
            'history': self.history,
            'tracked': self.tracked,
            'notification_status': self.notification_status,
            'error': self.error,
            'support_message': self.support_message,
        }


class ProcessedOrderGate:
    """Processed-order gate backed by the app cache."""

    def __init__(self, timeout: int = 3600):
        self.timeout = timeout

    def _key(self, order_id: str) -> str:
        return cache_key('processed-order', order_id)

    def acquire(self, order_id: str) -> bool:
        """True the first time an order id is seen within the timeout."""
        return bool(cache.add(self._key(order_id), True, timeout=self.timeout))

    def release(self, order_id: str) -> None:
        cache.delete(self._key(order_id))


class OrderCompletionOrchestrator:
    """
    Usage:
        orchestrator = get_order_completion_orchestrator()
        result = orchestrator.complete_order(order_id='abc123', user_id='user-1')
        return jsonify(result.to_dict())
    """

    def __init__(
        self,
        document_store: DocumentStoreReader,
        ledger_store: LedgerStoreClient = None,
        points_service: PointsService = None,
        relay: NotificationRelay = None,
        analytics: AnalyticsService = None,
        gate: ProcessedOrderGate = None,
        points_per_dollar: int = 1,
    ):
        self.document_store = document_store
        self.ledger_store = ledger_store or LedgerStoreClient()
        self.points_service = points_service or PointsService()
        self.relay = relay
        self.analytics = analytics
        self.gate = gate or ProcessedOrderGate()
        self.points_per_dollar = points_per_dollar

    def complete_order(
        self,
        order_id: str = None,
        session_id: str = None,
        user_id: str = None,
        customer_profile: Dict[str, Any] = None
    ) -> CompletionResult:
        resolved_id = order_id or session_id
        result = CompletionResult(order_id=resolved_id, user_id=user_id)

        if not resolved_id:
            result.state = CompletionState.ERROR
            result.error = 'No order identifier provided'
            logger.warning('Order completion called without order or session id')
            return result

        if not self.gate.acquire(resolved_id):
            logger.info('Order %s already processed, skipping', resolved_id)
            result.state = CompletionState.DONE
            result.duplicate = True
            return result

        try:
            self._run(result, resolved_id, user_id, customer_profile)
        except Exception as e:
            logger.exception(
                'Order completion failed for order %s (user %s) in state %s',
                resolved_id, user_id, result.state.value
            )
            result.error = str(e)
            result.state = CompletionState.ERROR

        if result.state == CompletionState.ERROR:
            self.gate.release(resolved_id)
            if user_id:
                result.support_message = SUPPORT_MESSAGE

        return result

    def _run(self, result: CompletionResult, order_id: str, user_id: str, customer_profile):
        result.state = CompletionState.PROCESSING
        order = self.document_store.fetch_order(order_id)
        result.order = order

        if self.relay:
            result.notification = self.relay.deliver_async(
                order,
                is_known_customer=bool(user_id),
                customer_profile=customer_profile
            )

        if user_id:
            result.state = CompletionState.MIRRORING
            mirrored = self.ledger_store.mirror_order(user_id, order)
            result.mirrored = mirrored is not None
            if not result.mirrored:
                # Points ledger is authoritative; accrue anyway
                logger.warning('Order %s not mirrored for user %s, accruing anyway', order_id, user_id)

            result.state = CompletionState.ACCRUING
            if not self._accrue(result, order, user_id):
                return

            result.history = [
                row.to_dict()
                for row in self.points_service.get_user_points_history(
                    user_id, limit=HISTORY_DISPLAY_LIMIT
                )
            ]

        if self.analytics:
            result.tracked = self.analytics.track_purchase(order, client_id=user_id)
        result.state = CompletionState.TRACKED

        result.state = CompletionState.DONE
        logger.info(
            'Order %s completed for %s: +%s pts',
            order_id, user_id or 'guest', result.points_earned
        )

    def _accrue(self, result: CompletionResult, order: Order, user_id: str) -> bool:
        if self.points_service.has_order_accrual(user_id, order.id):
            self._mark_already_accrued(result, order, user_id)
            return True

        points = calculate_order_points(order.final_total, self.points_per_dollar)
        accrual = self.points_service.add_transaction(
            user_id=user_id,
            points=points,
            kind=PointsKind.ORDER,
            order_id=order.id,
            metadata={
                'amount': float(order.final_total),
                'fallback': order.is_fallback,
            }
        )

        if accrual.get('code') == ErrorCode.ALREADY_ACCRUED.value:
            # Another worker accrued this order after our check
            self._mark_already_accrued(result, order, user_id)
            return True

        if not accrual.get('success'):
            result.state = CompletionState.ERROR
            result.error = accrual.get('error')
            logger.error(
                'Points accrual failed for order %s, user %s, %s pts: %s',
                order.id, user_id, points, accrual.get('error')
            )
            return False

        result.points_earned = accrual['points_earned']
        result.previous_balance = accrual['previous_balance']
        result.new_balance = accrual['new_balance']
        return True

    def _mark_already_accrued(self, result: CompletionResult, order: Order, user_id: str) -> None:
        balance = self.points_service.get_current_balance(user_id)
        result.already_accrued = True
        result.previous_balance = result.new_balance = balance
        logger.info('Points already accrued for order %s, user %s', order.id, user_id)


def get_order_completion_orchestrator() -> OrderCompletionOrchestrator:
    """Build the orchestrator from the current app config."""
    config = current_app.config
    return OrderCompletionOrchestrator(
        document_store=get_document_store_reader(),
        relay=get_notification_relay(),
        analytics=get_analytics_service(),
        gate=ProcessedOrderGate(timeout=config.get('PROCESSED_ORDER_TTL', 3600)),
        points_per_dollar=config.get('POINTS_PER_DOLLAR', 1),
    )
