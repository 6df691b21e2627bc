"""
Business logic services for the Mai Sushi order completion and loyalty ledger.
"""
from .document_store import DocumentStoreReader, fallback_order
from .ledger_store import LedgerStoreClient
from .points_service import PointsService
from .rewards_service import RewardsService
from .owner_rewards_service import OwnerRewardsService
from .notification_relay import NotificationRelay
from .analytics_service import AnalyticsService
from .order_completion import OrderCompletionOrchestrator, ProcessedOrderGate

__all__ = [
    'DocumentStoreReader',
    'fallback_order',
    'LedgerStoreClient',
    'PointsService',
    'RewardsService',
    'OwnerRewardsService',
    'NotificationRelay',
    'AnalyticsService',
    'OrderCompletionOrchestrator',
    'ProcessedOrderGate'
]
