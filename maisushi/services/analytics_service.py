"""
Analytics Service for Mai Sushi.

Records purchase conversions with the GA4 Measurement Protocol.
Tracking is fire-and-forget: an unconfigured or failing sink is logged
and ignored, it never affects order completion.

API Documentation: https://developers.google.com/analytics/devguides/collection/protocol/ga4
"""
import logging
import uuid
from typing import Dict, Any, Optional

import requests
from flask import current_app

from ..models.order import Order

logger = logging.getLogger(__name__)


class AnalyticsService:
    """
    Conversion tracking.

    Usage:
        service = AnalyticsService(measurement_id, api_secret)
        service.track_purchase(order, client_id=user_id)
    """

    COLLECT_URL = 'https://www.google-analytics.com/mp/collect'

    def __init__(
        self,
        measurement_id: str = None,
        api_secret: str = None,
        currency: str = 'CAD',
        timeout: int = 5
    ):
        self.measurement_id = measurement_id
        self.api_secret = api_secret
        self.currency = currency
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.measurement_id and self.api_secret)

    def build_purchase_event(self, order: Order) -> Dict[str, Any]:
        return {
            'name': 'purchase',
            'params': {
                'transaction_id': order.id,
                'value': float(order.final_total),
                'currency': self.currency,
                'tax': float(order.tax_total),
                'shipping': float(order.delivery_fee),
                'items': [
                    {
                        'item_id': item.product_id,
                        'item_name': item.name,
                        'price': float(item.price),
                        'quantity': item.quantity,
                    }
                    for item in order.items
                ],
            },
        }

    def track_purchase(self, order: Order, client_id: Optional[str] = None) -> bool:
        """Send a purchase event. Returns whether the sink accepted it."""
        if not self.configured:
            logger.debug('Analytics not configured, skipping purchase event for %s', order.id)
            return False

        body = {
            'client_id': client_id or str(uuid.uuid4()),
            'events': [self.build_purchase_event(order)],
        }

        try:
            response = requests.post(
                self.COLLECT_URL,
                params={
                    'measurement_id': self.measurement_id,
                    'api_secret': self.api_secret,
                },
                json=body,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.warning('Analytics purchase event failed for %s: %s', order.id, e)
            return False

        if not 200 <= response.status_code < 300:
            logger.warning(
                'Analytics returned %s for purchase event %s', response.status_code, order.id
            )
            return False

        return True


def get_analytics_service() -> AnalyticsService:
    config = current_app.config
    return AnalyticsService(
        measurement_id=config.get('GA_MEASUREMENT_ID'),
        api_secret=config.get('GA_API_SECRET'),
        currency=config.get('CURRENCY', 'CAD'),
    )
