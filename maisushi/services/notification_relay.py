"""
Notification Relay.

Delivers a completed order to two independent channels:
- the order automation webhook (JSON POST, 2xx = success, no retry)
- a SendGrid order confirmation email

The channels run concurrently and delivery counts as successful when
either one succeeds. Delivery is best-effort and never raises: order
completion only reports the outcome to the customer.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed, Future
from datetime import datetime
from typing import Dict, Any

import requests
from flask import current_app

from ..models.order import Order
from .email_service import EmailService
from .points_service import format_cad

logger = logging.getLogger(__name__)

# Runs the webhook and email channels side by side
_channel_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix='notify-channel')

# Runs whole deliveries off the request thread
_dispatch_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='notify-dispatch')

UNCONFIGURED_MARKER = 'XXXXXXX'


def resolve_contact(order: Order, customer_profile: Dict[str, Any] = None) -> Dict[str, str]:
    """
    Best available contact details for an order.

    Order fields first, then the shipping name, then the customer profile.
    """
    profile = customer_profile or {}

    profile_name = profile.get('full_name') or ' '.join(
        part for part in (
            profile.get('first_name') or profile.get('firstName'),
            profile.get('last_name') or profile.get('lastName'),
        ) if part
    )

    return {
        'name': order.customer.name or order.shipping_name or profile_name or 'Unknown',
        'email': order.customer.email or profile.get('email') or '',
        'phone': order.customer.phone or profile.get('phone') or '',
    }


class NotificationRelay:
    """
    Usage:
        relay = NotificationRelay(webhook_url, EmailService(api_key))
        ok = relay.deliver(order, is_known_customer=True, customer_profile=profile)

        future = relay.deliver_async(order)   # returns immediately
    """

    def __init__(
        self,
        webhook_url: str = None,
        email_service: EmailService = None,
        timeout: int = 10,
        currency: str = 'CAD',
        source: str = 'maisushi-website',
    ):
        self.webhook_url = webhook_url or ''
        self.email_service = email_service
        self.timeout = timeout
        self.currency = currency
        self.source = source

    @property
    def webhook_configured(self) -> bool:
        return bool(self.webhook_url) and UNCONFIGURED_MARKER not in self.webhook_url

    # ==================== Payload ====================

    def build_payload(
        self,
        order: Order,
        is_known_customer: bool = False,
        customer_profile: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        contact = resolve_contact(order, customer_profile)
        item_count = sum(item.quantity for item in order.items)

        return {
            'name': contact['name'],
            'email': contact['email'],
            'phone': contact['phone'],
            'message': (
                f"New order {order.id}: {item_count} item(s), "
                f"total {format_cad(order.final_total)}"
            ),
            'items': [item.to_dict() for item in order.items],
            'totals': {
                'subtotal': float(order.subtotal),
                'gst': float(order.gst),
                'qst': float(order.qst),
                'delivery_fee': float(order.delivery_fee),
                'final_total': float(order.final_total),
                'currency': self.currency,
            },
            'timestamp': datetime.utcnow().isoformat() + 'Z',
            'source': self.source,
            'formType': 'order_confirmation',
            'order_id': order.id,
            'status': order.status or 'completed',
            'delivery_type': order.delivery_type or 'delivery',
            'delivery_address': order.delivery_address or '',
            'customer_type': 'client' if is_known_customer else 'guest',
        }

    # ==================== Channels ====================

    def send_webhook(self, payload: Dict[str, Any]) -> bool:
        if not self.webhook_configured:
            logger.warning('Order webhook URL not configured, skipping webhook channel')
            return False

        try:
            response = requests.post(
                self.webhook_url,
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            logger.warning('Order webhook timed out for order %s', payload.get('order_id'))
            return False
        except requests.exceptions.RequestException as e:
            logger.error('Order webhook failed for order %s: %s', payload.get('order_id'), e)
            return False

        if not 200 <= response.status_code < 300:
            logger.error(
                'Order webhook returned %s for order %s',
                response.status_code, payload.get('order_id')
            )
            return False

        logger.info('Order %s sent to webhook', payload.get('order_id'))
        return True

    def send_email(self, order: Order, contact: Dict[str, str]) -> bool:
        if not self.email_service:
            return False

        items = '\n'.join(
            f"- {item.quantity} x {item.name} ({format_cad(item.line_total)})"
            for item in order.items
        )
        data = {
            'customer_name': contact['name'],
            'order_id': order.id,
            'items': items,
            'subtotal': format_cad(order.subtotal),
            'gst': format_cad(order.gst),
            'qst': format_cad(order.qst),
            'delivery_fee': format_cad(order.delivery_fee) if order.delivery_fee else '',
            'final_total': format_cad(order.final_total),
            'delivery_address': order.delivery_address,
        }

        result = self.email_service.send_template_email(
            'order_confirmation',
            to_email=contact['email'],
            to_name=contact['name'],
            data=data,
        )
        if not result.get('success'):
            logger.warning('Order email not sent for %s: %s', order.id, result.get('error'))
        return bool(result.get('success'))

    def _guarded(self, channel: str, func, *args) -> bool:
        """Run one channel; its failure never reaches the other channel."""
        try:
            return bool(func(*args))
        except Exception:
            logger.exception('Notification channel %s raised', channel)
            return False

    # ==================== Delivery ====================

    def deliver(
        self,
        order: Order,
        is_known_customer: bool = False,
        customer_profile: Dict[str, Any] = None
    ) -> bool:
        """
        Send the order through both channels concurrently.

        Returns True when at least one channel succeeded.
        """
        try:
            payload = self.build_payload(order, is_known_customer, customer_profile)
            contact = resolve_contact(order, customer_profile)
        except Exception:
            logger.exception('Could not build notification for order %s', order.id)
            return False

        futures = {
            _channel_executor.submit(self._guarded, 'webhook', self.send_webhook, payload): 'webhook',
            _channel_executor.submit(self._guarded, 'email', self.send_email, order, contact): 'email',
        }

        results = {}
        for future in as_completed(futures):
            results[futures[future]] = future.result()

        delivered = any(results.values())
        if delivered:
            logger.info('Order %s notification delivered: %s', order.id, results)
        else:
            logger.error('Order %s notification failed on all channels', order.id)
        return delivered

    def deliver_async(
        self,
        order: Order,
        is_known_customer: bool = False,
        customer_profile: Dict[str, Any] = None
    ) -> Future:
        """Start delivery in the background and return its Future."""
        return _dispatch_executor.submit(self.deliver, order, is_known_customer, customer_profile)


def get_notification_relay() -> NotificationRelay:
    """Build a relay from the current app config."""
    config = current_app.config
    email_service = EmailService(
        api_key=config.get('SENDGRID_API_KEY'),
        from_email=config.get('EMAIL_FROM_ADDRESS'),
        from_name=config.get('EMAIL_FROM_NAME'),
    )
    return NotificationRelay(
        webhook_url=config.get('ORDER_WEBHOOK_URL'),
        email_service=email_service,
        timeout=config.get('NOTIFICATION_TIMEOUT', 10),
        currency=config.get('CURRENCY', 'CAD'),
        source=config.get('SITE_SOURCE', 'maisushi-website'),
    )
