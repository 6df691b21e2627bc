"""
Document Store Reader.

Reads canonical orders from the Firestore `orders` collection over the
Firestore REST API. Orders are written by the upstream checkout process;
this service only reads them.

A missing order (cash/offline orders that never persisted a document, or a
read that races the upstream write) and any store-level failure both
degrade to a synthetic fallback order so order completion never blocks
on the document store.

API Documentation: https://firebase.google.com/docs/firestore/reference/rest
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, Optional

import requests
from flask import current_app

from ..models.order import Order, OrderLineItem, CustomerInfo

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')

# Fallback order placeholders: 30.00 + 1.50 GST + 3.00 QST = 34.50
FALLBACK_SUBTOTAL = Decimal('30.00')
FALLBACK_GST = Decimal('1.50')
FALLBACK_QST = Decimal('3.00')
FALLBACK_DELIVERY_FEE = Decimal('0.00')
FALLBACK_FINAL_TOTAL = Decimal('34.50')
FALLBACK_ITEM_NAME = 'Sushi order'


def fallback_order(order_id: str) -> Order:
    """Synthetic minimal order used when the canonical one cannot be read."""
    return Order(
        id=order_id,
        subtotal=FALLBACK_SUBTOTAL,
        gst=FALLBACK_GST,
        qst=FALLBACK_QST,
        delivery_fee=FALLBACK_DELIVERY_FEE,
        final_total=FALLBACK_FINAL_TOTAL,
        items=[
            OrderLineItem(
                product_id='fallback-item',
                name=FALLBACK_ITEM_NAME,
                price=FALLBACK_SUBTOTAL,
                quantity=1,
            )
        ],
        status='completed',
        created_at=datetime.utcnow(),
        is_fallback=True,
    )


# ==================== Firestore value decoding ====================

def decode_value(value: Dict[str, Any]) -> Any:
    """Decode one Firestore REST typed value into a plain Python value."""
    if 'stringValue' in value:
        return value['stringValue']
    if 'integerValue' in value:
        return int(value['integerValue'])
    if 'doubleValue' in value:
        return value['doubleValue']
    if 'booleanValue' in value:
        return value['booleanValue']
    if 'nullValue' in value:
        return None
    if 'timestampValue' in value:
        return _parse_timestamp(value['timestampValue'])
    if 'mapValue' in value:
        return decode_fields(value['mapValue'].get('fields', {}))
    if 'arrayValue' in value:
        return [decode_value(v) for v in value['arrayValue'].get('values', [])]
    if 'referenceValue' in value:
        return value['referenceValue']
    return None


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {name: decode_value(value) for name, value in fields.items()}


def _parse_timestamp(raw) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    if not raw:
        return None
    text = str(raw).replace('Z', '+00:00')
    # Firestore emits up to nanosecond precision; fromisoformat takes microseconds
    if '.' in text:
        head, _, tail = text.partition('.')
        digits = ''.join(ch for ch in tail if ch.isdigit())
        offset = tail[len(digits):]
        text = f'{head}.{digits[:6].ljust(6, "0")}{offset}'
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _money(*candidates) -> Decimal:
    for candidate in candidates:
        if candidate is None or candidate == '':
            continue
        return Decimal(str(candidate)).quantize(CENTS)
    return Decimal('0.00')


def order_from_document(order_id: str, data: Dict[str, Any]) -> Order:
    """
    Build a canonical Order from a decoded order document.

    Accepts both the flat snake_case totals and the nested `totals` map,
    and the legacy top-level customer_* fields.
    """
    totals = data.get('totals') or {}
    info = data.get('customerInfo') or {}
    shipping = data.get('shippingAddress') or {}

    items = []
    for raw in data.get('items') or []:
        items.append(OrderLineItem(
            product_id=str(raw.get('productId') or raw.get('id') or ''),
            name=raw.get('name') or '',
            price=_money(raw.get('price')),
            quantity=int(raw.get('quantity') or 1),
        ))

    customer = CustomerInfo(
        name=data.get('customer_name') or info.get('name'),
        email=data.get('customer_email') or info.get('email'),
        phone=data.get('customer_phone') or info.get('phone'),
        address=info.get('address'),
        city=info.get('city'),
    )

    delivery_address = data.get('delivery_address') or ''
    if not delivery_address:
        shipping_address = shipping.get('address') or {}
        parts = [shipping_address.get('line1'), shipping_address.get('city')]
        if not any(parts):
            parts = [info.get('address'), info.get('city')]
        delivery_address = ', '.join(p for p in parts if p)

    return Order(
        id=str(data.get('id') or order_id),
        subtotal=_money(data.get('subtotal'), totals.get('subtotal')),
        gst=_money(data.get('gst'), totals.get('gst')),
        qst=_money(data.get('qst'), totals.get('qst')),
        delivery_fee=_money(data.get('delivery_fee'), totals.get('deliveryFee')),
        final_total=_money(data.get('final_total'), totals.get('finalTotal'), data.get('amount')),
        items=items,
        customer=customer,
        shipping_name=shipping.get('name'),
        status=data.get('status') or 'completed',
        delivery_type=data.get('delivery_type') or data.get('type') or 'delivery',
        delivery_address=delivery_address,
        created_at=_parse_timestamp(data.get('created_at') or data.get('createdAt')),
    )


class DocumentStoreReader:
    """
    Read-only access to canonical orders.

    Usage:
        reader = DocumentStoreReader(project_id='maisushi')
        order = reader.fetch_order('abc123')   # never raises
    """

    BASE_URL = "https://firestore.googleapis.com/v1"

    def __init__(
        self,
        project_id: str,
        api_key: str = None,
        collection: str = 'orders',
        timeout: int = 10,
    ):
        self.project_id = project_id
        self.api_key = api_key
        self.collection = collection
        self.timeout = timeout

    def _document_url(self, order_id: str) -> str:
        return (
            f"{self.BASE_URL}/projects/{self.project_id}/databases/(default)"
            f"/documents/{self.collection}/{order_id}"
        )

    def fetch_order(self, order_id: str) -> Order:
        """
        Fetch the canonical order by identifier.

        Returns a fallback order when the document is absent or the store
        cannot be read.
        """
        if not order_id:
            logger.warning('fetch_order called without an order id, using fallback order')
            return fallback_order('unknown')

        if not self.project_id:
            logger.warning('Document store not configured, using fallback order for %s', order_id)
            return fallback_order(order_id)

        params = {'key': self.api_key} if self.api_key else None

        try:
            response = requests.get(
                self._document_url(order_id),
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning('Document store read failed for %s: %s', order_id, e)
            return fallback_order(order_id)

        if response.status_code == 404:
            logger.info('Order %s not found in document store, using fallback order', order_id)
            return fallback_order(order_id)

        if response.status_code != 200:
            logger.warning(
                'Document store returned %s for order %s, using fallback order',
                response.status_code, order_id
            )
            return fallback_order(order_id)

        try:
            document = response.json()
            data = decode_fields(document.get('fields', {}))
            return order_from_document(order_id, data)
        except (ValueError, TypeError, AttributeError, InvalidOperation) as e:
            logger.error('Malformed order document %s: %s', order_id, e)
            return fallback_order(order_id)


def get_document_store_reader() -> DocumentStoreReader:
    """Build a reader from the current app config."""
    config = current_app.config
    return DocumentStoreReader(
        project_id=config.get('FIRESTORE_PROJECT_ID'),
        api_key=config.get('FIRESTORE_API_KEY'),
        collection=config.get('FIRESTORE_ORDERS_COLLECTION', 'orders'),
        timeout=config.get('FIRESTORE_TIMEOUT', 10),
    )
