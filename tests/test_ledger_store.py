"""
Tests for the Ledger Store Client (order mirroring).
"""
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from maisushi.extensions import db
from maisushi.models import MirroredOrder
from maisushi.services.document_store import fallback_order, order_from_document
from maisushi.services.ledger_store import LedgerStoreClient


def _order(order_id='order-123'):
    return order_from_document(order_id, {
        'subtotal': 30, 'gst': 1.5, 'qst': 3, 'delivery_fee': 0, 'final_total': 34.5,
        'customerInfo': {'name': 'Aiko Tanaka', 'email': 'aiko@example.com', 'phone': '514-555-0199'},
        'items': [{'id': 'roll', 'name': 'California Roll', 'price': 12, 'quantity': 2}],
        'delivery_address': '100 Rue Peel, Montreal',
    })


class TestMirrorOrder:
    """Tests for LedgerStoreClient.mirror_order."""

    def test_creates_mirror(self, app, sample_user_id):
        client = LedgerStoreClient()

        mirrored = client.mirror_order(sample_user_id, _order())

        assert mirrored is not None
        assert mirrored.firebase_order_id == 'order-123'
        assert mirrored.final_total == Decimal('34.50')
        assert mirrored.customer_name == 'Aiko Tanaka'
        assert mirrored.items[0]['name'] == 'California Roll'
        assert MirroredOrder.query.count() == 1

    def test_second_call_returns_existing_row(self, app, sample_user_id):
        client = LedgerStoreClient()

        first = client.mirror_order(sample_user_id, _order())
        second = client.mirror_order(sample_user_id, _order())

        assert second.id == first.id
        assert MirroredOrder.query.filter_by(user_id=sample_user_id).count() == 1

    def test_same_order_different_users(self, app):
        client = LedgerStoreClient()

        client.mirror_order('user-a', _order())
        client.mirror_order('user-b', _order())

        assert MirroredOrder.query.count() == 2

    def test_concurrent_insert_uses_existing_row(self, app, sample_user_id):
        client = LedgerStoreClient()
        existing = client.mirror_order(sample_user_id, _order())

        # Simulate a session that looked before the other one inserted
        with patch.object(LedgerStoreClient, 'get_mirrored_order', side_effect=[None, existing]):
            result = client.mirror_order(sample_user_id, _order())

        assert result.id == existing.id
        assert MirroredOrder.query.count() == 1

    def test_insert_failure_returns_none(self, app, sample_user_id):
        client = LedgerStoreClient()

        with patch.object(db.session, 'commit', side_effect=OperationalError('INSERT', {}, Exception('db down'))):
            result = client.mirror_order(sample_user_id, _order())

        assert result is None
        assert MirroredOrder.query.count() == 0

    def test_mirrors_fallback_order(self, app, sample_user_id):
        mirrored = LedgerStoreClient().mirror_order(sample_user_id, fallback_order('cash-001'))

        assert mirrored.firebase_order_id == 'cash-001'
        assert len(mirrored.items) == 1


class TestListUserOrders:
    """Tests for LedgerStoreClient.list_user_orders."""

    def test_newest_first(self, app, sample_user_id):
        client = LedgerStoreClient()
        client.mirror_order(sample_user_id, _order('first'))
        client.mirror_order(sample_user_id, _order('second'))
        client.mirror_order('someone-else', _order('third'))

        orders = client.list_user_orders(sample_user_id)

        assert [o.firebase_order_id for o in orders] == ['second', 'first']
