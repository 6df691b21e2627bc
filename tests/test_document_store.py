"""
Tests for the Document Store Reader.

Covers:
- Decoding Firestore REST documents into canonical orders
- Fallback order synthesis for missing documents and store failures
"""
from datetime import datetime
from decimal import Decimal
from unittest.mock import patch, MagicMock

import requests

from maisushi.services.document_store import (
    DocumentStoreReader,
    decode_value,
    fallback_order,
    order_from_document,
)


def _response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    return response


class TestDecodeValue:
    """Tests for Firestore typed value decoding."""

    def test_scalars(self):
        assert decode_value({'stringValue': 'maki'}) == 'maki'
        assert decode_value({'integerValue': '42'}) == 42
        assert decode_value({'doubleValue': 34.5}) == 34.5
        assert decode_value({'booleanValue': True}) is True
        assert decode_value({'nullValue': None}) is None

    def test_timestamp_with_nanoseconds(self):
        value = decode_value({'timestampValue': '2026-10-18T19:30:12.123456789Z'})
        assert value == datetime(2026, 10, 18, 19, 30, 12, 123456)

    def test_nested_map_and_array(self):
        value = decode_value({'mapValue': {'fields': {
            'tags': {'arrayValue': {'values': [{'stringValue': 'spicy'}]}},
        }}})
        assert value == {'tags': ['spicy']}

    def test_empty_array(self):
        assert decode_value({'arrayValue': {}}) == []


class TestOrderFromDocument:
    """Tests for building canonical orders."""

    def test_flat_totals(self):
        order = order_from_document('abc', {
            'subtotal': 30, 'gst': 1.5, 'qst': 3, 'delivery_fee': 0, 'final_total': 34.5,
            'items': [{'id': 'roll', 'name': 'Dragon Roll', 'price': 15, 'quantity': 2}],
        })

        assert order.id == 'abc'
        assert order.final_total == Decimal('34.50')
        assert order.tax_total == Decimal('4.50')
        assert order.items[0].product_id == 'roll'
        assert order.items[0].line_total == Decimal('30.00')
        assert order.is_fallback is False

    def test_nested_totals_and_shipping_name(self):
        order = order_from_document('abc', {
            'totals': {'subtotal': 20, 'gst': 1, 'qst': 2, 'deliveryFee': 5, 'finalTotal': 28},
            'shippingAddress': {'name': 'Kenji Sato', 'address': {'line1': '12 Rue Sainte-Catherine', 'city': 'Montreal'}},
        })

        assert order.final_total == Decimal('28.00')
        assert order.delivery_fee == Decimal('5.00')
        assert order.shipping_name == 'Kenji Sato'
        assert order.delivery_address == '12 Rue Sainte-Catherine, Montreal'

    def test_legacy_customer_fields_win(self):
        order = order_from_document('abc', {
            'final_total': 10,
            'customer_name': 'Legacy Name',
            'customerInfo': {'name': 'Info Name', 'email': 'info@example.com'},
        })

        assert order.customer.name == 'Legacy Name'
        assert order.customer.email == 'info@example.com'


class TestFallbackOrder:
    """Tests for the synthetic fallback order."""

    def test_fallback_shape(self):
        order = fallback_order('missing-1')

        assert order.id == 'missing-1'
        assert order.final_total == Decimal('34.50')
        assert order.subtotal + order.gst + order.qst + order.delivery_fee == order.final_total
        assert len(order.items) == 1
        assert order.status == 'completed'
        assert order.is_fallback is True


class TestDocumentStoreReader:
    """Tests for DocumentStoreReader.fetch_order."""

    @patch('maisushi.services.document_store.requests.get')
    def test_fetch_existing_order(self, mock_get, order_document):
        mock_get.return_value = _response(200, order_document('order-123'))
        reader = DocumentStoreReader(project_id='maisushi-test', api_key='key')

        order = reader.fetch_order('order-123')

        assert order.is_fallback is False
        assert order.final_total == Decimal('34.50')
        assert len(order.items) == 2
        assert order.customer.name == 'Aiko Tanaka'
        assert order.delivery_type == 'pickup'

        url = mock_get.call_args[0][0]
        assert url.endswith('/projects/maisushi-test/databases/(default)/documents/orders/order-123')
        assert mock_get.call_args[1]['params'] == {'key': 'key'}
        assert mock_get.call_args[1]['timeout'] == 10

    @patch('maisushi.services.document_store.requests.get')
    def test_missing_order_returns_fallback(self, mock_get):
        mock_get.return_value = _response(404)
        reader = DocumentStoreReader(project_id='maisushi-test')

        order = reader.fetch_order('does-not-exist')

        assert order.is_fallback is True
        assert order.id == 'does-not-exist'
        assert float(order.final_total) == 34.5
        assert len(order.items) == 1

    @patch('maisushi.services.document_store.requests.get')
    def test_network_error_returns_fallback(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError('unreachable')
        reader = DocumentStoreReader(project_id='maisushi-test')

        order = reader.fetch_order('order-123')

        assert order.is_fallback is True

    @patch('maisushi.services.document_store.requests.get')
    def test_server_error_returns_fallback(self, mock_get):
        mock_get.return_value = _response(503)
        reader = DocumentStoreReader(project_id='maisushi-test')

        assert reader.fetch_order('order-123').is_fallback is True

    @patch('maisushi.services.document_store.requests.get')
    def test_malformed_document_returns_fallback(self, mock_get, order_document):
        document = order_document('order-123', final_total={'stringValue': 'not-a-number'})
        mock_get.return_value = _response(200, document)
        reader = DocumentStoreReader(project_id='maisushi-test')

        assert reader.fetch_order('order-123').is_fallback is True

    @patch('maisushi.services.document_store.requests.get')
    def test_unconfigured_reader_skips_request(self, mock_get):
        reader = DocumentStoreReader(project_id='')

        order = reader.fetch_order('order-123')

        assert order.is_fallback is True
        mock_get.assert_not_called()
