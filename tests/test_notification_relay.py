"""
Tests for the Notification Relay and the email channel.

Outbound HTTP and SendGrid are mocked.
"""
from decimal import Decimal
from unittest.mock import patch, MagicMock

import requests

from maisushi.models import Order, OrderLineItem, CustomerInfo
from maisushi.services.email_service import EmailService
from maisushi.services.notification_relay import NotificationRelay, resolve_contact

WEBHOOK_URL = 'https://hooks.example.com/orders'


def _order(**kwargs):
    defaults = dict(
        id='order-123',
        subtotal=Decimal('30.00'),
        gst=Decimal('1.50'),
        qst=Decimal('3.00'),
        delivery_fee=Decimal('0.00'),
        final_total=Decimal('34.50'),
        items=[OrderLineItem('cal-roll', 'California Roll', Decimal('12.00'), 2),
               OrderLineItem('miso', 'Miso Soup', Decimal('6.00'), 1)],
        customer=CustomerInfo(name='Aiko Tanaka', email='aiko@example.com', phone='514-555-0199'),
        delivery_type='delivery',
        delivery_address='100 Rue Peel, Montreal',
    )
    defaults.update(kwargs)
    return Order(**defaults)


def _http(status_code):
    response = MagicMock()
    response.status_code = status_code
    return response


def _email_service(success=True):
    service = MagicMock(spec=EmailService)
    service.send_template_email.return_value = {'success': success}
    return service


class TestResolveContact:
    """Tests for contact fallbacks."""

    def test_order_fields_first(self):
        contact = resolve_contact(_order(), {'full_name': 'Profile Name', 'email': 'p@example.com'})

        assert contact == {'name': 'Aiko Tanaka', 'email': 'aiko@example.com', 'phone': '514-555-0199'}

    def test_shipping_name_then_profile(self):
        order = _order(customer=CustomerInfo(), shipping_name='Kenji Sato')
        contact = resolve_contact(order, {'first_name': 'Yuki', 'last_name': 'Mori', 'email': 'y@example.com'})

        assert contact['name'] == 'Kenji Sato'
        assert contact['email'] == 'y@example.com'

    def test_profile_first_and_last_name(self):
        order = _order(customer=CustomerInfo())
        contact = resolve_contact(order, {'firstName': 'Yuki', 'lastName': 'Mori'})

        assert contact['name'] == 'Yuki Mori'

    def test_unknown(self):
        contact = resolve_contact(_order(customer=CustomerInfo()), None)

        assert contact == {'name': 'Unknown', 'email': '', 'phone': ''}


class TestBuildPayload:
    """Tests for the webhook payload."""

    def test_payload_fields(self):
        relay = NotificationRelay(WEBHOOK_URL)

        payload = relay.build_payload(_order(), is_known_customer=True)

        assert payload['name'] == 'Aiko Tanaka'
        assert payload['source'] == 'maisushi-website'
        assert payload['formType'] == 'order_confirmation'
        assert payload['customer_type'] == 'client'
        assert payload['order_id'] == 'order-123'
        assert payload['totals'] == {
            'subtotal': 30.0, 'gst': 1.5, 'qst': 3.0,
            'delivery_fee': 0.0, 'final_total': 34.5, 'currency': 'CAD'
        }
        assert len(payload['items']) == 2
        assert '$34.50' in payload['message']
        assert payload['timestamp'].endswith('Z')

    def test_guest_customer_type(self):
        payload = NotificationRelay(WEBHOOK_URL).build_payload(_order())

        assert payload['customer_type'] == 'guest'


class TestWebhookChannel:
    """Tests for NotificationRelay.send_webhook."""

    @patch('maisushi.services.notification_relay.requests.post')
    def test_success(self, mock_post):
        mock_post.return_value = _http(200)
        relay = NotificationRelay(WEBHOOK_URL, timeout=7)

        assert relay.send_webhook({'order_id': 'order-123'}) is True
        assert mock_post.call_args[0][0] == WEBHOOK_URL
        assert mock_post.call_args[1]['json'] == {'order_id': 'order-123'}
        assert mock_post.call_args[1]['timeout'] == 7

    @patch('maisushi.services.notification_relay.requests.post')
    def test_non_2xx_is_failure(self, mock_post):
        mock_post.return_value = _http(500)

        assert NotificationRelay(WEBHOOK_URL).send_webhook({}) is False

    @patch('maisushi.services.notification_relay.requests.post')
    def test_timeout_is_failure(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout()

        assert NotificationRelay(WEBHOOK_URL).send_webhook({}) is False

    @patch('maisushi.services.notification_relay.requests.post')
    def test_placeholder_url_is_unconfigured(self, mock_post):
        relay = NotificationRelay('https://hooks.zapier.com/hooks/catch/XXXXXXX/XXXXXXX/')

        assert relay.webhook_configured is False
        assert relay.send_webhook({}) is False
        mock_post.assert_not_called()


class TestDeliver:
    """Either channel succeeding means delivery succeeded."""

    @patch('maisushi.services.notification_relay.requests.post')
    def test_webhook_fails_email_succeeds(self, mock_post):
        mock_post.return_value = _http(502)
        relay = NotificationRelay(WEBHOOK_URL, email_service=_email_service(True))

        assert relay.deliver(_order()) is True

    @patch('maisushi.services.notification_relay.requests.post')
    def test_webhook_succeeds_email_fails(self, mock_post):
        mock_post.return_value = _http(200)
        relay = NotificationRelay(WEBHOOK_URL, email_service=_email_service(False))

        assert relay.deliver(_order()) is True

    @patch('maisushi.services.notification_relay.requests.post')
    def test_both_fail(self, mock_post):
        mock_post.return_value = _http(500)
        relay = NotificationRelay(WEBHOOK_URL, email_service=_email_service(False))

        assert relay.deliver(_order()) is False

    @patch('maisushi.services.notification_relay.requests.post')
    def test_channel_exception_does_not_fail_other(self, mock_post):
        mock_post.side_effect = RuntimeError('boom')
        relay = NotificationRelay(WEBHOOK_URL, email_service=_email_service(True))

        assert relay.deliver(_order()) is True

    @patch('maisushi.services.notification_relay.requests.post')
    def test_email_exception_does_not_fail_webhook(self, mock_post):
        mock_post.return_value = _http(204)
        email = _email_service()
        email.send_template_email.side_effect = RuntimeError('template exploded')
        relay = NotificationRelay(WEBHOOK_URL, email_service=email)

        assert relay.deliver(_order()) is True

    @patch('maisushi.services.notification_relay.requests.post')
    def test_deliver_async_returns_future(self, mock_post):
        mock_post.return_value = _http(200)
        relay = NotificationRelay(WEBHOOK_URL, email_service=_email_service(False))

        future = relay.deliver_async(_order(), is_known_customer=True)

        assert future.result(timeout=5) is True
        assert mock_post.call_args[1]['json']['customer_type'] == 'client'


class TestEmailService:
    """Tests for the SendGrid email channel."""

    def test_render_template(self):
        service = EmailService(api_key='SG.test')
        template = service.get_template('order_confirmation')

        rendered = service.render_template(template, {
            'customer_name': 'Aiko',
            'order_id': 'order-123',
            'items': '- 2 x California Roll ($24.00)',
            'subtotal': '$30.00', 'gst': '$1.50', 'qst': '$3.00',
            'delivery_fee': '',
            'final_total': '$34.50',
            'delivery_address': '100 Rue Peel',
        })

        assert rendered['subject'] == 'Mai Sushi order #order-123 confirmed'
        assert 'Hi Aiko' in rendered['body']
        assert 'Delivering to: 100 Rue Peel' in rendered['body']
        assert 'Delivery:' not in rendered['body']
        assert '{{' not in rendered['body']

    @patch('maisushi.services.email_service.SendGridAPIClient')
    def test_send_template_email(self, mock_client_cls):
        mock_client_cls.return_value.send.return_value = MagicMock(status_code=202)
        service = EmailService(api_key='SG.test')

        result = service.send_template_email(
            'order_confirmation', 'aiko@example.com', 'Aiko', {'order_id': 'order-123'}
        )

        assert result['success'] is True
        mock_client_cls.assert_called_once_with('SG.test')

    def test_not_configured(self):
        result = EmailService(api_key=None).send_email('a@example.com', 'A', 'Hi', 'Body')

        assert result['success'] is False

    def test_no_recipient(self):
        result = EmailService(api_key='SG.test').send_email('', 'A', 'Hi', 'Body')

        assert result['success'] is False

    @patch('maisushi.services.email_service.SendGridAPIClient')
    def test_sendgrid_error(self, mock_client_cls):
        mock_client_cls.return_value.send.side_effect = Exception('401 Unauthorized')

        result = EmailService(api_key='SG.bad').send_email('a@example.com', 'A', 'Hi', 'Body')

        assert result['success'] is False
        assert '401' in result['error']
