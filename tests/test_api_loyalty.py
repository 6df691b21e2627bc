"""
Tests for the orders, points and rewards API endpoints.
"""
from unittest.mock import patch, MagicMock

from maisushi.models import PointsKind
from maisushi.services.points_service import PointsService


def _fund(user_id, points):
    PointsService().add_transaction(user_id, points, PointsKind.BONUS)


class TestHealth:
    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.json['status'] == 'healthy'

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/nope')

        assert response.status_code == 404
        assert response.json['error']['code'] == 'NOT_FOUND'


class TestOrdersAPI:
    """Tests for /api/orders."""

    @patch('maisushi.services.notification_relay.NotificationRelay.deliver', return_value=True)
    @patch('maisushi.services.document_store.requests.get')
    def test_complete_order(self, mock_get, mock_deliver, client, sample_user_id, order_document):
        mock_get.return_value = MagicMock(status_code=200, json=MagicMock(return_value=order_document('order-123')))

        response = client.post('/api/orders/order-123/complete', json={'user_id': sample_user_id})

        assert response.status_code == 200
        data = response.json
        assert data['state'] == 'done'
        assert data['confirmed'] is True
        assert data['points_earned'] == 34
        assert data['new_balance'] == 34
        assert data['order']['final_total'] == 34.5
        assert data['notification_status'] in ('sending', 'success', 'error')

    @patch('maisushi.services.document_store.requests.get')
    def test_complete_order_twice(self, mock_get, client, sample_user_id):
        mock_get.return_value = MagicMock(status_code=404)

        with patch('maisushi.services.notification_relay.NotificationRelay.deliver', return_value=True):
            client.post('/api/orders/cash-001/complete', json={'user_id': sample_user_id})
            second = client.post('/api/orders/cash-001/complete', json={'user_id': sample_user_id})

        assert second.status_code == 200
        assert second.json['duplicate'] is True
        assert PointsService().get_current_balance(sample_user_id) == 34

    @patch('maisushi.services.document_store.requests.get')
    def test_list_mirrored_orders(self, mock_get, client, sample_user_id):
        mock_get.return_value = MagicMock(status_code=404)

        with patch('maisushi.services.notification_relay.NotificationRelay.deliver', return_value=True):
            client.post('/api/orders/cash-001/complete', json={'user_id': sample_user_id})

        response = client.get(f'/api/orders/mirrored?user_id={sample_user_id}')

        assert response.status_code == 200
        assert response.json['count'] == 1
        assert response.json['orders'][0]['firebase_order_id'] == 'cash-001'

    def test_list_mirrored_orders_requires_user(self, client):
        response = client.get('/api/orders/mirrored')

        assert response.status_code == 400
        assert response.json['error']['code'] == 'MISSING_FIELD'


class TestPointsAPI:
    """Tests for /api/points."""

    def test_balance(self, client, sample_user_id):
        _fund(sample_user_id, 25)

        response = client.get(f'/api/points/balance?user_id={sample_user_id}')

        assert response.status_code == 200
        assert response.json['points'] == 25
        assert response.json['lifetime_earned'] == 25

    def test_balance_unknown_user_is_zero(self, client):
        response = client.get('/api/points/balance?user_id=nobody')

        assert response.json['points'] == 0

    def test_history(self, client, sample_user_id):
        _fund(sample_user_id, 5)
        _fund(sample_user_id, 7)

        response = client.get(f'/api/points/history?user_id={sample_user_id}&limit=1')

        assert response.status_code == 200
        assert response.json['count'] == 1
        assert response.json['transactions'][0]['points'] == 7

    def test_add_bonus(self, client, sample_user_id):
        response = client.post('/api/points/transactions', json={
            'user_id': sample_user_id,
            'points': 50,
            'type': 'bonus',
            'metadata': {'reason': 'Grand opening'}
        })

        assert response.status_code == 201
        assert response.json['new_balance'] == 50
        assert response.json['description'] == 'Bonus • Grand opening'

    def test_zero_points_not_recorded(self, client, sample_user_id):
        response = client.post('/api/points/transactions', json={
            'user_id': sample_user_id, 'points': 0, 'type': 'bonus'
        })

        assert response.status_code == 200
        assert response.json['skipped'] is True

    def test_order_type_not_allowed(self, client, sample_user_id):
        response = client.post('/api/points/transactions', json={
            'user_id': sample_user_id, 'points': 10, 'type': 'order'
        })

        assert response.status_code == 400

    def test_adjustment_beyond_balance(self, client, sample_user_id):
        response = client.post('/api/points/transactions', json={
            'user_id': sample_user_id, 'points': -10, 'type': 'adjustment'
        })

        assert response.status_code == 422
        assert response.json['error']['code'] == 'INSUFFICIENT_POINTS'

    def test_missing_points(self, client, sample_user_id):
        response = client.post('/api/points/transactions', json={'user_id': sample_user_id})

        assert response.status_code == 400


class TestRewardsAPI:
    """Tests for /api/rewards."""

    def test_list_rewards(self, client, sample_user_id, sample_reward):
        response = client.get(f'/api/rewards?user_id={sample_user_id}')

        assert response.status_code == 200
        assert response.json['count'] == 1
        assert response.json['rewards'][0]['claimed'] is False

    def test_claim(self, client, sample_user_id, sample_reward):
        _fund(sample_user_id, 34)

        response = client.post(f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id})

        assert response.status_code == 201
        assert response.json['new_balance'] == 14
        assert response.json['redemption_code'].startswith('RWD-')

    def test_claim_twice_conflict(self, client, sample_user_id, sample_reward):
        _fund(sample_user_id, 100)
        client.post(f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id})

        response = client.post(f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id})

        assert response.status_code == 409
        assert response.json['error']['code'] == 'ALREADY_CLAIMED'

    def test_claim_insufficient(self, client, sample_user_id, sample_reward):
        response = client.post(f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id})

        assert response.status_code == 422
        assert response.json['error']['message'] == 'Insufficient points'

    def test_claim_unknown_reward(self, client, sample_user_id):
        response = client.post('/api/rewards/missing/claim', json={'user_id': sample_user_id})

        assert response.status_code == 404

    def test_claim_requires_user(self, client, sample_reward):
        response = client.post(f'/api/rewards/{sample_reward.id}/claim', json={})

        assert response.status_code == 400

    def test_claimed_and_daily_status(self, client, sample_user_id, sample_reward):
        _fund(sample_user_id, 20)
        client.post(f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id})

        claimed = client.get(f'/api/rewards/claimed?user_id={sample_user_id}')
        status = client.get(f'/api/rewards/daily-status?user_id={sample_user_id}')

        assert claimed.json['count'] == 1
        assert status.json == {'used': 1, 'remaining': 2, 'limit': 3, 'can_claim': True}

    def test_redeem_in_person(self, client, sample_user_id, sample_reward):
        _fund(sample_user_id, 20)
        code = client.post(
            f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id}
        ).json['redemption_code']

        first = client.post('/api/rewards/redeem', json={'redemption_code': code, 'staff_name': 'Hana'})
        second = client.post('/api/rewards/redeem', json={'redemption_code': code, 'staff_name': 'Hana'})

        assert first.status_code == 200
        assert first.json['claim']['redeemed_by'] == 'Hana'
        assert second.status_code == 404
        assert second.json['error']['message'] == 'Reward not found or already used'

    def test_redeem_requires_staff_name(self, client):
        response = client.post('/api/rewards/redeem', json={'redemption_code': 'RWD-X'})

        assert response.status_code == 400


class TestRewardsAdminAPI:
    """Tests for /api/rewards/admin."""

    def test_create_reward(self, client):
        response = client.post('/api/rewards/admin', json={
            'name': 'Free Edamame', 'type': 'free_item', 'points_required': 15
        })

        assert response.status_code == 201
        assert response.json['reward']['name'] == 'Free Edamame'

    def test_create_reward_invalid(self, client):
        response = client.post('/api/rewards/admin', json={'name': 'Free Edamame', 'type': 'voucher'})

        assert response.status_code == 400
        assert response.json['error']['code'] == 'INVALID_FIELD'

    def test_bulk_create(self, client):
        response = client.post('/api/rewards/admin/bulk', json={'rewards': [
            {'name': 'Holiday Roll', 'type': 'free_item', 'points_required': 50},
            {'name': 'Holiday Discount', 'type': 'discount', 'points_required': 30},
        ]})

        assert response.status_code == 201
        assert response.json['created_count'] == 2

    def test_bulk_create_requires_list(self, client):
        response = client.post('/api/rewards/admin/bulk', json={'rewards': 'Holiday Roll'})

        assert response.status_code == 400

    def test_update_and_toggle(self, client, sample_reward):
        updated = client.put(f'/api/rewards/admin/{sample_reward.id}', json={'points_required': 25})
        toggled = client.post(f'/api/rewards/admin/{sample_reward.id}/toggle', json={'is_active': False})

        assert updated.status_code == 200
        assert updated.json['reward']['points_required'] == 25
        assert toggled.json['reward']['is_active'] is False

    def test_toggle_requires_status(self, client, sample_reward):
        response = client.post(f'/api/rewards/admin/{sample_reward.id}/toggle', json={})

        assert response.status_code == 400
        assert response.json['error']['code'] == 'MISSING_FIELD'

    def test_update_unknown_reward(self, client):
        response = client.put('/api/rewards/admin/no-such-reward', json={'points_required': 5})

        assert response.status_code == 404

    def test_analytics(self, client, sample_user_id, sample_reward):
        _fund(sample_user_id, 20)
        client.post(f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id})

        listing = client.get('/api/rewards/admin')
        report = client.get(f'/api/rewards/admin/{sample_reward.id}/analytics')

        assert listing.json['count'] == 1
        assert listing.json['rewards'][0]['total_claimed'] == 1
        assert report.json['analytics']['pending_redemption'] == 1

    def test_analytics_unknown_reward(self, client):
        response = client.get('/api/rewards/admin/no-such-reward/analytics')

        assert response.status_code == 404
        assert response.json['error']['code'] == 'REWARD_NOT_FOUND'

    def test_search_claims(self, client, sample_user_id, sample_reward):
        _fund(sample_user_id, 20)
        code = client.post(
            f'/api/rewards/{sample_reward.id}/claim', json={'user_id': sample_user_id}
        ).json['redemption_code']

        response = client.get(f'/api/rewards/admin/claims/search?q={code.lower()}&status=unused')

        assert response.status_code == 200
        assert response.json['count'] == 1
        assert response.json['claims'][0]['reward']['name'] == 'Free Gyoza'

    def test_archive_expired(self, client):
        response = client.post('/api/rewards/admin/archive-expired')

        assert response.status_code == 200
        assert response.json == {'success': True, 'archived_count': 0}
