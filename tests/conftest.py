"""
Shared pytest fixtures for the Mai Sushi backend tests.
"""
import pytest

from maisushi import create_app
from maisushi.extensions import db
from maisushi.models import Reward, RewardType


@pytest.fixture
def app():
    """Create test application."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Test client."""
    return app.test_client()


@pytest.fixture
def sample_user_id():
    return 'user-8f3a2c41'


@pytest.fixture
def sample_reward(app):
    """A 20 point reward."""
    reward = Reward(
        name='Free Gyoza',
        description='Six pan-fried gyoza.',
        points_required=20,
        type=RewardType.FREE_ITEM.value,
        free_item_name='Gyoza',
        is_active=True
    )
    db.session.add(reward)
    db.session.commit()
    return reward


@pytest.fixture
def free_reward(app):
    """A one-time 0 point reward."""
    reward = Reward(
        name='Welcome Miso Soup',
        description='A free miso soup.',
        points_required=0,
        type=RewardType.FREE_ITEM.value,
        free_item_name='Miso soup',
        is_active=True
    )
    db.session.add(reward)
    db.session.commit()
    return reward


@pytest.fixture
def order_document():
    """Factory for Firestore REST documents."""
    return firestore_document


def firestore_document(order_id='order-123', **overrides):
    """Firestore REST document for a 34.50 order."""
    fields = {
        'id': {'stringValue': order_id},
        'subtotal': {'doubleValue': 30.0},
        'gst': {'doubleValue': 1.5},
        'qst': {'doubleValue': 3.0},
        'delivery_fee': {'integerValue': '0'},
        'final_total': {'doubleValue': 34.5},
        'status': {'stringValue': 'completed'},
        'delivery_type': {'stringValue': 'pickup'},
        'created_at': {'timestampValue': '2026-10-18T19:30:12.123456789Z'},
        'customerInfo': {'mapValue': {'fields': {
            'name': {'stringValue': 'Aiko Tanaka'},
            'email': {'stringValue': 'aiko@example.com'},
            'phone': {'stringValue': '514-555-0199'},
        }}},
        'items': {'arrayValue': {'values': [
            {'mapValue': {'fields': {
                'id': {'stringValue': 'cal-roll'},
                'name': {'stringValue': 'California Roll'},
                'price': {'doubleValue': 12.0},
                'quantity': {'integerValue': '2'},
            }}},
            {'mapValue': {'fields': {
                'id': {'stringValue': 'miso'},
                'name': {'stringValue': 'Miso Soup'},
                'price': {'doubleValue': 6.0},
                'quantity': {'integerValue': '1'},
            }}},
        ]}},
    }
    fields.update(overrides)
    return {
        'name': f'projects/maisushi-test/databases/(default)/documents/orders/{order_id}',
        'fields': fields,
    }
