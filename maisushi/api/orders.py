"""
Orders API endpoints for Mai Sushi.

Handles:
- Order completion after checkout (mirror, accrue, notify, track)
- Mirrored order listing for the customer hub
"""
from flask import Blueprint, request, jsonify

from ..services.ledger_store import LedgerStoreClient
from ..services.order_completion import get_order_completion_orchestrator
from ..utils.errors import bad_request, ErrorCode

orders_bp = Blueprint('orders', __name__)


@orders_bp.route('/<order_id>/complete', methods=['POST'])
def complete_order(order_id):
    """
    Complete a checked-out order.

    JSON body:
        user_id: Signed-in customer (omit for guest checkout)
        session_id: Checkout session id, used when order_id is 'session'
        customer_profile: Profile fields used for contact fallbacks

    Always returns 200: the order itself is confirmed; loyalty problems
    are reported in the payload.
    """
    data = request.json or {}
    session_id = data.get('session_id')

    orchestrator = get_order_completion_orchestrator()
    result = orchestrator.complete_order(
        order_id=None if order_id == 'session' else order_id,
        session_id=session_id,
        user_id=data.get('user_id'),
        customer_profile=data.get('customer_profile')
    )

    return jsonify(result.to_dict())


@orders_bp.route('/mirrored', methods=['GET'])
def list_mirrored_orders():
    """
    List a customer's mirrored orders, newest first.

    Query params:
        user_id: Customer id (required)
        limit: Max orders (default 50)
    """
    user_id = request.args.get('user_id')
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    limit = request.args.get('limit', 50, type=int)
    orders = LedgerStoreClient().list_user_orders(user_id, limit=min(max(limit, 1), 200))

    return jsonify({
        'orders': [o.to_dict() for o in orders],
        'count': len(orders)
    })
