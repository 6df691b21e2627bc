"""
Points API endpoints for the Mai Sushi loyalty ledger.

Handles:
- Balance and lifetime totals
- Points history (newest first)
- Manual awards and adjustments (bonus, birthday, referral, ...)
"""
from flask import Blueprint, request, jsonify

from ..models.points import PointsKind
from ..services.points_service import PointsService
from ..utils.errors import bad_request, service_failure, ErrorCode

points_bp = Blueprint('points', __name__)

# Order accruals come from order completion, redemptions from reward claims
MANUAL_KINDS = [
    kind.value for kind in PointsKind
    if kind not in (PointsKind.ORDER, PointsKind.REDEMPTION)
]


@points_bp.route('/balance', methods=['GET'])
def get_balance():
    """
    Get a customer's points balance.

    Query params:
        user_id: Customer id (required)
    """
    user_id = request.args.get('user_id')
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    return jsonify(PointsService().get_points_summary(user_id))


@points_bp.route('/history', methods=['GET'])
def get_history():
    """
    Get a customer's points history, most recent first.

    Query params:
        user_id: Customer id (required)
        limit: Max rows (default 50)
    """
    user_id = request.args.get('user_id')
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    limit = request.args.get('limit', 50, type=int)
    history = PointsService().get_user_points_history(user_id, limit=min(max(limit, 1), 500))
    transactions = [row.to_dict() for row in history]

    return jsonify({
        'transactions': transactions,
        'count': len(transactions)
    })


@points_bp.route('/transactions', methods=['POST'])
def add_transaction():
    """
    Award or adjust points manually.

    JSON body:
        user_id: Customer id (required)
        points: Points delta (required; negative only for adjustment)
        type: One of bonus, reward, birthday, referral, tier_upgrade,
              welcome, review, social_share, adjustment
        metadata: Details for the description (reason, platform, ...)
    """
    data = request.json or {}

    user_id = data.get('user_id')
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    if data.get('points') is None:
        return bad_request('points is required', ErrorCode.MISSING_FIELD)
    try:
        points = int(data['points'])
    except (TypeError, ValueError):
        return bad_request('points must be an integer', ErrorCode.INVALID_FIELD)

    kind = data.get('type', PointsKind.BONUS.value)
    if kind not in MANUAL_KINDS:
        return bad_request(f'type must be one of: {MANUAL_KINDS}', ErrorCode.INVALID_FIELD)

    metadata = data.get('metadata') or {}
    if not isinstance(metadata, dict):
        return bad_request('metadata must be an object', ErrorCode.INVALID_FIELD)

    result = PointsService().add_transaction(
        user_id=user_id,
        points=points,
        kind=kind,
        metadata=metadata
    )
    if not result['success']:
        return service_failure(result)

    status = 200 if result.get('skipped') else 201
    return jsonify(result), status
