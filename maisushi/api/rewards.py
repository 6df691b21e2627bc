"""
Rewards API endpoints for the Mai Sushi loyalty program.

Handles:
- Available rewards listing (annotated with the customer's claims)
- Reward claims and daily claim status
- In-person redemption by staff
- Owner catalog management, claim analytics and staff claim search
"""
from flask import Blueprint, request, jsonify

from ..services.owner_rewards_service import OwnerRewardsService
from ..services.rewards_service import RewardsService
from ..utils.errors import bad_request, not_found, service_failure, ErrorCode

rewards_bp = Blueprint('rewards', __name__)


def _require_user_id():
    return request.args.get('user_id')


@rewards_bp.route('', methods=['GET'])
def list_available_rewards():
    """
    List rewards the customer can claim.

    Query params:
        user_id: Customer id (optional; without it no claim annotations)
    """
    rewards = RewardsService().get_available_rewards(request.args.get('user_id'))
    return jsonify({
        'rewards': rewards,
        'count': len(rewards)
    })


@rewards_bp.route('/<reward_id>/claim', methods=['POST'])
def claim_reward(reward_id):
    """
    Claim a reward, spending its points.

    JSON body:
        user_id: Customer id (required)
    """
    data = request.json or {}
    user_id = data.get('user_id')
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    result = RewardsService().claim_reward(user_id, reward_id)
    if not result['success']:
        return service_failure(result)

    return jsonify(result), 201


@rewards_bp.route('/claimed', methods=['GET'])
def list_claimed_rewards():
    """Customer's claimed rewards, newest first."""
    user_id = _require_user_id()
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    claims = RewardsService().get_user_claimed_rewards(user_id)
    return jsonify({
        'claims': claims,
        'count': len(claims)
    })


@rewards_bp.route('/daily-status', methods=['GET'])
def daily_status():
    """How many claims the customer has left today."""
    user_id = _require_user_id()
    if not user_id:
        return bad_request('user_id is required', ErrorCode.MISSING_FIELD)

    return jsonify(RewardsService().get_daily_claim_status(user_id))


@rewards_bp.route('/redeem', methods=['POST'])
def redeem_in_person():
    """
    Mark a claimed reward as used at the counter.

    JSON body:
        redemption_code: Code shown by the customer (required)
        staff_name: Staff member redeeming it (required)
    """
    data = request.json or {}
    redemption_code = (data.get('redemption_code') or '').strip()
    staff_name = (data.get('staff_name') or '').strip()

    if not redemption_code:
        return bad_request('redemption_code is required', ErrorCode.MISSING_FIELD)
    if not staff_name:
        return bad_request('staff_name is required', ErrorCode.MISSING_FIELD)

    result = RewardsService().redeem_in_person(redemption_code, staff_name)
    if not result['success']:
        return service_failure(result)

    return jsonify(result)


# ==============================================================================
# OWNER / STAFF CATALOG MANAGEMENT
# ==============================================================================

@rewards_bp.route('/admin', methods=['GET'])
def list_rewards_with_analytics():
    """Every reward, active or not, with claim counts and redemption rate."""
    rewards = OwnerRewardsService().get_all_rewards_with_analytics()
    return jsonify({
        'rewards': rewards,
        'count': len(rewards)
    })


@rewards_bp.route('/admin', methods=['POST'])
def create_reward():
    """
    Create a reward.

    JSON body:
        name: Reward name (required)
        type: 'discount', 'free_item', 'birthday' or 'special' (required)
        points_required: Points cost, 0 for a one-time free reward
        description, discount_percentage, free_item_name, is_active, valid_until
    """
    result = OwnerRewardsService().create_reward(request.json or {})
    if not result['success']:
        return service_failure(result)

    return jsonify(result), 201


@rewards_bp.route('/admin/bulk', methods=['POST'])
def create_bulk_rewards():
    """
    Create several rewards in one batch.

    JSON body:
        rewards: List of reward objects, same fields as create
    """
    data = request.json or {}
    rewards = data.get('rewards')
    if not isinstance(rewards, list):
        return bad_request('rewards must be a list', ErrorCode.INVALID_FIELD)

    result = OwnerRewardsService().create_bulk_rewards(rewards)
    if not result['success']:
        return service_failure(result)

    return jsonify(result), 201


@rewards_bp.route('/admin/archive-expired', methods=['POST'])
def archive_expired_rewards():
    """Deactivate rewards past their valid_until date."""
    result = OwnerRewardsService().archive_expired_rewards()
    if not result['success']:
        return service_failure(result)

    return jsonify(result)


@rewards_bp.route('/admin/claims/search', methods=['GET'])
def search_claims():
    """
    Find claimed rewards at the counter.

    Query params:
        q: Redemption code, customer id or reward name (substring)
        status: 'used' or 'unused'
        reward_type: Reward type filter
    """
    claims = OwnerRewardsService().search_rewards_for_staff(
        request.args.get('q'),
        status=request.args.get('status'),
        reward_type=request.args.get('reward_type')
    )
    return jsonify({
        'claims': claims,
        'count': len(claims)
    })


@rewards_bp.route('/admin/<reward_id>', methods=['PUT'])
def update_reward(reward_id):
    """Update a reward. JSON body: any of the create fields."""
    result = OwnerRewardsService().update_reward(reward_id, request.json or {})
    if not result['success']:
        return service_failure(result)

    return jsonify(result)


@rewards_bp.route('/admin/<reward_id>/toggle', methods=['POST'])
def toggle_reward(reward_id):
    """
    Enable or disable a reward.

    JSON body:
        is_active: New status (required)
    """
    data = request.json or {}
    if 'is_active' not in data:
        return bad_request('is_active is required', ErrorCode.MISSING_FIELD)

    result = OwnerRewardsService().toggle_reward_active(reward_id, bool(data['is_active']))
    if not result['success']:
        return service_failure(result)

    return jsonify(result)


@rewards_bp.route('/admin/<reward_id>/analytics', methods=['GET'])
def reward_analytics(reward_id):
    """Claims for one reward with totals and a monthly breakdown."""
    analytics = OwnerRewardsService().get_reward_redemption_analytics(reward_id)
    if analytics is None:
        return not_found('Reward not found', ErrorCode.REWARD_NOT_FOUND)

    return jsonify(analytics)
