"""
Owner Rewards Service.

Catalog management and reporting for the restaurant owner and staff:
- create, update, enable/disable and bulk-create rewards
- archive rewards past their valid_until date
- claim and redemption analytics per reward
- claim search at the counter (by code, customer id or reward name)
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List, Optional, Tuple

from flask import current_app
from sqlalchemy import case, func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.rewards import Reward, RewardType, UserClaimedReward
from ..utils.errors import ErrorCode
from .rewards_service import _failure

REWARD_TYPES = [t.value for t in RewardType]

UPDATABLE_FIELDS = (
    'name', 'description', 'points_required', 'type',
    'discount_percentage', 'free_item_name', 'is_active', 'valid_until',
)


def _parse_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _redemption_rate(total_claimed: int, total_used: int) -> int:
    """Share of claims redeemed, as a rounded percentage."""
    if not total_claimed:
        return 0
    return round(total_used * 100 / total_claimed)


def parse_reward_fields(data: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Validate reward fields from a request body.

    Args:
        data: Raw fields
        partial: Only validate the fields present (updates)

    Returns:
        (fields, error): error is None when the fields are valid
    """
    if not partial:
        for name in ('name', 'type'):
            if data.get(name) in (None, ''):
                return {}, f'{name} is required'

    fields = {}
    for name in UPDATABLE_FIELDS:
        if name in data:
            fields[name] = data[name]

    if 'name' in fields and not str(fields['name'] or '').strip():
        return {}, 'name cannot be empty'

    if 'type' in fields and fields['type'] not in REWARD_TYPES:
        return {}, f'type must be one of: {REWARD_TYPES}'

    if 'points_required' in fields or not partial:
        try:
            points_required = int(fields.get('points_required') or 0)
        except (ValueError, TypeError):
            return {}, 'points_required must be an integer'
        if points_required < 0:
            return {}, 'points_required cannot be negative'
        fields['points_required'] = points_required

    if fields.get('discount_percentage') is not None:
        try:
            fields['discount_percentage'] = Decimal(str(fields['discount_percentage']))
        except InvalidOperation:
            return {}, 'discount_percentage must be a number'

    if 'valid_until' in fields:
        try:
            fields['valid_until'] = _parse_datetime(fields['valid_until'])
        except (ValueError, TypeError):
            return {}, 'valid_until must be an ISO 8601 date'

    if 'is_active' in fields:
        fields['is_active'] = bool(fields['is_active'])

    return fields, None


class OwnerRewardsService:
    """
    Usage:
        service = OwnerRewardsService()
        result = service.create_reward({'name': 'Free Gyoza', 'type': 'free_item',
                                        'points_required': 20})
        rows = service.get_all_rewards_with_analytics()
    """

    # ==================== Catalog management ====================

    def create_reward(self, data: Dict[str, Any]) -> Dict[str, Any]:
        fields, error = parse_reward_fields(data)
        if error:
            return _failure(error, ErrorCode.INVALID_FIELD)

        reward = Reward(**fields)
        db.session.add(reward)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating reward: {e}")
            return _failure('Failed to create reward', ErrorCode.DATABASE_ERROR)

        current_app.logger.info(f"Reward created: '{reward.name}' ({reward.points_required} pts)")
        return {'success': True, 'reward': reward.to_dict()}

    def update_reward(self, reward_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        reward = db.session.get(Reward, reward_id)
        if not reward:
            return _failure('Reward not found', ErrorCode.REWARD_NOT_FOUND)

        fields, error = parse_reward_fields(updates, partial=True)
        if error:
            return _failure(error, ErrorCode.INVALID_FIELD)

        for name, value in fields.items():
            setattr(reward, name, value)
        reward.updated_at = datetime.utcnow()

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error updating reward {reward_id}: {e}")
            return _failure('Failed to update reward', ErrorCode.DATABASE_ERROR)

        return {'success': True, 'reward': reward.to_dict()}

    def toggle_reward_active(self, reward_id: str, is_active: bool) -> Dict[str, Any]:
        """Enable or disable a reward; claims already made are unaffected."""
        return self.update_reward(reward_id, {'is_active': is_active})

    def create_bulk_rewards(self, rewards: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Create several rewards at once, e.g. a seasonal promotion.

        All or nothing: one invalid entry rejects the whole batch.
        """
        if not rewards:
            return _failure('No rewards provided', ErrorCode.MISSING_FIELD)

        created = []
        for index, data in enumerate(rewards):
            fields, error = parse_reward_fields(data)
            if error:
                return _failure(f'Reward {index + 1}: {error}', ErrorCode.INVALID_FIELD)
            created.append(Reward(**fields))

        db.session.add_all(created)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error creating bulk rewards: {e}")
            return _failure('Failed to create rewards', ErrorCode.DATABASE_ERROR)

        current_app.logger.info(f"Bulk created {len(created)} reward(s)")
        return {
            'success': True,
            'created_count': len(created),
            'rewards': [reward.to_dict() for reward in created]
        }

    def archive_expired_rewards(self, now: datetime = None) -> Dict[str, Any]:
        """Deactivate active rewards whose valid_until has passed."""
        now = now or datetime.utcnow()
        try:
            result = db.session.execute(
                update(Reward)
                .where(
                    Reward.is_active.is_(True),
                    Reward.valid_until.isnot(None),
                    Reward.valid_until < now
                )
                .values(is_active=False, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error archiving expired rewards: {e}")
            return _failure('Failed to archive expired rewards', ErrorCode.DATABASE_ERROR)

        # Loaded rewards must not keep serving the pre-update flag
        db.session.expire_all()
        current_app.logger.info(f"Archived {result.rowcount} expired reward(s)")
        return {'success': True, 'archived_count': result.rowcount}

    # ==================== Analytics ====================

    def get_all_rewards_with_analytics(self) -> List[Dict[str, Any]]:
        """Every reward, newest first, with its claim counts."""
        stats = {
            reward_id: (int(claimed), int(used or 0), int(users))
            for reward_id, claimed, used, users in db.session.query(
                UserClaimedReward.reward_id,
                func.count(UserClaimedReward.id),
                func.sum(case((UserClaimedReward.is_used.is_(True), 1), else_=0)),
                func.count(func.distinct(UserClaimedReward.user_id))
            ).group_by(UserClaimedReward.reward_id)
        }

        rows = []
        for reward in Reward.query.order_by(Reward.created_at.desc(), Reward.name.asc()):
            claimed, used, users = stats.get(reward.id, (0, 0, 0))
            data = reward.to_dict()
            data.update({
                'total_claimed': claimed,
                'total_used': used,
                'redemption_rate': _redemption_rate(claimed, used),
                'active_users': users,
            })
            rows.append(data)
        return rows

    def get_reward_redemption_analytics(self, reward_id: str) -> Optional[Dict[str, Any]]:
        """
        Claim analytics for one reward.

        Returns None for an unknown reward. monthly_breakdown counts claims
        per calendar month, keyed like 'Oct 2026'.
        """
        reward = db.session.get(Reward, reward_id)
        if not reward:
            return None

        claims = (
            UserClaimedReward.query
            .filter_by(reward_id=reward_id)
            .order_by(UserClaimedReward.claimed_at.desc())
            .all()
        )

        total_claimed = len(claims)
        total_used = sum(1 for claim in claims if claim.is_used)

        monthly = {}
        for claim in claims:
            month = claim.claimed_at.strftime('%b %Y')
            monthly[month] = monthly.get(month, 0) + 1

        return {
            'reward': reward.to_dict(),
            'analytics': {
                'total_claimed': total_claimed,
                'total_used': total_used,
                'pending_redemption': total_claimed - total_used,
                'redemption_rate': _redemption_rate(total_claimed, total_used),
                'monthly_breakdown': monthly,
            },
            'claims': [claim.to_dict() for claim in claims]
        }

    # ==================== Staff search ====================

    def search_rewards_for_staff(
        self,
        search_term: str = None,
        status: str = None,
        reward_type: str = None
    ) -> List[Dict[str, Any]]:
        """
        Claims matching a redemption code, customer id or reward name.

        Args:
            search_term: Case-insensitive substring; empty returns every claim
            status: 'used' or 'unused'
            reward_type: Only claims of this RewardType

        Returns:
            Claims with their reward, newest first
        """
        query = UserClaimedReward.query.join(Reward, UserClaimedReward.reward_id == Reward.id)

        if status == 'used':
            query = query.filter(UserClaimedReward.is_used.is_(True))
        elif status == 'unused':
            query = query.filter(UserClaimedReward.is_used.is_(False))

        if reward_type:
            query = query.filter(Reward.type == reward_type)

        term = (search_term or '').strip()
        if term:
            pattern = f'%{term}%'
            query = query.filter(or_(
                UserClaimedReward.redemption_code.ilike(pattern),
                UserClaimedReward.user_id.ilike(pattern),
                Reward.name.ilike(pattern)
            ))

        claims = query.order_by(UserClaimedReward.claimed_at.desc()).all()
        return [claim.to_dict(include_reward=True) for claim in claims]
