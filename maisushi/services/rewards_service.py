"""
Rewards Redemption Service.

Claiming a reward runs in this order:
1. reject an unused claim of the same reward (free rewards: any claim)
2. load the reward, reject unknown, inactive or expired rewards
3. enforce the daily claim limit
4. deduct the cost together with its history row (one committed transaction),
   only while the user still holds no unused claim of the reward
5. insert the claim row

The claim row is only written after the deduction is committed. If that
insert fails the points stay spent and the failure is reported as
GRANTED_BUT_UNCLAIMED for manual reconciliation, unless the insert lost to
a concurrent claim of the same reward: that deduction is refunded with an
adjustment row and the request reports ALREADY_CLAIMED.
"""
import secrets
import string
from datetime import datetime, timedelta
from typing import Dict, Any, List

from flask import current_app
from sqlalchemy import exists, or_, update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models.points import PointsKind
from ..models.rewards import Reward, UserClaimedReward
from ..utils.errors import ErrorCode
from ..utils.exceptions import (
    DuplicateError,
    InsufficientPointsError,
    LedgerWriteError,
    GrantedButUnclaimedError,
)
from .points_service import PointsService

DEFAULT_MAX_DAILY_CLAIMS = 3

BASE36 = string.digits + string.ascii_uppercase


def _base36(number: int) -> str:
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36[remainder])
    return ''.join(reversed(digits))


def generate_redemption_code(user_id: str, reward_id: str, now: datetime = None) -> str:
    """RWD-<user>-<reward>-<timestamp>-<random>, shown to staff at pickup."""
    now = now or datetime.utcnow()
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    suffix = ''.join(secrets.choice(BASE36) for _ in range(6))
    return (
        f"RWD-{str(user_id)[-4:].upper()}-{str(reward_id)[-4:].upper()}"
        f"-{_base36(millis)}-{suffix}"
    )


def _failure(error: str, code: ErrorCode, **extra) -> Dict[str, Any]:
    result = {'success': False, 'error': error, 'code': code.value}
    result.update(extra)
    return result


class RewardsService:
    """
    Reward catalog reads and claim/redeem operations.

    Usage:
        service = RewardsService()
        result = service.claim_reward(user_id, reward_id)
        if not result['success']:
            print(result['error'], result['code'])
    """

    def __init__(self, points_service: PointsService = None, max_daily_claims: int = None):
        self.points_service = points_service or PointsService()
        self._max_daily_claims = max_daily_claims

    @property
    def max_daily_claims(self) -> int:
        if self._max_daily_claims is not None:
            return self._max_daily_claims
        return current_app.config.get('MAX_DAILY_CLAIMS', DEFAULT_MAX_DAILY_CLAIMS)

    # ==================== Claims ====================

    def claim_reward(self, user_id: str, reward_id: str) -> Dict[str, Any]:
        """
        Claim a reward for a user, deducting its cost from the balance.

        Returns:
            Dict with success and, on success, the claim and the balances;
            on failure an error message and an ErrorCode value.
        """
        if self._get_unused_claim(user_id, reward_id):
            return _failure('Reward already claimed', ErrorCode.ALREADY_CLAIMED)

        reward = db.session.get(Reward, reward_id)
        if not reward:
            return _failure('Reward not found', ErrorCode.REWARD_NOT_FOUND)

        if reward.is_one_time and self._has_any_claim(user_id, reward_id):
            return _failure('Reward already claimed', ErrorCode.ALREADY_CLAIMED)

        if not reward.is_available():
            return _failure('Reward is no longer available', ErrorCode.REWARD_UNAVAILABLE)

        used_today = self.count_claims_today(user_id)
        if used_today >= self.max_daily_claims:
            return _failure(
                f'Daily claim limit reached ({self.max_daily_claims} per day)',
                ErrorCode.DAILY_LIMIT_REACHED,
                limit=self.max_daily_claims
            )

        cost = reward.points_required or 0
        redemption_code = generate_redemption_code(user_id, reward_id)

        if cost > 0:
            balance = self.points_service.get_current_balance(user_id)
            if balance < cost:
                return _failure(
                    'Insufficient points', ErrorCode.INSUFFICIENT_POINTS,
                    current_balance=balance, required=cost
                )

            try:
                _, previous_balance, new_balance = self.points_service.apply_transaction(
                    user_id=user_id,
                    points=-cost,
                    kind=PointsKind.REDEMPTION,
                    metadata={
                        'rewardId': reward.id,
                        'rewardName': reward.name,
                        'redemptionCode': redemption_code,
                    },
                    guard=self._no_unused_claim(user_id, reward_id)
                )
            except InsufficientPointsError as e:
                # Balance spent by another session since the check above
                return _failure(
                    'Insufficient points', ErrorCode.INSUFFICIENT_POINTS,
                    current_balance=e.current, required=cost
                )
            except DuplicateError:
                # Claimed by a concurrent request after the check above
                return _failure('Reward already claimed', ErrorCode.ALREADY_CLAIMED)
            except LedgerWriteError as e:
                return _failure(e.message, ErrorCode.LEDGER_WRITE_FAILED)
        else:
            previous_balance = new_balance = self.points_service.get_current_balance(user_id)

        try:
            claim = self._insert_claim(user_id, reward, redemption_code)
        except GrantedButUnclaimedError as e:
            if self._get_unused_claim(user_id, reward_id):
                # A concurrent claim of this reward inserted first
                if cost == 0 or self._refund_lost_claim(user_id, reward, redemption_code):
                    return _failure('Reward already claimed', ErrorCode.ALREADY_CLAIMED)
            current_app.logger.error(
                f"GRANTED_BUT_UNCLAIMED: user {e.user_id} reward {e.reward_id} "
                f"points {e.points} code {e.redemption_code}"
            )
            return _failure(
                'Points were deducted but the reward could not be recorded. '
                'Please contact support.',
                ErrorCode.GRANTED_BUT_UNCLAIMED,
                redemption_code=redemption_code,
                points_spent=cost
            )

        current_app.logger.info(
            f"Reward claimed: user {user_id} '{reward.name}' for {cost} pts ({redemption_code})"
        )

        return {
            'success': True,
            'claim': claim.to_dict(include_reward=True),
            'redemption_code': redemption_code,
            'points_spent': cost,
            'previous_balance': previous_balance,
            'new_balance': new_balance
        }

    def _refund_lost_claim(self, user_id: str, reward: Reward, redemption_code: str) -> bool:
        cost = reward.points_required or 0
        try:
            self.points_service.apply_transaction(
                user_id=user_id,
                points=cost,
                kind=PointsKind.ADJUSTMENT,
                metadata={
                    'reason': f'Refund for {reward.name} (already claimed)',
                    'rewardId': reward.id,
                    'redemptionCode': redemption_code,
                }
            )
        except LedgerWriteError as e:
            current_app.logger.error(f"Refund of {cost} pts to user {user_id} failed: {e.message}")
            return False

        current_app.logger.warning(
            f"Refunded {cost} pts to user {user_id}: '{reward.name}' claimed concurrently ({redemption_code})"
        )
        return True

    def _insert_claim(self, user_id: str, reward: Reward, redemption_code: str) -> UserClaimedReward:
        claim = UserClaimedReward(
            user_id=user_id,
            reward_id=reward.id,
            redemption_code=redemption_code,
            claimed_at=datetime.utcnow(),
            is_used=False
        )
        db.session.add(claim)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise GrantedButUnclaimedError(
                user_id, reward.id, reward.points_required or 0, redemption_code
            ) from e
        return claim

    def _get_unused_claim(self, user_id: str, reward_id: str):
        return UserClaimedReward.query.filter_by(
            user_id=user_id,
            reward_id=reward_id,
            is_used=False
        ).first()

    def _no_unused_claim(self, user_id: str, reward_id: str):
        """SQL condition: the user holds no unused claim of this reward."""
        return ~exists().where(
            UserClaimedReward.user_id == user_id,
            UserClaimedReward.reward_id == reward_id,
            UserClaimedReward.is_used.is_(False)
        )

    def _has_any_claim(self, user_id: str, reward_id: str) -> bool:
        return UserClaimedReward.query.filter_by(
            user_id=user_id,
            reward_id=reward_id
        ).first() is not None

    # ==================== Daily limit ====================

    def count_claims_today(self, user_id: str, now: datetime = None) -> int:
        """Claims made since midnight UTC."""
        now = now or datetime.utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return UserClaimedReward.query.filter(
            UserClaimedReward.user_id == user_id,
            UserClaimedReward.claimed_at >= start_of_day,
            UserClaimedReward.claimed_at < start_of_day + timedelta(days=1)
        ).count()

    def get_daily_claim_status(self, user_id: str) -> Dict[str, Any]:
        used = self.count_claims_today(user_id)
        limit = self.max_daily_claims
        return {
            'used': used,
            'remaining': max(0, limit - used),
            'limit': limit,
            'can_claim': used < limit
        }

    # ==================== Reads ====================

    def get_available_rewards(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Active, unexpired rewards annotated with the user's claim state.

        Free rewards the user already claimed and paid rewards with an
        unused claim are left out.
        """
        now = datetime.utcnow()
        rewards = (
            Reward.query
            .filter(
                Reward.is_active.is_(True),
                or_(Reward.valid_until.is_(None), Reward.valid_until > now)
            )
            .order_by(Reward.points_required.asc(), Reward.name.asc())
            .all()
        )

        latest_claim = {}
        active_reward_ids = set()
        if user_id:
            claims = (
                UserClaimedReward.query
                .filter_by(user_id=user_id)
                .order_by(UserClaimedReward.claimed_at.desc())
                .all()
            )
            for claim in claims:
                latest_claim.setdefault(claim.reward_id, claim)
                if not claim.is_used:
                    active_reward_ids.add(claim.reward_id)

        available = []
        for reward in rewards:
            claim = latest_claim.get(reward.id)
            has_active_claim = reward.id in active_reward_ids

            if reward.is_one_time and claim:
                continue
            if has_active_claim:
                continue

            data = reward.to_dict()
            data.update({
                'claimed': claim is not None,
                'has_active_claim': has_active_claim,
                'is_used': bool(claim and claim.is_used),
                'claimed_at': claim.claimed_at.isoformat() if claim and claim.claimed_at else None,
                'used_at': claim.used_at.isoformat() if claim and claim.used_at else None,
            })
            available.append(data)

        return available

    def get_user_claimed_rewards(self, user_id: str) -> List[Dict[str, Any]]:
        """User's claims with their reward, newest first."""
        claims = (
            UserClaimedReward.query
            .filter_by(user_id=user_id)
            .order_by(UserClaimedReward.claimed_at.desc())
            .all()
        )
        return [claim.to_dict(include_reward=True) for claim in claims]

    # ==================== Staff redemption ====================

    def redeem_in_person(self, redemption_code: str, staff_name: str) -> Dict[str, Any]:
        """Mark an unused claim as used at the counter."""
        if not redemption_code:
            return _failure('Redemption code is required', ErrorCode.INVALID_FIELD)

        try:
            result = db.session.execute(
                update(UserClaimedReward)
                .where(
                    UserClaimedReward.redemption_code == redemption_code,
                    UserClaimedReward.is_used.is_(False)
                )
                .values(
                    is_used=True,
                    used_at=datetime.utcnow(),
                    redeemed_by=staff_name,
                    redemption_method='in_person'
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.session.rollback()
                return _failure('Reward not found or already used', ErrorCode.CLAIM_NOT_FOUND)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"In-person redemption failed for {redemption_code}: {e}")
            return _failure('Failed to redeem reward', ErrorCode.DATABASE_ERROR)

        claim = UserClaimedReward.query.filter_by(redemption_code=redemption_code).first()
        current_app.logger.info(f"Reward {redemption_code} redeemed in person by {staff_name}")
        return {'success': True, 'claim': claim.to_dict(include_reward=True)}
