"""
Rewards catalog and claimed rewards.

A claim is created by RewardsService.claim_reward after the points
deduction is committed, and later marked used by staff when the customer
redeems it in person.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, Any

from ..extensions import db


def _uuid() -> str:
    return str(uuid.uuid4())


class RewardType(str, Enum):
    """Types of rewards."""
    DISCOUNT = 'discount'
    FREE_ITEM = 'free_item'
    BIRTHDAY = 'birthday'
    SPECIAL = 'special'


class Reward(db.Model):
    """
    Redeemable rewards catalog.

    points_required == 0 marks a one-time free reward: any prior claim,
    used or not, blocks claiming it again.
    """
    __tablename__ = 'rewards'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(1000))

    points_required = db.Column(db.Integer, nullable=False, default=0)
    type = db.Column(db.String(20), nullable=False)  # RewardType
    discount_percentage = db.Column(db.Numeric(5, 2))
    free_item_name = db.Column(db.String(200))

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    valid_until = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    claims = db.relationship('UserClaimedReward', backref='reward', lazy='dynamic')

    __table_args__ = (
        db.CheckConstraint('points_required >= 0', name='ck_rewards_points_required'),
        db.Index('ix_rewards_active_valid', 'is_active', 'valid_until'),
    )

    def __repr__(self):
        return f'<Reward {self.name}: {self.points_required} pts>'

    @property
    def is_one_time(self) -> bool:
        return (self.points_required or 0) == 0

    def is_available(self, now: datetime = None) -> bool:
        """Active and not past valid_until."""
        if not self.is_active:
            return False
        now = now or datetime.utcnow()
        if self.valid_until and self.valid_until < now:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'points_required': self.points_required,
            'type': self.type,
            'discount_percentage': float(self.discount_percentage) if self.discount_percentage is not None else None,
            'free_item_name': self.free_item_name,
            'is_active': self.is_active,
            'valid_until': self.valid_until.isoformat() if self.valid_until else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class UserClaimedReward(db.Model):
    """
    A reward claimed by a user.

    At most one unused claim per (user_id, reward_id), enforced by a
    partial unique index.
    """
    __tablename__ = 'user_claimed_rewards'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(64), nullable=False)
    reward_id = db.Column(db.String(36), db.ForeignKey('rewards.id'), nullable=False)

    redemption_code = db.Column(db.String(80), unique=True, nullable=False)
    claimed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    # Set when staff redeem the claim
    is_used = db.Column(db.Boolean, default=False, nullable=False)
    used_at = db.Column(db.DateTime)
    redeemed_by = db.Column(db.String(100))
    redemption_method = db.Column(db.String(30))

    __table_args__ = (
        db.Index(
            'uq_user_claimed_rewards_unused',
            'user_id', 'reward_id',
            unique=True,
            sqlite_where=db.text('is_used = 0'),
            postgresql_where=db.text('is_used = false'),
        ),
        db.Index('ix_user_claimed_rewards_user_claimed', 'user_id', 'claimed_at'),
    )

    def __repr__(self):
        return f'<UserClaimedReward {self.redemption_code} used={self.is_used}>'

    def to_dict(self, include_reward: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'reward_id': self.reward_id,
            'redemption_code': self.redemption_code,
            'claimed_at': self.claimed_at.isoformat() if self.claimed_at else None,
            'is_used': self.is_used,
            'used_at': self.used_at.isoformat() if self.used_at else None,
            'redeemed_by': self.redeemed_by,
            'redemption_method': self.redemption_method,
        }
        if include_reward and self.reward is not None:
            data['reward'] = self.reward.to_dict()
        return data
