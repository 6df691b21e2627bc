"""
Points ledger models.

- UserPoints is the running balance, one row per user.
- PointsHistory is the append-only audit trail.

Invariant: UserPoints.points == sum(PointsHistory.points) for the user.
Both rows are only ever written together, in one transaction, by
PointsService.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, Any

from ..extensions import db


class PointsKind(str, Enum):
    """What a points transaction was for."""
    ORDER = 'order'
    BONUS = 'bonus'
    REWARD = 'reward'
    BIRTHDAY = 'birthday'
    REFERRAL = 'referral'
    TIER_UPGRADE = 'tier_upgrade'
    WELCOME = 'welcome'
    REVIEW = 'review'
    SOCIAL_SHARE = 'social_share'
    REDEMPTION = 'redemption'
    ADJUSTMENT = 'adjustment'


class PointsTransactionType(str, Enum):
    """Constrained ledger direction stored alongside the kind."""
    EARN = 'earn'
    REDEEM = 'redeem'
    ADJUSTMENT = 'adjustment'


# Kinds that only ever add points
ACCRUAL_KINDS = frozenset(
    kind for kind in PointsKind
    if kind not in (PointsKind.REDEMPTION, PointsKind.ADJUSTMENT)
)


def transaction_type_for(kind: PointsKind) -> PointsTransactionType:
    if kind == PointsKind.REDEMPTION:
        return PointsTransactionType.REDEEM
    if kind == PointsKind.ADJUSTMENT:
        return PointsTransactionType.ADJUSTMENT
    return PointsTransactionType.EARN


class UserPoints(db.Model):
    """Current points balance for a user."""
    __tablename__ = 'user_points'

    user_id = db.Column(db.String(64), primary_key=True)
    points = db.Column(db.Integer, nullable=False, default=0)

    earned_at = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('points >= 0', name='ck_user_points_non_negative'),
    )

    def __repr__(self):
        return f'<UserPoints {self.user_id}: {self.points} pts>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'points': self.points,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class PointsHistory(db.Model):
    """
    Immutable points transaction.

    points is signed: positive for accruals, negative for redemptions.
    Rows are never updated or deleted.
    """
    __tablename__ = 'points_history'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.String(128))

    points = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(30), nullable=False)  # PointsKind
    transaction_type = db.Column(db.String(20), nullable=False)  # PointsTransactionType
    description = db.Column(db.String(500))
    extra_metadata = db.Column('metadata', db.JSON, default=dict)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('earn', 'redeem', 'adjustment')",
            name='ck_points_history_transaction_type'
        ),
        db.Index('ix_points_history_user_created', 'user_id', 'created_at'),
        # One order accrual per (user, order)
        db.Index(
            'uq_points_history_order_accrual',
            'user_id', 'order_id',
            unique=True,
            sqlite_where=db.text("type = 'order'"),
            postgresql_where=db.text("type = 'order'"),
        ),
    )

    def __repr__(self):
        return f'<PointsHistory {self.id}: {self.points:+d} pts for user {self.user_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'order_id': self.order_id,
            'points': self.points,
            'type': self.type,
            'transaction_type': self.transaction_type,
            'description': self.description,
            'metadata': self.extra_metadata or {},
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
