"""
Points Service for the Mai Sushi loyalty ledger.

ARCHITECTURE:
- UserPoints holds the running balance, one row per user
- PointsHistory is the immutable, append-only transaction log
- balance == sum(history.points) for every user, at all times

Every balance change is a single conditional UPDATE executed by the
database (points = points + delta), paired with its history row in the
same transaction. The application never writes a balance it computed
from an earlier read, so concurrent accruals and redemptions for the same
user from different sessions all land.

An order is accrued at most once per user: a partial unique index on
points_history(user_id, order_id) for order rows rejects a second accrual
written by a racing worker, reported as ALREADY_ACCRUED.
"""

from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, List, Dict, Any

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models.points import (
    UserPoints,
    PointsHistory,
    PointsKind,
    ACCRUAL_KINDS,
    transaction_type_for,
)
from ..utils.errors import ErrorCode
from ..utils.exceptions import DuplicateError, InsufficientPointsError, LedgerWriteError


# ==================== Descriptions ====================

def format_cad(amount) -> str:
    """Format an amount as Canadian dollars, e.g. 1234.5 -> '$1,234.50'."""
    value = Decimal(str(amount or 0)).quantize(Decimal('0.01'))
    if value < 0:
        return f"-${-value:,.2f}"
    return f"${value:,.2f}"


def describe_transaction(kind: PointsKind, metadata: Dict[str, Any] = None) -> str:
    """Human-readable description shown in the points history."""
    metadata = metadata or {}

    if kind == PointsKind.ORDER:
        return f"Order • {format_cad(metadata.get('amount'))}"
    if kind == PointsKind.BONUS:
        return f"Bonus • {metadata.get('reason') or 'Special offer'}"
    if kind == PointsKind.REWARD:
        return f"Reward • {metadata.get('rewardName') or 'Claimed reward'}"
    if kind == PointsKind.BIRTHDAY:
        return 'Birthday surprise'
    if kind == PointsKind.REFERRAL:
        return f"Referral • {metadata.get('friendName') or 'Friend signed up'}"
    if kind == PointsKind.TIER_UPGRADE:
        return f"{metadata.get('tier') or 'New'} tier welcome"
    if kind == PointsKind.WELCOME:
        return 'Welcome bonus'
    if kind == PointsKind.REVIEW:
        return f"Review • {metadata.get('platform') or 'Feedback'}"
    if kind == PointsKind.SOCIAL_SHARE:
        return f"Social share • {metadata.get('platform') or 'Social media'}"
    if kind == PointsKind.REDEMPTION:
        return f"Points redeemed for reward: {metadata.get('rewardName') or 'Reward'}"
    if kind == PointsKind.ADJUSTMENT:
        return f"Adjustment • {metadata.get('reason') or 'Manual adjustment'}"
    return 'Points activity'


def calculate_order_points(final_total, points_per_dollar: int = 1) -> int:
    """Points earned for an order: whole points only, rounded down."""
    total = Decimal(str(final_total or 0)) * Decimal(points_per_dollar)
    if total <= 0:
        return 0
    return int(total.to_integral_value(rounding=ROUND_FLOOR))


class PointsService:
    """
    Central service for points ledger operations.

    Usage:
        service = PointsService()

        # Accrue points for an order
        result = service.add_transaction(user_id, 34, PointsKind.ORDER,
                                         order_id='abc123', metadata={'amount': 34.50})

        # Read history, newest first
        for row in service.get_user_points_history(user_id):
            ...
    """

    # ==================== Core Ledger Operations ====================

    def add_transaction(
        self,
        user_id: str,
        points: int,
        kind=PointsKind.ORDER,
        order_id: str = None,
        metadata: Dict[str, Any] = None,
        description: str = None
    ) -> Dict[str, Any]:
        """
        Append a points transaction and move the balance by the same amount.

        Non-positive points on an accrual kind are a no-op: no history row,
        no balance change, and a successful result flagged `skipped`.

        Args:
            user_id: Customer identifier
            points: Signed points delta (negative only for redemption/adjustment)
            kind: PointsKind (or its string value)
            order_id: Source order for order accruals
            metadata: Free-form details stored with the history row
            description: Override for the generated description

        Returns:
            Dict with success, points_earned, previous_balance, new_balance
        """
        try:
            kind = PointsKind(kind)
        except ValueError:
            return {
                'success': False,
                'error': f'Unknown points transaction type: {kind}',
                'code': ErrorCode.INVALID_FIELD.value
            }

        points = int(points or 0)

        if points == 0 or (kind in ACCRUAL_KINDS and points < 0):
            balance = self.get_current_balance(user_id)
            return {
                'success': True,
                'skipped': True,
                'points_earned': 0,
                'previous_balance': balance,
                'new_balance': balance
            }

        if kind == PointsKind.REDEMPTION and points > 0:
            return {
                'success': False,
                'error': 'Redemptions must deduct points',
                'code': ErrorCode.INVALID_FIELD.value
            }

        try:
            history, previous_balance, new_balance = self.apply_transaction(
                user_id=user_id,
                points=points,
                kind=kind,
                order_id=order_id,
                metadata=metadata,
                description=description
            )
        except InsufficientPointsError as e:
            return {
                'success': False,
                'error': 'Insufficient points',
                'code': ErrorCode.INSUFFICIENT_POINTS.value,
                'current_balance': e.current,
                'required': e.required
            }
        except DuplicateError as e:
            return {
                'success': False,
                'error': e.message,
                'code': ErrorCode.ALREADY_ACCRUED.value
            }
        except LedgerWriteError as e:
            return {
                'success': False,
                'error': e.message,
                'code': ErrorCode.LEDGER_WRITE_FAILED.value
            }

        return {
            'success': True,
            'transaction_id': history.id,
            'points_earned': points,
            'previous_balance': previous_balance,
            'new_balance': new_balance,
            'description': history.description
        }

    def apply_transaction(
        self,
        user_id: str,
        points: int,
        kind: PointsKind,
        order_id: str = None,
        metadata: Dict[str, Any] = None,
        description: str = None,
        guard=None
    ):
        """
        Atomically move the balance and append the history row.

        Deductions only apply while the balance covers them; the check is
        part of the UPDATE itself. An optional `guard` SQL condition is
        added to the same UPDATE, so the write is refused when another
        session has invalidated it in the meantime.

        Returns:
            (PointsHistory, previous_balance, new_balance)

        Raises:
            InsufficientPointsError: deduction larger than the balance
            DuplicateError: the guard no longer holds, or this order was
                already accrued
            LedgerWriteError: nothing was committed
        """
        metadata = dict(metadata or {})
        now = datetime.utcnow()

        self._ensure_balance_row(user_id)

        try:
            # Lock the balance row for the rest of the transaction
            locked = db.session.execute(
                select(UserPoints.points)
                .where(UserPoints.user_id == user_id)
                .with_for_update()
            ).scalar_one()

            values = {'points': UserPoints.points + points, 'updated_at': now}
            if points > 0:
                values['earned_at'] = now

            stmt = update(UserPoints).where(UserPoints.user_id == user_id)
            if points < 0:
                stmt = stmt.where(UserPoints.points >= -points)
            if guard is not None:
                stmt = stmt.where(guard)
            stmt = stmt.values(**values).execution_options(synchronize_session=False)

            result = db.session.execute(stmt)
            if result.rowcount == 0:
                db.session.rollback()
                if guard is not None and not db.session.execute(select(guard)).scalar():
                    raise DuplicateError(f'{kind.value} transaction', order_id)
                raise InsufficientPointsError(locked, -points)

            new_balance = db.session.execute(
                select(UserPoints.points).where(UserPoints.user_id == user_id)
            ).scalar_one()
            previous_balance = new_balance - points

            history = PointsHistory(
                user_id=user_id,
                order_id=order_id,
                points=points,
                type=kind.value,
                transaction_type=transaction_type_for(kind).value,
                description=description or describe_transaction(kind, metadata),
                extra_metadata=metadata,
                created_at=now
            )
            db.session.add(history)
            db.session.commit()

        except IntegrityError as e:
            db.session.rollback()
            if kind == PointsKind.ORDER and order_id and self.has_order_accrual(user_id, order_id):
                current_app.logger.info(
                    f"Order {order_id} already accrued for user {user_id}, write refused"
                )
                raise DuplicateError('Order accrual', order_id) from e
            self._log_write_failure(user_id, points, kind, order_id, e)
            raise LedgerWriteError(user_id, points, e) from e
        except SQLAlchemyError as e:
            db.session.rollback()
            self._log_write_failure(user_id, points, kind, order_id, e)
            raise LedgerWriteError(user_id, points, e) from e

        current_app.logger.info(
            f"Points {kind.value}: user {user_id} {points:+d} pts "
            f"({previous_balance} -> {new_balance})"
        )
        return history, previous_balance, new_balance

    def _log_write_failure(self, user_id, points, kind, order_id, error):
        current_app.logger.error(
            f"Points ledger write failed: user {user_id} {points:+d} pts "
            f"({kind.value}, order {order_id}): {error}"
        )

    def _ensure_balance_row(self, user_id: str) -> None:
        """Create the zero balance row on first use."""
        if db.session.get(UserPoints, user_id) is not None:
            return

        db.session.add(UserPoints(user_id=user_id, points=0))
        try:
            db.session.commit()
        except IntegrityError:
            # Created by a concurrent first transaction for the same user
            db.session.rollback()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerWriteError(user_id, 0, e) from e

    # ==================== Reads ====================

    def get_current_balance(self, user_id: str) -> int:
        balance = db.session.execute(
            select(UserPoints.points).where(UserPoints.user_id == user_id)
        ).scalar_one_or_none()
        return balance or 0

    def get_user_points_history(self, user_id: str, limit: Optional[int] = None):
        """
        Points transactions for a user, most recent first.

        Returns an unevaluated query: iterating it runs the read, and it
        can be iterated again for a fresh read.
        """
        query = (
            PointsHistory.query
            .filter_by(user_id=user_id)
            .order_by(PointsHistory.created_at.desc(), PointsHistory.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query

    def has_order_accrual(self, user_id: str, order_id: str) -> bool:
        """Whether points were already accrued for this order."""
        return db.session.query(
            PointsHistory.query.filter_by(
                user_id=user_id,
                order_id=order_id,
                type=PointsKind.ORDER.value
            ).exists()
        ).scalar()

    def get_points_summary(self, user_id: str) -> Dict[str, Any]:
        """Balance plus lifetime totals for display."""
        earned, spent = db.session.execute(
            select(
                func.coalesce(func.sum(PointsHistory.points).filter(PointsHistory.points > 0), 0),
                func.coalesce(func.sum(PointsHistory.points).filter(PointsHistory.points < 0), 0),
            ).where(PointsHistory.user_id == user_id)
        ).one()

        return {
            'user_id': user_id,
            'points': self.get_current_balance(user_id),
            'lifetime_earned': int(earned),
            'lifetime_redeemed': -int(spent)
        }

    # ==================== Integrity ====================

    def verify_balances(self, user_id: str = None) -> List[Dict[str, Any]]:
        """
        Compare every stored balance with the sum of its history.

        Returns one entry per mismatched user; an empty list means the
        ledger is consistent.
        """
        history_totals = (
            select(
                PointsHistory.user_id.label('user_id'),
                func.sum(PointsHistory.points).label('total')
            )
            .group_by(PointsHistory.user_id)
            .subquery()
        )

        query = (
            select(
                UserPoints.user_id,
                UserPoints.points,
                func.coalesce(history_totals.c.total, 0)
            )
            .outerjoin(history_totals, history_totals.c.user_id == UserPoints.user_id)
        )
        if user_id:
            query = query.where(UserPoints.user_id == user_id)

        mismatches = []
        for row_user_id, balance, total in db.session.execute(query):
            if int(balance) != int(total):
                mismatches.append({
                    'user_id': row_user_id,
                    'balance': int(balance),
                    'history_total': int(total),
                    'difference': int(balance) - int(total)
                })

        # History without a balance row at all
        orphan_query = (
            select(history_totals.c.user_id, history_totals.c.total)
            .outerjoin(UserPoints, UserPoints.user_id == history_totals.c.user_id)
            .where(UserPoints.user_id.is_(None))
        )
        if user_id:
            orphan_query = orphan_query.where(history_totals.c.user_id == user_id)

        for row_user_id, total in db.session.execute(orphan_query):
            if int(total) != 0:
                mismatches.append({
                    'user_id': row_user_id,
                    'balance': 0,
                    'history_total': int(total),
                    'difference': -int(total)
                })

        if mismatches:
            current_app.logger.error(f"Points ledger mismatches found: {len(mismatches)}")
        return mismatches
