"""
Ledger Store Client.

Client-facing copies of canonical orders in the relational store. A mirror
is created at most once per (user_id, firebase_order_id); the unique
constraint on that pair is the final guard when two sessions complete the
same order at once.

Mirroring is best-effort: a failed insert is logged and reported as None,
and the caller carries on with point accrual from the canonical order.
"""
from datetime import datetime
from typing import Optional, List

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models.order import Order, MirroredOrder


class LedgerStoreClient:
    """
    Usage:
        client = LedgerStoreClient()
        mirrored = client.mirror_order(user_id, order)   # None on failure
    """

    def get_mirrored_order(self, user_id: str, order_id: str) -> Optional[MirroredOrder]:
        return MirroredOrder.query.filter_by(
            user_id=user_id,
            firebase_order_id=order_id
        ).first()

    def list_user_orders(self, user_id: str, limit: int = 50) -> List[MirroredOrder]:
        """Mirrored orders for a user, newest first."""
        return (
            MirroredOrder.query
            .filter_by(user_id=user_id)
            .order_by(MirroredOrder.created_at.desc(), MirroredOrder.id.desc())
            .limit(limit)
            .all()
        )

    def mirror_order(self, user_id: str, order: Order) -> Optional[MirroredOrder]:
        """
        Mirror a canonical order for a user.

        Returns the existing row unchanged when the order was already
        mirrored for this user, the new row otherwise, or None when the
        insert failed.
        """
        existing = self.get_mirrored_order(user_id, order.id)
        if existing:
            current_app.logger.info(
                f"Order {order.id} already mirrored for user {user_id}, skipping insert"
            )
            return existing

        mirrored = MirroredOrder(
            user_id=user_id,
            firebase_order_id=order.id,
            subtotal=order.subtotal,
            gst=order.gst,
            qst=order.qst,
            delivery_fee=order.delivery_fee,
            final_total=order.final_total,
            items=[item.to_dict() for item in order.items],
            customer_name=order.customer.name or order.shipping_name,
            customer_email=order.customer.email,
            customer_phone=order.customer.phone,
            status=order.status,
            delivery_type=order.delivery_type,
            delivery_address=order.delivery_address,
            ordered_at=order.created_at,
            created_at=datetime.utcnow(),
        )
        db.session.add(mirrored)

        try:
            db.session.commit()
        except IntegrityError:
            # Another session mirrored the same order first
            db.session.rollback()
            current_app.logger.info(
                f"Concurrent mirror of order {order.id} for user {user_id}, using existing row"
            )
            return self.get_mirrored_order(user_id, order.id)
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(
                f"Failed to mirror order {order.id} for user {user_id}: {e}"
            )
            return None

        current_app.logger.info(
            f"Mirrored order {order.id} for user {user_id} (${order.final_total})"
        )
        return mirrored
