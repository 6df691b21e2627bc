"""
Order models.

Two shapes of the same order live here:
- Order (and its parts) is the canonical record read from the document
  store. It is written upstream by checkout and never modified here.
- MirroredOrder is the ledger store's client-facing copy, created at most
  once per (user_id, firebase_order_id).
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Dict, Any, Optional

from ..extensions import db


@dataclass
class OrderLineItem:
    """One line of a canonical order."""
    product_id: str
    name: str
    price: Decimal
    quantity: int = 1

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'price': float(self.price),
            'quantity': self.quantity,
        }


@dataclass
class CustomerInfo:
    """Contact fields captured at checkout."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'city': self.city,
        }


@dataclass
class Order:
    """Canonical order as stored in the document store."""
    id: str
    subtotal: Decimal
    gst: Decimal
    qst: Decimal
    delivery_fee: Decimal
    final_total: Decimal
    items: List[OrderLineItem] = field(default_factory=list)
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    shipping_name: Optional[str] = None
    status: str = 'completed'
    delivery_type: str = 'delivery'
    delivery_address: str = ''
    created_at: Optional[datetime] = None
    is_fallback: bool = False

    @property
    def tax_total(self) -> Decimal:
        return self.gst + self.qst

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'subtotal': float(self.subtotal),
            'gst': float(self.gst),
            'qst': float(self.qst),
            'delivery_fee': float(self.delivery_fee),
            'final_total': float(self.final_total),
            'items': [item.to_dict() for item in self.items],
            'customer': self.customer.to_dict(),
            'status': self.status,
            'delivery_type': self.delivery_type,
            'delivery_address': self.delivery_address,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'is_fallback': self.is_fallback,
        }


class MirroredOrder(db.Model):
    """
    Ledger store copy of a canonical order.

    (user_id, firebase_order_id) is unique: it is the de-duplication
    boundary when order completion runs more than once for the same order.
    Rows are never updated after insert.
    """
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    firebase_order_id = db.Column(db.String(128), nullable=False)

    # Denormalized totals
    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0'))
    gst = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0'))
    qst = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0'))
    delivery_fee = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0'))
    final_total = db.Column(db.Numeric(10, 2), nullable=False)

    items = db.Column(db.JSON, nullable=False, default=list)

    # Customer snapshot
    customer_name = db.Column(db.String(200))
    customer_email = db.Column(db.String(255))
    customer_phone = db.Column(db.String(50))

    status = db.Column(db.String(30), default='completed')
    delivery_type = db.Column(db.String(20), default='delivery')
    delivery_address = db.Column(db.String(500))

    # Timestamps
    ordered_at = db.Column(db.DateTime)  # created_at of the canonical order
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('user_id', 'firebase_order_id', name='uq_orders_user_source_order'),
        db.Index('ix_orders_user_created', 'user_id', 'created_at'),
    )

    def __repr__(self):
        return f'<MirroredOrder {self.firebase_order_id} for user {self.user_id}>'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'firebase_order_id': self.firebase_order_id,
            'subtotal': float(self.subtotal or 0),
            'gst': float(self.gst or 0),
            'qst': float(self.qst or 0),
            'delivery_fee': float(self.delivery_fee or 0),
            'final_total': float(self.final_total or 0),
            'items': self.items or [],
            'customer_name': self.customer_name,
            'customer_email': self.customer_email,
            'customer_phone': self.customer_phone,
            'status': self.status,
            'delivery_type': self.delivery_type,
            'delivery_address': self.delivery_address,
            'ordered_at': self.ordered_at.isoformat() if self.ordered_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
