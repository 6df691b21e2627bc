"""
Database models for the Mai Sushi loyalty ledger.
Mirrored orders, points balance and history, rewards and claims.
"""
from .order import Order, OrderLineItem, CustomerInfo, MirroredOrder
from .points import (
    PointsKind,
    PointsTransactionType,
    ACCRUAL_KINDS,
    transaction_type_for,
    UserPoints,
    PointsHistory,
)
from .rewards import RewardType, Reward, UserClaimedReward

__all__ = [
    'Order',
    'OrderLineItem',
    'CustomerInfo',
    'MirroredOrder',
    'PointsKind',
    'PointsTransactionType',
    'ACCRUAL_KINDS',
    'transaction_type_for',
    'UserPoints',
    'PointsHistory',
    'RewardType',
    'Reward',
    'UserClaimedReward',
]
