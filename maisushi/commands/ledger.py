"""
CLI Commands for the points ledger.

# Nightly integrity check (non-zero exit on mismatch)
0 3 * * * cd /app && flask ledger verify
"""
from decimal import Decimal

import click
from flask.cli import with_appcontext

from ..extensions import db
from ..models.rewards import Reward, RewardType
from ..services.points_service import PointsService

DEFAULT_REWARDS = [
    {
        'name': 'Welcome Miso Soup',
        'description': 'A free miso soup with your next order.',
        'points_required': 0,
        'type': RewardType.FREE_ITEM.value,
        'free_item_name': 'Miso soup',
    },
    {
        'name': '10% Off Your Order',
        'description': '10% off any pickup or delivery order.',
        'points_required': 100,
        'type': RewardType.DISCOUNT.value,
        'discount_percentage': Decimal('10.00'),
    },
    {
        'name': 'Free California Roll',
        'description': 'One California roll (8 pieces) on the house.',
        'points_required': 150,
        'type': RewardType.FREE_ITEM.value,
        'free_item_name': 'California roll',
    },
    {
        'name': 'Birthday Dessert',
        'description': 'A mochi ice cream trio during your birthday month.',
        'points_required': 0,
        'type': RewardType.BIRTHDAY.value,
        'free_item_name': 'Mochi ice cream trio',
    },
    {
        'name': '20% Off Party Platter',
        'description': '20% off any party or catering platter.',
        'points_required': 400,
        'type': RewardType.SPECIAL.value,
        'discount_percentage': Decimal('20.00'),
    },
]


@click.group('ledger')
def ledger_cli():
    """Points ledger commands."""
    pass


@ledger_cli.command('verify')
@click.option('--user-id', help='Specific customer (or all if not specified)')
@with_appcontext
def verify(user_id):
    """
    Check that every balance equals the sum of its history.

    Exits with status 1 when any mismatch is found.
    """
    mismatches = PointsService().verify_balances(user_id=user_id)

    if not mismatches:
        click.echo('Ledger OK: all balances match their history')
        return

    click.echo(f'Ledger MISMATCH: {len(mismatches)} customer(s)')
    for m in mismatches:
        click.echo(
            f"  {m['user_id']}: balance {m['balance']}, history {m['history_total']} "
            f"(difference {m['difference']:+d})"
        )
    raise SystemExit(1)


@ledger_cli.command('seed-rewards')
@with_appcontext
def seed_rewards():
    """Insert the default rewards catalog (skips names that already exist)."""
    created = 0
    for data in DEFAULT_REWARDS:
        if Reward.query.filter_by(name=data['name']).first():
            click.echo(f"  exists: {data['name']}")
            continue
        db.session.add(Reward(**data))
        created += 1
        click.echo(f"  created: {data['name']} ({data['points_required']} pts)")

    db.session.commit()
    click.echo(f'Seeded {created} reward(s)')


def init_app(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(ledger_cli)
