"""
Tests for the `flask ledger` CLI commands.
"""
from sqlalchemy import update

from maisushi.commands.ledger import DEFAULT_REWARDS
from maisushi.extensions import db
from maisushi.models import PointsKind, Reward, UserPoints
from maisushi.services.points_service import PointsService


class TestVerifyCommand:

    def test_consistent_ledger(self, app, sample_user_id):
        PointsService().add_transaction(sample_user_id, 34, PointsKind.ORDER, order_id='o-1')

        result = app.test_cli_runner().invoke(args=['ledger', 'verify'])

        assert result.exit_code == 0
        assert 'Ledger OK' in result.output

    def test_mismatch_exits_non_zero(self, app, sample_user_id):
        PointsService().add_transaction(sample_user_id, 34, PointsKind.ORDER, order_id='o-1')
        db.session.execute(
            update(UserPoints).where(UserPoints.user_id == sample_user_id).values(points=99)
        )
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['ledger', 'verify', '--user-id', sample_user_id])

        assert result.exit_code == 1
        assert sample_user_id in result.output
        assert 'difference +65' in result.output


class TestSeedRewardsCommand:

    def test_seed_is_repeatable(self, app):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['ledger', 'seed-rewards'])
        second = runner.invoke(args=['ledger', 'seed-rewards'])

        assert first.exit_code == 0
        assert second.exit_code == 0
        assert f'Seeded {len(DEFAULT_REWARDS)} reward(s)' in first.output
        assert 'Seeded 0 reward(s)' in second.output
        assert Reward.query.count() == len(DEFAULT_REWARDS)
