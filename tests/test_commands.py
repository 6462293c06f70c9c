"""
Tests for the scoring CLI commands and app wiring.
"""
from creatorconnect.extensions import db
from creatorconnect.models import BrandScoringRules, Membership
from creatorconnect.services.points_service import PointsService, enqueue_pending_event
from creatorconnect.utils import scheduler


class TestScoringCommands:

    def test_rebuild_cache(self, app, sample_brand, sample_creator, sample_membership):
        PointsService(sample_brand.id).award_bonus(sample_creator.id, 70, 'Launch')
        membership = Membership.query.get(sample_membership.id)
        membership.points_cache = 0
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['scoring', 'rebuild-cache', '--brand-id', str(sample_brand.id)])

        assert result.exit_code == 0
        assert 'repaired 1' in result.output
        assert Membership.query.get(sample_membership.id).points_cache == 70

    def test_rebuild_unknown_brand(self, app):
        result = app.test_cli_runner().invoke(args=['scoring', 'rebuild-cache', '--brand-id', '999'])
        assert 'Brand 999 not found' in result.output

    def test_retry_pending(self, app, sample_brand, sample_creator, sample_membership):
        enqueue_pending_event(sample_brand.id, sample_creator.id, 'sale', {'sale_count': 1}, event_key='sale:5')
        db.session.commit()

        result = app.test_cli_runner().invoke(args=['scoring', 'retry-pending'])

        assert result.exit_code == 0
        assert 'Applied: 1' in result.output

    def test_process_metrics(self, app, sample_brand):
        result = app.test_cli_runner().invoke(args=['scoring', 'process-metrics'])
        assert result.exit_code == 0
        assert 'TOTAL: 0 awards' in result.output

    def test_seed_defaults(self, app, sample_brand):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['scoring', 'seed-defaults', '--brand-id', str(sample_brand.id)])
        second = runner.invoke(args=['scoring', 'seed-defaults', '--brand-id', str(sample_brand.id)])

        assert 'seeded rules, caps' in first.output
        assert 'nothing seeded' in second.output
        assert BrandScoringRules.query.filter_by(brand_id=sample_brand.id).count() == 1


class TestAppWiring:

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get('/api/nowhere')
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'NOT_FOUND'

    def test_scheduler_disabled_in_tests(self, app):
        assert scheduler._scheduler is None
