"""
CLI Commands for scoring maintenance.

These commands can be run manually or via cron jobs:

# Repair cached points/tiers from the ledger
flask scoring rebuild-cache --brand-id=1

# Award outstanding post metrics
*/15 * * * * cd /app && flask scoring process-metrics

# Retry scoring events that failed internally
*/5 * * * * cd /app && flask scoring retry-pending
"""

import click
from flask.cli import with_appcontext

from ..models import Brand
from ..services import (
    ScoringConfigService,
    process_pending_events,
    process_all_outstanding,
    rebuild_all_caches,
)


@click.group('scoring')
def scoring_cli():
    """Scoring engine commands."""
    pass


@scoring_cli.command('rebuild-cache')
@click.option('--brand-id', type=int, help='Specific brand ID (or all if not specified)')
@with_appcontext
def rebuild_cache(brand_id):
    """Recompute every membership's cached points and tier from the ledger."""
    if brand_id and not Brand.query.get(brand_id):
        click.echo(f"Brand {brand_id} not found")
        return

    for result in rebuild_all_caches(brand_id):
        click.echo(
            f"Brand {result['brand_id']}: checked {result['checked']}, repaired {result['repaired']}"
        )
        for detail in result['details'][:10]:
            click.echo(
                f"  - Membership {detail['membership_id']}: "
                f"{detail['cached_points']} -> {detail['ledger_points']}"
            )


@scoring_cli.command('process-metrics')
@click.option('--brand-id', type=int, help='Specific brand ID (or all if not specified)')
@click.option('--campaign-id', type=int, help='Limit to one campaign')
@with_appcontext
def process_metrics(brand_id, campaign_id):
    """Award points for post metrics that have not been awarded yet."""
    total_awarded = 0
    total_pending = 0
    for result in process_all_outstanding(brand_id=brand_id, campaign_id=campaign_id):
        click.echo(
            f"Brand {result['brand_id']}: {result['snapshots']} posts, "
            f"{result['awarded']} awards, {result['pending']} deferred"
        )
        total_awarded += result['awarded']
        total_pending += result['pending']

    click.echo(f"\nTOTAL: {total_awarded} awards, {total_pending} deferred")


@scoring_cli.command('retry-pending')
@click.option('--brand-id', type=int, help='Specific brand ID (or all if not specified)')
@click.option('--max-attempts', type=int, help='Give up after this many attempts')
@with_appcontext
def retry_pending(brand_id, max_attempts):
    """Retry scoring events queued after internal failures."""
    result = process_pending_events(brand_id=brand_id, max_attempts=max_attempts)

    click.echo(f"Processed: {result['processed']}")
    click.echo(f"Applied: {result['applied']}")
    click.echo(f"Failed: {result['failed']}")
    click.echo(f"Retrying: {result['retrying']}")

    if result['errors']:
        click.echo(f"Errors: {len(result['errors'])}")
        for error in result['errors'][:5]:
            click.echo(f"  - Pending {error['pending_id']}: {error['error']}")


@scoring_cli.command('seed-defaults')
@click.option('--brand-id', type=int, required=True, help='Brand to seed')
@with_appcontext
def seed_defaults(brand_id):
    """Save the platform default rules and caps as a brand's own settings."""
    if not Brand.query.get(brand_id):
        click.echo(f"Brand {brand_id} not found")
        return

    result = ScoringConfigService(brand_id).seed_defaults(updated_by='cli')
    if result['created']:
        click.echo(f"Brand {brand_id}: seeded {', '.join(result['created'])}")
    else:
        click.echo(f"Brand {brand_id}: already configured, nothing seeded")


def init_app(app):
    """Register scoring commands with the Flask app."""
    app.cli.add_command(scoring_cli)
