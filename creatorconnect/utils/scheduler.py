"""
Background scheduler for automated scoring tasks.

Handles:
- Post metric awards (every METRICS_SYNC_INTERVAL_MINUTES)
- Retry of queued scoring events (every 5 minutes)
- Nightly cache reconciliation against the ledger (daily at 3 AM UTC)
"""
import os
import logging

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true, never in testing.
    Only the first gunicorn process starts it.
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.info('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # Prevent multiple scheduler instances across gunicorn workers
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.cron import CronTrigger
    from apscheduler.triggers.interval import IntervalTrigger

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 600
        }
    )

    interval = app.config.get('METRICS_SYNC_INTERVAL_MINUTES', 15)
    _scheduler.add_job(
        run_metrics_processing,
        trigger=IntervalTrigger(minutes=interval),
        id='metrics_processing',
        name='Award outstanding post metrics',
        replace_existing=True
    )

    _scheduler.add_job(
        run_pending_retry,
        trigger=IntervalTrigger(minutes=5),
        id='pending_retry',
        name='Retry queued scoring events',
        replace_existing=True
    )

    _scheduler.add_job(
        run_cache_reconciliation,
        trigger=CronTrigger(hour=3, minute=0),
        id='cache_reconciliation',
        name='Reconcile cached points with the ledger',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'

    logger.info(
        f'[Scheduler] Started with 3 jobs: metrics every {interval} min, '
        f'pending retry every 5 min, reconciliation daily at 3:00 UTC'
    )

    import atexit
    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_metrics_processing():
    """Award post metrics whose awards are outstanding."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..services import process_all_outstanding

        try:
            results = process_all_outstanding()
            awarded = sum(r['awarded'] for r in results)
            if awarded:
                logger.info(f'[Scheduler] Metrics processing: {awarded} awards')
        except Exception as e:
            logger.exception(f'[Scheduler] Metrics processing failed: {e}')


def run_pending_retry():
    """Retry queued scoring events."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..services import process_pending_events

        try:
            process_pending_events()
        except Exception as e:
            logger.exception(f'[Scheduler] Pending retry failed: {e}')


def run_cache_reconciliation():
    """Repair any drift between cached points and the ledger."""
    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    with _flask_app.app_context():
        from ..services import rebuild_all_caches

        try:
            results = rebuild_all_caches()
            repaired = sum(r['repaired'] for r in results)
            if repaired:
                logger.warning(f'[Scheduler] Reconciliation repaired {repaired} memberships')
        except Exception as e:
            logger.exception(f'[Scheduler] Cache reconciliation failed: {e}')
