from apscheduler.schedulers.background import BackgroundScheduler
import atexit
from datetime import datetime

from safetatt.extensions import db
from safetatt.services.marketing import run_campaign
from safetatt.services.whatsapp_client import WhatsAppGateway

scheduler = BackgroundScheduler()


def _timestamp():
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def init_scheduler(app):
    """Start the background scheduler once per process."""
    if not scheduler.running:
        scheduler.start()
        print("[SCHEDULER] Scheduler started")
        # Shut down the scheduler when exiting the app
        atexit.register(lambda: scheduler.shutdown(wait=False))
    else:
        print("[SCHEDULER] Scheduler already running (skipping duplicate start)")


def campaign_job(app, campaign_id, recipients):
    """Runs a campaign send loop outside the request that started it."""
    try:
        with app.app_context():
            gateway = WhatsAppGateway.from_config(app.config)
            result = run_campaign(campaign_id, recipients, gateway)
            if result.get("success"):
                print(
                    f"[SCHEDULER] {_timestamp()} - Campaign {campaign_id} sent "
                    f"({result['sent_count']} ok, {result['failed_count']} failed)"
                )
            else:
                print(
                    f"[SCHEDULER] {_timestamp()} - Campaign {campaign_id} not sent: "
                    f"{result['error']['message']}"
                )
    except Exception as e:
        print(f"[SCHEDULER] {_timestamp()} - Error sending campaign {campaign_id}: {e}")
        with app.app_context():
            db.session.rollback()


def schedule_campaign(app, campaign_id, recipients, run_at=None):
    """Queues a one-off campaign send; returns the APScheduler job id."""
    init_scheduler(app)
    job = scheduler.add_job(
        campaign_job,
        "date",
        run_date=run_at,
        args=[app, campaign_id, recipients],
        id=f"campaign-{campaign_id}",
        replace_existing=True,
    )
    print(f"[SCHEDULER] {_timestamp()} - Campaign {campaign_id} queued as {job.id}")
    return job.id
