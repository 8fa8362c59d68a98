# panelops/tasks.py

import logging

import click
from flask import current_app

from panelops.utils.clock import get_today
from panelops.utils.notices import pending_notices

logger = logging.getLogger(__name__)

SECTION_TITLES = (
    ('overdue', 'Overdue'),
    ('due_today', 'Due today'),
    ('upcoming', 'Due soon'),
)


def collect_reminders(days=None):
    """Renewal notices the operator should send today."""
    today = get_today()
    days = current_app.config['DUE_SOON_DAYS'] if days is None else days
    notices = pending_notices(today, days)
    logger.info("Reminders for %s: %d overdue, %d due today, %d due soon",
                today, len(notices['overdue']), len(notices['due_today']), len(notices['upcoming']))
    return notices


def register_task_commands(app):
    """Register operator task commands with Flask CLI"""

    @app.cli.command('reminders')
    @click.option('--days', type=int, default=None, help='Look-ahead window in days.')
    def reminders_command(days):
        """Prints WhatsApp renewal links for subscriptions due soon or overdue."""
        notices = collect_reminders(days)
        if not any(notices.values()):
            click.echo("No subscriptions need a reminder today.")
            return

        for bucket, title in SECTION_TITLES:
            entries = notices[bucket]
            if not entries:
                continue
            click.echo(f"{title} ({len(entries)})")
            for entry in entries:
                click.echo(f"  {entry['client']} - {entry['service']} (due {entry['due_date']})")
                click.echo(f"    {entry['whatsapp_url']}")
