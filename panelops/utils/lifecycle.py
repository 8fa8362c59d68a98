"""Subscription lifecycle: 30-day cycles, renewal, cancellation and lazy expiry.

Expiry is never written by a background job. A subscription stays ``active``
in the store after its due date and reads as ``expired`` until it is renewed
or cancelled.
"""
import logging
from datetime import timedelta

from panelops.models import Subscription

logger = logging.getLogger(__name__)

BILLING_CYCLE_DAYS = 30


def due_date_for(start_date):
    return start_date + timedelta(days=BILLING_CYCLE_DAYS)


def effective_status(subscription, today):
    if subscription.status == 'active' and subscription.due_date < today:
        return 'expired'
    return subscription.status


def days_remaining(subscription, today):
    return (subscription.due_date - today).days


def cycle_progress(subscription, today):
    """Percentage of the current cycle already used, clamped to 0..100."""
    total_days = (subscription.due_date - subscription.start_date).days
    if total_days <= 0:
        return 100.0
    elapsed = (today - subscription.start_date).days
    return max(0.0, min(100.0, elapsed / total_days * 100))


def alert_level(subscription, today, due_soon_days=5):
    if subscription.status == 'cancelled':
        return 'cancelled'
    remaining = days_remaining(subscription, today)
    if remaining <= 0:
        return 'overdue'
    if remaining <= due_soon_days:
        return 'due_soon'
    return 'ok'


def start(subscription, start_date):
    subscription.status = 'active'
    subscription.start_date = start_date
    subscription.due_date = due_date_for(start_date)
    subscription.cancelled_on = None
    return subscription


def renew(subscription, today):
    """Restart a full cycle from today, whatever the previous state was."""
    previous = effective_status(subscription, today)
    start(subscription, today)
    logger.info("Renewed subscription %s (was %s), due %s",
                subscription.id, previous, subscription.due_date)
    return subscription


def cancel(subscription, today):
    """Cancel an active or expired subscription.

    Returns False, leaving the row untouched, when it is already cancelled.
    """
    if subscription.status == 'cancelled':
        return False
    subscription.status = 'cancelled'
    subscription.cancelled_on = today
    logger.info("Cancelled subscription %s on %s", subscription.id, today)
    return True


def apply_date_edit(subscription, start_date=None, due_date=None):
    """Apply a manual edit of the cycle dates.

    A new start date moves the due date to start + 30 days. A due date sent
    in the same edit wins only when it differs from the stored one, so a form
    that echoes the old due date back still gets the recomputed value.
    """
    stored_due = subscription.due_date
    if start_date is not None and start_date != subscription.start_date:
        subscription.start_date = start_date
        subscription.due_date = due_date_for(start_date)
    if due_date is not None and due_date != stored_due:
        subscription.due_date = due_date
    return subscription


def migrate_panel_subscriptions(old_panel, new_panel):
    """Point every subscription of ``old_panel`` at ``new_panel``.

    Every other field of the subscriptions is left as is. Returns the moved
    subscriptions.
    """
    moved = Subscription.query.filter_by(panel_id=old_panel.id).all()
    for subscription in moved:
        subscription.panel_id = new_panel.id
    logger.info("Migrated %d subscriptions from panel %s to %s",
                len(moved), old_panel.id, new_panel.id)
    return moved


def bucket_by_due(subscriptions, today, lookahead_days=3):
    """Split subscriptions still marked active by how close their due date is.

    ``upcoming`` covers the next ``lookahead_days`` days after today. Each
    bucket is sorted by due date.
    """
    buckets = {'due_today': [], 'upcoming': [], 'overdue': []}
    for subscription in subscriptions:
        if subscription.status != 'active':
            continue
        remaining = days_remaining(subscription, today)
        if remaining == 0:
            buckets['due_today'].append(subscription)
        elif 0 < remaining <= lookahead_days:
            buckets['upcoming'].append(subscription)
        elif remaining < 0:
            buckets['overdue'].append(subscription)
    for items in buckets.values():
        items.sort(key=lambda s: s.due_date)
    return buckets
