"""Slot accounting for shared panels.

A panel's used slots are never stored: they are the number of subscriptions
pointing at it whose stored status is ``active``. The availability check is
advisory. It is read before the write with no lock, so two concurrent
assignments can still overbook a panel.
"""
from panelops import db
from panelops.models import Panel, Subscription


class CapacityError(Exception):
    """Raised when a subscription is assigned to a panel with no free slots."""

    def __init__(self, panel, available):
        self.panel = panel
        self.available = available
        super().__init__(f"Panel '{panel.name}' has no free slots ({available} available)")


def count_active_subscriptions(panel_id, exclude_subscription_id=None):
    query = Subscription.query.filter_by(panel_id=panel_id, status='active')
    if exclude_subscription_id:
        query = query.filter(Subscription.id != exclude_subscription_id)
    return query.count()


def used_slots(panel, exclude_subscription_id=None):
    return count_active_subscriptions(panel.id, exclude_subscription_id)


def available_slots(panel, exclude_subscription_id=None):
    """Capacity minus active subscriptions. Not clamped at zero.

    ``exclude_subscription_id`` leaves one subscription's own slot out of the
    count, so a subscription being edited does not see its panel as one slot
    fuller than it is.
    """
    return panel.total_capacity - used_slots(panel, exclude_subscription_id)


def used_slots_by_panel():
    """Map of panel id -> active subscription count in one query."""
    rows = (
        db.session.query(Subscription.panel_id, db.func.count(Subscription.id))
        .filter(Subscription.status == 'active', Subscription.panel_id.isnot(None))
        .group_by(Subscription.panel_id)
        .all()
    )
    return {panel_id: count for panel_id, count in rows}


def check_assignment(panel_id, subscription_id=None):
    """Validate that ``panel_id`` can take one more subscription.

    Returns the panel, or None when no panel is requested. Raises LookupError
    for unknown panels, ValueError for panels that are down and CapacityError
    when the panel is full.
    """
    if not panel_id:
        return None
    panel = db.session.get(Panel, panel_id)
    if not panel:
        raise LookupError('Panel not found')
    if panel.state != 'active':
        raise ValueError(f"Panel '{panel.name}' is down and cannot take subscriptions")
    available = available_slots(panel, exclude_subscription_id=subscription_id)
    if available <= 0:
        raise CapacityError(panel, available)
    return panel
