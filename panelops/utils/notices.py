from panelops.models import Subscription
from panelops.utils.lifecycle import bucket_by_due, days_remaining
from panelops.utils.whatsapp import renewal_notice_url

BUCKET_KINDS = {'due_today': 'today', 'upcoming': 'upcoming', 'overdue': 'overdue'}


def notice_entry(subscription, kind, today):
    client = subscription.client
    service_name = subscription.service.name if subscription.service else None
    return {
        'subscription_id': subscription.id,
        'client_id': client.id,
        'client': client.name,
        'service': service_name,
        'panel': subscription.panel.name if subscription.panel else None,
        'due_date': subscription.due_date.isoformat(),
        'days_remaining': days_remaining(subscription, today),
        'whatsapp_url': renewal_notice_url(client, subscription, service_name, kind),
    }


def pending_notices(today, lookahead_days):
    """Renewal notices for every active subscription due today, soon or already overdue."""
    active = Subscription.query.filter_by(status='active').all()
    buckets = bucket_by_due(active, today, lookahead_days)
    return {
        bucket: [notice_entry(s, BUCKET_KINDS[bucket], today) for s in subs]
        for bucket, subs in buckets.items()
    }
