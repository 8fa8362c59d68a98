from panelops.utils.ledger import is_renewal


def _event(day, kind, description, detail=None):
    return {
        'date': day.isoformat(),
        'type': kind,
        'description': description,
        'detail': detail,
    }


def client_history(subscriptions, payments, services_by_id, panels_by_id, today):
    """Rebuild a client's history from its subscriptions and payments, newest first.

    Cancellations are dated by ``cancelled_on``; rows cancelled before that
    column existed fall back to their due date.
    """
    events = []

    if subscriptions:
        earliest = min(subscriptions, key=lambda s: s.start_date)
        events.append(_event(earliest.start_date, 'registration', 'Cliente registrado'))

    for sub in subscriptions:
        service = services_by_id.get(sub.service_id)
        name = service.name if service else 'Servicio desconocido'
        panel = panels_by_id.get(sub.panel_id) if sub.panel_id else None
        panel_info = f" · Panel: {panel.name}" if panel else ''

        events.append(_event(sub.start_date, 'assignment', f"{name} asignado",
                             f"${float(sub.price_usd):g} USD{panel_info}"))

        if is_renewal(sub, subscriptions):
            events.append(_event(sub.start_date, 'renewal', f"{name} renovado",
                                 f"Vence: {sub.due_date.isoformat()}"))

        if sub.status == 'cancelled':
            events.append(_event(sub.cancelled_on or sub.due_date, 'cancellation', f"{name} cancelado"))

        if sub.status == 'expired' or (sub.status == 'active' and sub.due_date < today):
            suffix = ' (sin renovar)' if sub.status == 'active' else ''
            events.append(_event(sub.due_date, 'expiry', f"{name} venció{suffix}"))

    for payment in payments:
        extra = ''
        if payment.is_local_currency and payment.original_amount:
            extra = f" ({float(payment.original_amount):g} {payment.currency})"
        events.append(_event(payment.payment_date, 'payment',
                             f"Pago de ${float(payment.amount_usd):g} USD{extra}",
                             f"Método: {payment.method}"))

    # stable sort keeps same-day events in insertion order
    events.sort(key=lambda e: e['date'], reverse=True)
    return events
