import re
from urllib.parse import quote

MONTHS_ES = (
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio', 'julio',
    'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
)

NOTICE_KINDS = ('upcoming', 'today', 'overdue')


def _wa_url(phone, message):
    number = re.sub(r'\D', '', phone or '')
    return f"https://wa.me/{number}?text={quote(message, safe='')}"


def _long_date(day):
    return f"{day.day:02d} de {MONTHS_ES[day.month - 1]}"


def _amount(value):
    value = float(value)
    return f"{value:g}" if value == int(value) else f"{value:.2f}"


def renewal_notice_url(client, subscription, service_name, kind):
    """Message reminding a client that a subscription is about to or did run out."""
    if kind not in NOTICE_KINDS:
        raise ValueError(f'Unknown notice kind: {kind}')
    due = _long_date(subscription.due_date)
    service = service_name or 'tu servicio'

    if kind == 'today':
        message = (f"Hola {client.name}! Tu suscripcion de {service} vence hoy {due}. "
                   f"Quieres renovar? Responde SI para renovar")
    elif kind == 'upcoming':
        message = (f"Hola {client.name}! Tu suscripcion de {service} vence el {due}. "
                   f"Te lo renuevo para que no pierdas acceso?")
    else:
        message = (f"Hola {client.name}! Tu suscripcion de {service} vencio el {due}. "
                   f"Quieres renovar para seguir usando el servicio?")
    return _wa_url(client.whatsapp, message)


def payment_reminder_url(client, balance, service_names):
    services = ', '.join(service_names)
    message = (f"Hola {client.name}! Recordatorio de tu pago de {services} "
               f"(${_amount(balance)} USD). Avisame cuando lo envies!")
    return _wa_url(client.whatsapp, message)


def panel_outage_url(client, panel_name, service_name):
    message = (f"Hola {client.name}! Te informo que el panel de {service_name} ({panel_name}) "
               f"esta presentando problemas. Estamos trabajando para resolverlo lo antes posible. "
               f"Disculpa las molestias!")
    return _wa_url(client.whatsapp, message)


def weekly_cut_text(cut):
    """Plain-text rendering of a weekly cut rollup, ready to paste in a chat."""
    days = cut['num_days']
    lines = [
        '*CORTE SEMANAL*',
        f"{cut['start_date']} - {cut['end_date']}",
        f"{days} dia{'s' if days != 1 else ''}",
        '',
    ]
    for detail in cut['project_details']:
        header = f"*{detail['name'].upper()}*"
        if detail['owner'] != '-':
            header += f" - {detail['owner']}"
            if detail.get('country'):
                header += f" ({detail['country']})"
        count = detail['payment_count']
        lines.append(header)
        lines.append(f"  {count} pago{'s' if count != 1 else ''} | Total: ${detail['total_payments']:.2f}")
        lines.append(f"  Tu comision ({_amount(detail['commission_pct'])}%): ${detail['commission_amount']:.2f}")
        if detail['owed_to_owner'] > 0:
            lines.append(f"  Pagar a {detail['owner']}: ${detail['owed_to_owner']:.2f}")
        lines.append('')

    lines.append('*RESUMEN*')
    lines.append(f"  Ingresos: ${cut['total_income']:.2f}")
    lines.append(f"  Tu comision total: ${cut['total_operator_commission']:.2f}")
    lines.append(f"  Gastos ({days}d): -${cut['total_expenses']:.2f}")
    lines.append(f"  *GANANCIA NETA: ${cut['net_profit']:.2f}*")
    if cut.get('notes'):
        lines.extend(['', '*Notas*', cut['notes']])
    return '\n'.join(lines)


def weekly_report_text(report):
    lines = [
        '*REPORTE SEMANAL*',
        f"Semana del {report['week_start']} al {report['week_end']}",
        '',
        f"*Nuevos clientes ({len(report['new_clients'])})*",
    ]
    if report['new_clients']:
        lines.extend(f"   • {c['client']} → {c['service']}" for c in report['new_clients'])
    else:
        lines.append('   Sin nuevos clientes')
    lines.append('')

    lines.append(f"*Renovaciones ({len(report['renewals'])})*")
    if report['renewals']:
        lines.extend(f"   • {r['client']} → {r['service']}" for r in report['renewals'])
    else:
        lines.append('   Sin renovaciones')
    lines.append('')

    lines.append(f"*Pagos recibidos ({report['payment_count']})*")
    amounts = []
    if report['total_usd'] > 0:
        amounts.append(f"${_amount(report['total_usd'])} USD")
    if report['total_mxn'] > 0:
        amounts.append(f"${report['total_mxn']:,.0f} MXN")
    if report['total_cop'] > 0:
        amounts.append(f"${report['total_cop']:,.0f} COP")
    lines.append(f"   {' · '.join(amounts) if amounts else '$0 USD'}")
    lines.append('')

    lines.append(f"*Vencimientos próxima semana ({len(report['due_next_week'])})*")
    if report['due_next_week']:
        lines.extend(f"   • {d['client']} → {d['service']} ({d['due_date']})" for d in report['due_next_week'])
    else:
        lines.append('   Sin vencimientos')
    lines.append('')

    lines.append('*Resumen financiero*')
    lines.append(f"   Ingresos: ${_amount(report['total_payments_usd'])} USD")
    lines.append(f"   Gastos (prorrateo): ${_amount(report['total_expenses'])} USD")
    lines.append(f"   *Ganancia neta: ${_amount(report['net_profit'])} USD*")
    return '\n'.join(lines)
