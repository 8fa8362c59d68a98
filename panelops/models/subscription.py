from panelops import db
from datetime import datetime
import uuid

SUBSCRIPTION_STATUSES = ('active', 'expired', 'cancelled')

LOCAL_CURRENCIES = ('MXN', 'COP')


class Subscription(db.Model):
    __tablename__ = 'subscriptions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    service_id = db.Column(db.String(36), db.ForeignKey('services.id'), nullable=False)
    panel_id = db.Column(db.String(36), db.ForeignKey('panels.id'), nullable=True)

    # 'expired' is normally derived at read time, see utils.lifecycle.effective_status
    status = db.Column(db.String(20), default='active', nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    cancelled_on = db.Column(db.Date)

    price_usd = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    local_price = db.Column(db.Numeric(14, 2))
    local_currency = db.Column(db.String(3))

    credential_email = db.Column(db.String(255))
    credential_password = db.Column(db.String(500))
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
