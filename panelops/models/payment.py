from panelops import db
from datetime import datetime
import uuid

CURRENCIES = ('USD', 'MXN', 'COP')

PAYMENT_METHODS = (
    'Binance Pay', 'Binance P2P', 'Transferencia bancaria', 'Zelle',
    'Nequi', 'Mercado Pago', 'PayPal', 'Efectivo',
)


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id'), nullable=False)
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id'), nullable=True)
    cut_id = db.Column(db.String(36), db.ForeignKey('cuts.id'), nullable=True)

    # Canonical USD amount, fixed when the payment is recorded
    amount_usd = db.Column(db.Numeric(12, 2), nullable=False)
    original_amount = db.Column(db.Numeric(16, 2))
    currency = db.Column(db.String(3), default='USD', nullable=False)
    exchange_rate = db.Column(db.Numeric(14, 4))

    method = db.Column(db.String(50), nullable=False)
    payment_date = db.Column(db.Date, nullable=False)
    reference = db.Column(db.String(200))
    receipt_url = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_local_currency(self):
        return bool(self.currency) and self.currency != 'USD'
