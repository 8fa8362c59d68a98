from panelops import db
from datetime import datetime
import uuid

COUNTRIES = ('Venezuela', 'Ecuador', 'Colombia', 'Mexico')

# Countries that pay in their own currency; everyone else pays in USD
COUNTRY_CURRENCY = {
    'Mexico': 'MXN',
    'Colombia': 'COP',
}


def currency_for_country(country):
    return COUNTRY_CURRENCY.get(country, 'USD')


class Client(db.Model):
    __tablename__ = 'clients'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    whatsapp = db.Column(db.String(30), nullable=False)
    country = db.Column(db.String(20))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    subscriptions = db.relationship('Subscription', backref='client', lazy=True, cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='client', lazy=True, cascade='all, delete-orphan')

    @property
    def local_currency(self):
        return currency_for_country(self.country)
