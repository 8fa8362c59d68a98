from panelops import db
from datetime import datetime
import uuid


class Service(db.Model):
    """Catalog entry a subscription is sold against."""
    __tablename__ = 'services'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(200), nullable=False)
    base_price = db.Column(db.Numeric(10, 2), nullable=False)  # USD
    ref_price_mxn = db.Column(db.Numeric(12, 2))
    ref_price_cop = db.Column(db.Numeric(14, 2))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    subscriptions = db.relationship('Subscription', backref='service', lazy=True, cascade='all, delete-orphan')
    goals = db.relationship('ServiceGoal', backref='service', lazy=True, cascade='all, delete-orphan')
