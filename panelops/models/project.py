from panelops import db
from datetime import datetime
import uuid


class Project(db.Model):
    """An account run for an owner; the operator keeps ``commission_pct`` of its payments."""
    __tablename__ = 'projects'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    owner = db.Column(db.String(255))
    commission_pct = db.Column(db.Numeric(5, 2), default=0, nullable=False)
    country = db.Column(db.String(20))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    payments = db.relationship('Payment', backref='project', lazy=True)
