from panelops import db
from datetime import datetime
import uuid


class MonthlyGoal(db.Model):
    __tablename__ = 'monthly_goals'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    month_key = db.Column(db.String(7), unique=True, nullable=False)  # YYYY-MM
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ServiceGoal(db.Model):
    __tablename__ = 'service_goals'
    __table_args__ = (db.UniqueConstraint('month_key', 'service_id'),)

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    month_key = db.Column(db.String(7), nullable=False)
    service_id = db.Column(db.String(36), db.ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
