from panelops import db
from datetime import datetime
import uuid

CUT_COUNTRIES = ('Mexico', 'Colombia')


class Cut(db.Model):
    """Batch conversion of a week's local-currency payments into USDT over P2P."""
    __tablename__ = 'cuts'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cut_date = db.Column(db.Date, nullable=False)
    country = db.Column(db.String(20), nullable=False)
    currency = db.Column(db.String(3), nullable=False)

    total_collected = db.Column(db.Numeric(16, 2), nullable=False)
    commission_pct = db.Column(db.Numeric(5, 2), nullable=False)
    total_after_commission = db.Column(db.Numeric(16, 2), nullable=False)
    p2p_rate = db.Column(db.Numeric(14, 4), nullable=False)
    usdt_calculated = db.Column(db.Numeric(12, 2), nullable=False)
    usdt_received = db.Column(db.Numeric(12, 2), nullable=False)

    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    payments = db.relationship('Payment', backref='cut', lazy=True)


class WeeklyCut(db.Model):
    """Saved snapshot of a weekly revenue-share rollup."""
    __tablename__ = 'weekly_cuts'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    total_income = db.Column(db.Numeric(12, 2), nullable=False)
    total_operator_commission = db.Column(db.Numeric(12, 2), nullable=False)
    total_owed_to_owners = db.Column(db.Numeric(12, 2), nullable=False)
    total_expenses = db.Column(db.Numeric(12, 2), nullable=False)
    net_profit = db.Column(db.Numeric(12, 2), nullable=False)
    project_details = db.Column(db.JSON)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
