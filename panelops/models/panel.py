from panelops import db
from datetime import datetime
import uuid

PANEL_STATES = ('active', 'down')

PANEL_EVENTS = ('activated', 'down', 'replacement_of', 'replaced_by')


class Panel(db.Model):
    __tablename__ = 'panels'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    password = db.Column(db.String(500), nullable=False)
    credentials_since = db.Column(db.Date)
    purchase_date = db.Column(db.Date, nullable=False)
    expiration_date = db.Column(db.Date, nullable=False)
    total_capacity = db.Column(db.Integer, nullable=False)
    service_name = db.Column(db.String(255), default='', nullable=False)
    state = db.Column(db.String(20), default='active', nullable=False)  # active/down
    provider = db.Column(db.String(255))
    monthly_cost = db.Column(db.Numeric(10, 2), default=0, nullable=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    subscriptions = db.relationship('Subscription', backref='panel', lazy=True)
    credential_history = db.relationship(
        'PanelCredential', backref='panel', lazy=True,
        cascade='all, delete-orphan', order_by='PanelCredential.ended_on.desc()'
    )
    events = db.relationship(
        'PanelEvent', foreign_keys='PanelEvent.panel_id', backref='panel', lazy=True,
        cascade='all, delete-orphan', order_by='PanelEvent.created_at'
    )


class PanelCredential(db.Model):
    """A previous email/password pair of a panel and the days it was in use."""
    __tablename__ = 'panel_credentials'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    panel_id = db.Column(db.String(36), db.ForeignKey('panels.id'), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    password = db.Column(db.String(500), nullable=False)
    started_on = db.Column(db.Date)
    ended_on = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)


class PanelEvent(db.Model):
    __tablename__ = 'panel_events'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    panel_id = db.Column(db.String(36), db.ForeignKey('panels.id'), nullable=False)
    event = db.Column(db.String(30), nullable=False)  # activated/down/replacement_of/replaced_by
    related_panel_id = db.Column(db.String(36), db.ForeignKey('panels.id', ondelete='SET NULL'))
    event_date = db.Column(db.Date, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    related_panel = db.relationship('Panel', foreign_keys=[related_panel_id])
