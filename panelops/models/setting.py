from panelops import db
from datetime import datetime


class Setting(db.Model):
    """Operator-editable key/value configuration."""
    __tablename__ = 'settings'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.JSON)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
