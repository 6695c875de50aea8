from decimal import Decimal
from sqlalchemy import Numeric
from extensions import db
from .mining_models import utcnow


class UserBalance(db.Model):
    """累计积分账本，只在结算事务内增加"""
    __tablename__ = 'user_balances'

    user_id = db.Column(db.String(64), primary_key=True)
    points = db.Column(Numeric(36, 18), default=Decimal('0'), nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class PointsHistory(db.Model):
    __tablename__ = 'points_history'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    change_type = db.Column(db.String(60), nullable=False)
    change_amount = db.Column(Numeric(36, 18), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    description = db.Column(db.String(255), nullable=True)
