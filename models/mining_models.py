from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Numeric
from extensions import db


def utcnow():
    # 数据库统一存储不带时区的 UTC 时间
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MiningAccount(db.Model):
    __tablename__ = 'mining_accounts'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    points = db.Column(Numeric(36, 18), default=Decimal('0'), nullable=False)
    mining_rate = db.Column(Numeric(36, 18), default=Decimal('1'), nullable=False)
    claims_today = db.Column(db.Integer, default=0, nullable=False)
    last_claim = db.Column(db.DateTime, nullable=False, default=utcnow)
    next_claim_possible = db.Column(db.DateTime, nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # 乐观锁版本号：不支持 FOR UPDATE 的数据库上也只能结算一次
    version = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {'version_id_col': version}

    def __repr__(self):
        return f'<MiningAccount {self.user_id} claims_today={self.claims_today}>'
