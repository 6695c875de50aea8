# 1. 显式导入所有模型类（供__all__和直接引用使用）
from extensions import db

from .mining_models import MiningAccount, utcnow
from .balance_models import UserBalance, PointsHistory

# 2. 定义__all__（控制from models import *的行为）
__all__ = [
    'MiningAccount',
    'UserBalance',
    'PointsHistory',
    'utcnow',
]


# 3. 显式注册函数（确保Flask-Migrate能发现模型）
def register_models():
    """强制导入所有模型模块（触发SQLAlchemy注册）"""
    from . import mining_models
    from . import balance_models
