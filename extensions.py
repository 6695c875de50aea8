# extensions.py
from flask_sqlalchemy import SQLAlchemy
from redis import Redis

db = SQLAlchemy()


def init_redis(redis_url):
    """按需创建 Redis 连接（未配置 REDIS_URL 时不启用缓存）"""
    if not redis_url:
        return None
    return Redis.from_url(redis_url)
