# utils/identity.py
import hashlib
import json
import logging
import jwt
import requests
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    status_code = 401

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Identity:
    def __init__(self, user_id, role=None, username=None):
        self.user_id = str(user_id)
        self.role = role
        self.username = username

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {'user_id': self.user_id, 'role': self.role, 'username': self.username}

    @classmethod
    def from_dict(cls, data):
        return cls(data['user_id'], data.get('role'), data.get('username'))


class IdentityResolver:
    """把请求携带的凭证解析为已认证的用户身份"""

    def resolve(self, credential):
        raise NotImplementedError


def decode_token(token, secret):
    try:
        return jwt.decode(token, secret, algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        raise AuthError('Token expired', 403)
    except jwt.InvalidTokenError:
        raise AuthError('Failed to authenticate token', 403)


class TokenIdentityResolver(IdentityResolver):
    """直接从 JWT 载荷中读取 user_id / role / username"""

    def __init__(self, secret):
        self.secret = secret

    def resolve(self, credential):
        payload = decode_token(credential, self.secret)
        user_id = payload.get('user_id')
        if user_id is None:
            raise AuthError('User not authenticated')
        return Identity(user_id, payload.get('role'), payload.get('username'))


class IdentityCache:
    """身份信息短期缓存（只缓存身份，不缓存挖矿账户状态）"""

    def __init__(self, redis_conn, ttl=100, prefix='mining:identity:'):
        self.redis = redis_conn
        self.ttl = ttl
        self.prefix = prefix

    def _key(self, credential):
        return self.prefix + hashlib.sha256(credential.encode()).hexdigest()

    def get(self, credential):
        # Redis 不可用时按未命中处理，直接走鉴权服务
        try:
            raw = self.redis.get(self._key(credential))
        except RedisError as e:
            logger.warning(f'[IdentityCache] redis get failed: {e}')
            return None
        if raw is None:
            return None
        return Identity.from_dict(json.loads(raw))

    def set(self, credential, identity):
        try:
            self.redis.setex(self._key(credential), self.ttl, json.dumps(identity.to_dict()))
        except RedisError as e:
            logger.warning(f'[IdentityCache] redis set failed: {e}')


class RemoteIdentityResolver(IdentityResolver):
    """
    先校验 JWT，再调用鉴权服务确认登录状态
    鉴权服务返回: {"isAuthenticated": true, "user_id": ..., "role": ..., "username": ...}
    """

    def __init__(self, endpoint, secret, cache=None, timeout=5):
        self.endpoint = endpoint
        self.secret = secret
        self.cache = cache
        self.timeout = timeout

    def resolve(self, credential):
        decode_token(credential, self.secret)

        if self.cache is not None:
            cached = self.cache.get(credential)
            if cached is not None:
                return cached

        try:
            resp = requests.get(self.endpoint, headers={'Authorization': credential}, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f'[RemoteIdentityResolver] auth service call failed: {e}')
            raise AuthError('Authorization service unavailable', 502)

        if not data.get('isAuthenticated') or data.get('user_id') is None:
            raise AuthError('User not authenticated')

        identity = Identity(data['user_id'], data.get('role'), data.get('username'))
        if self.cache is not None:
            self.cache.set(credential, identity)
        return identity
