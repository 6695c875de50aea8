import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import redis
import requests

from utils import identity as identity_module
from utils.identity import AuthError, Identity, IdentityCache, RemoteIdentityResolver, TokenIdentityResolver
from tests.helpers import TEST_SECRET, make_token


class TestTokenIdentityResolver:
    def test_resolves_claims(self):
        identity = TokenIdentityResolver(TEST_SECRET).resolve(make_token(7, role='admin'))

        assert identity.user_id == '7'
        assert identity.role == 'admin'
        assert identity.username == 'user-7'
        assert identity.is_admin

    def test_wrong_secret(self):
        with pytest.raises(AuthError) as exc_info:
            TokenIdentityResolver(TEST_SECRET).resolve(make_token(7, secret='other'))
        assert exc_info.value.status_code == 403

    def test_expired_token(self):
        expired = make_token(7, exp=datetime.now(timezone.utc) - timedelta(minutes=1))
        with pytest.raises(AuthError) as exc_info:
            TokenIdentityResolver(TEST_SECRET).resolve(expired)
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == 'Token expired'

    def test_token_without_user_id(self):
        with pytest.raises(AuthError) as exc_info:
            TokenIdentityResolver(TEST_SECRET).resolve(make_token(None))
        assert exc_info.value.status_code == 401


def auth_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestRemoteIdentityResolver:
    def test_resolves_from_auth_service(self, monkeypatch):
        get = MagicMock(return_value=auth_response(
            {'isAuthenticated': True, 'user_id': 42, 'role': 'user', 'username': 'alice'}
        ))
        monkeypatch.setattr(identity_module.requests, 'get', get)
        token = make_token(42)

        identity = RemoteIdentityResolver('http://auth/check', TEST_SECRET, timeout=3).resolve(token)

        assert identity.user_id == '42'
        assert identity.username == 'alice'
        get.assert_called_once_with('http://auth/check', headers={'Authorization': token}, timeout=3)

    def test_not_authenticated(self, monkeypatch):
        monkeypatch.setattr(identity_module.requests, 'get',
                            MagicMock(return_value=auth_response({'isAuthenticated': False})))

        with pytest.raises(AuthError) as exc_info:
            RemoteIdentityResolver('http://auth/check', TEST_SECRET).resolve(make_token(42))
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == 'User not authenticated'

    def test_auth_service_down(self, monkeypatch):
        monkeypatch.setattr(identity_module.requests, 'get',
                            MagicMock(side_effect=requests.ConnectionError('refused')))

        with pytest.raises(AuthError) as exc_info:
            RemoteIdentityResolver('http://auth/check', TEST_SECRET).resolve(make_token(42))
        assert exc_info.value.status_code == 502

    def test_token_is_verified_before_calling_service(self, monkeypatch):
        get = MagicMock()
        monkeypatch.setattr(identity_module.requests, 'get', get)

        with pytest.raises(AuthError):
            RemoteIdentityResolver('http://auth/check', TEST_SECRET).resolve(make_token(42, secret='other'))
        get.assert_not_called()

    def test_cache_miss_then_store(self, monkeypatch):
        monkeypatch.setattr(identity_module.requests, 'get', MagicMock(return_value=auth_response(
            {'isAuthenticated': True, 'user_id': 'u-1', 'role': 'user'}
        )))
        redis_conn = MagicMock()
        redis_conn.get.return_value = None
        resolver = RemoteIdentityResolver('http://auth/check', TEST_SECRET, cache=IdentityCache(redis_conn, ttl=100))

        resolver.resolve(make_token('u-1'))

        key, ttl, value = redis_conn.setex.call_args[0]
        assert key.startswith('mining:identity:')
        assert ttl == 100
        assert json.loads(value)['user_id'] == 'u-1'

    def test_cache_hit_skips_auth_service(self, monkeypatch):
        get = MagicMock()
        monkeypatch.setattr(identity_module.requests, 'get', get)
        redis_conn = MagicMock()
        redis_conn.get.return_value = json.dumps(Identity('u-1', 'admin').to_dict()).encode()
        resolver = RemoteIdentityResolver('http://auth/check', TEST_SECRET, cache=IdentityCache(redis_conn))

        identity = resolver.resolve(make_token('u-1'))

        assert identity.user_id == 'u-1'
        assert identity.is_admin
        get.assert_not_called()

    def test_redis_outage_falls_back_to_auth_service(self, monkeypatch):
        get = MagicMock(return_value=auth_response(
            {'isAuthenticated': True, 'user_id': 'u-1', 'role': 'user'}
        ))
        monkeypatch.setattr(identity_module.requests, 'get', get)
        redis_conn = MagicMock()
        redis_conn.get.side_effect = redis.exceptions.ConnectionError('down')
        redis_conn.setex.side_effect = redis.exceptions.ConnectionError('down')
        resolver = RemoteIdentityResolver('http://auth/check', TEST_SECRET, cache=IdentityCache(redis_conn))

        identity = resolver.resolve(make_token('u-1'))

        assert identity.user_id == 'u-1'
        get.assert_called_once()
        redis_conn.setex.assert_called_once()
