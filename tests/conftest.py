"""Pytest configuration and shared fixtures for all tests."""

import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import create_app
from extensions import db
from models import MiningAccount, UserBalance
from utils.claim_service import MiningService
from utils.mining_config import MiningSettings
from tests.helpers import TEST_SECRET, make_token

class FakeClock:
    """可手动推进的 UTC 时钟"""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 8, 0, 0))


@pytest.fixture
def session_factory(tmp_path):
    # 文件数据库：每个 Session 使用独立连接，才能模拟并发事务
    engine = create_engine(
        f'sqlite:///{tmp_path / "mining.db"}',
        connect_args={'check_same_thread': False},
    )
    db.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def make_service(session_factory, clock):
    def _make(**overrides):
        options = {
            'base_unit': Decimal('5'),
            'max_daily_claims': 1,
            'claim_interval_hours': 24,
            'initial_points': Decimal('0'),
            'accrual_mode': 'flat',
        }
        options.update(overrides)
        return MiningService(session_factory, MiningSettings(**options), clock=clock)
    return _make


@pytest.fixture
def read_account(session_factory):
    def _read(user_id):
        with session_factory() as session:
            return session.query(MiningAccount).filter_by(user_id=user_id).first()
    return _read


@pytest.fixture
def read_ledger(session_factory):
    def _read(user_id):
        with session_factory() as session:
            balance = session.get(UserBalance, user_id)
            return None if balance is None else balance.points
    return _read


@pytest.fixture
def update_account(session_factory):
    def _update(user_id, **values):
        with session_factory() as session:
            account = session.query(MiningAccount).filter_by(user_id=user_id).one()
            for key, value in values.items():
                setattr(account, key, value)
            session.commit()
    return _update


@pytest.fixture
def app(tmp_path, clock):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{tmp_path / "app.db"}',
        'ACCESS_TOKEN_SECRET': TEST_SECRET,
        'CHECK_AUTH_SERVICE_ENDPOINT': None,
        'MINNE_AMOUNT': '5',
        'MAX_DAILY_CLAIMS': '1',
        'NEXT_CLAIM_INTERVAL': '24',
        'INITIAL_POINTS': '0',
        'MINING_RATE_BOOST': '0.1',
        'BALANCE_BELOW_UNIT_MESSAGE': 'Keep mining',
        'ACCRUAL_MODE': 'flat',
        'AWARD_POLICY': 'unit',
        'POINTS_POLICY': 'refill',
        'ENFORCE_COOLDOWN': False,
    })
    with app.app_context():
        db.create_all()
    app.extensions['mining_service'].clock = clock
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers():
    def _headers(user_id='user-1', role='user'):
        return {'Authorization': f'Bearer {make_token(user_id, role)}'}
    return _headers
