import logging
from collections import namedtuple
from contextlib import contextmanager
from datetime import timedelta
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from models import MiningAccount, UserBalance, PointsHistory, utcnow
from utils.mining_config import AWARD_ACCRUED, POINTS_REFILL, POINTS_RESET
from utils.mining_errors import MiningError, NotFound, QuotaExceeded, InsufficientBalance, TransactionFailure
from utils.mining_service import (
    ACCRUAL_PROPORTIONAL, ONE, ZERO,
    can_claim, compute_accrued, cooldown_active, flat_award, fraction_of_unit, next_claims_today,
)

logger = logging.getLogger(__name__)

CreateResult = namedtuple('CreateResult', ['created', 'user_id'])
ClaimResult = namedtuple('ClaimResult', ['awarded_points', 'claims_today', 'next_claim_possible'])
BalanceView = namedtuple('BalanceView', ['accrued_amount', 'fraction_of_one_unit', 'is_full_unit', 'message'])

# 乐观锁冲突后重新读取账户再结算一次
SETTLE_ATTEMPTS = 2


class MiningService:
    """
    挖矿积分核心逻辑：开户、查询、领取结算
    session_factory: 返回 SQLAlchemy Session 的可调用对象（每次操作独占一个连接）
    clock: 返回当前 UTC 时间，测试时可替换
    """

    def __init__(self, session_factory, settings, clock=utcnow):
        self.session_factory = session_factory
        self.settings = settings
        self.clock = clock

    @contextmanager
    def _session(self):
        session = self.session_factory()
        try:
            yield session
        finally:
            # 无论成功失败都归还连接，未提交的事务在这里回滚
            session.close()

    @staticmethod
    def _find(session, user_id, for_update=False):
        query = session.query(MiningAccount).filter_by(user_id=user_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    # ===== 开户 =====

    def create_account(self, user_id):
        now = self.clock()
        with self._session() as session:
            try:
                if self._find(session, user_id) is not None:
                    return CreateResult(False, user_id)

                session.add(MiningAccount(
                    user_id=user_id,
                    points=self.settings.initial_points,
                    mining_rate=ONE,
                    claims_today=0,
                    last_claim=now,
                    next_claim_possible=now,
                    created_at=now,
                ))
                if session.get(UserBalance, user_id) is None:
                    session.add(UserBalance(user_id=user_id, points=ZERO, updated_at=now))
                session.commit()
            except IntegrityError:
                # 并发开户被唯一约束拦截，等同于已存在
                session.rollback()
                logger.info(f'[create_account] {user_id} created concurrently, treating as existing')
                return CreateResult(False, user_id)
            except SQLAlchemyError:
                session.rollback()
                logger.exception(f'[create_account] {user_id} failed')
                raise TransactionFailure()

        logger.info(f'[create_account] mining account created for {user_id}')
        return CreateResult(True, user_id)

    # ===== 查询 =====

    def _accrued(self, account, now):
        return compute_accrued(
            account.points,
            account.last_claim,
            account.next_claim_possible,
            account.mining_rate,
            self.settings.base_unit,
            now,
            mode=self.settings.accrual_mode,
        )

    def get_balance(self, user_id):
        now = self.clock()
        with self._session() as session:
            account = self._find(session, user_id)
            if account is None:
                raise NotFound()
            accrued = self._accrued(account, now)

        base_unit = self.settings.base_unit
        is_full_unit = accrued >= base_unit
        return BalanceView(
            accrued_amount=accrued,
            fraction_of_one_unit=fraction_of_unit(accrued, base_unit),
            is_full_unit=is_full_unit,
            message=None if is_full_unit else self.settings.below_unit_message,
        )

    def get_account_details(self, user_id):
        with self._session() as session:
            account = self._find(session, user_id)
            if account is None:
                raise NotFound()
            return {
                'mining_rate': account.mining_rate,
                'last_claim': account.last_claim,
                'next_claim_possible': account.next_claim_possible,
                'created_at': account.created_at,
                'claims_today': account.claims_today,
            }

    # ===== 领取结算 =====

    def settle_claim(self, user_id):
        """
        领取一次挖矿奖励，账户更新与余额账本更新在同一事务内完成
        :return: ClaimResult
        :raises NotFound / QuotaExceeded / InsufficientBalance / TransactionFailure
        """
        if self.settings.accrual_mode == ACCRUAL_PROPORTIONAL:
            balance = self.get_balance(user_id)
            if balance.accrued_amount < self.settings.base_unit:
                logger.warning(f'[settle_claim] {user_id} balance {balance.accrued_amount} below one unit')
                raise InsufficientBalance()

        for attempt in range(1, SETTLE_ATTEMPTS + 1):
            result = self._settle_in_session(user_id)
            if result is not None:
                break
            logger.warning(f'[settle_claim] {user_id} lost a concurrent claim race (attempt {attempt})')
        else:
            raise TransactionFailure()

        logger.info(f'[settle_claim] {user_id} claimed {result.awarded_points} points')
        return result

    def _settle_in_session(self, user_id):
        """单次结算事务；账户在读取后被其他结算修改时返回 None，由调用方重试"""
        with self._session() as session:
            try:
                result = self._settle(session, user_id, self.clock())
                session.commit()
            except MiningError as e:
                session.rollback()
                logger.warning(f'[settle_claim] {user_id} rejected: {e.message}')
                raise
            except StaleDataError:
                session.rollback()
                return None
            except SQLAlchemyError:
                session.rollback()
                logger.exception(f'[settle_claim] {user_id} transaction failed')
                raise TransactionFailure()
        return result

    def _settle(self, session, user_id, now):
        settings = self.settings

        # 1. 加行锁读取最新账户
        account = self._find(session, user_id, for_update=True)
        if account is None:
            raise NotFound()

        # 2. 每日次数 / 冷却检查
        if not can_claim(account.claims_today, account.last_claim, now, settings.max_daily_claims):
            raise QuotaExceeded()
        if settings.enforce_cooldown and cooldown_active(account.next_claim_possible, now):
            raise QuotaExceeded('Next claim is not possible yet')

        # 3. 计算奖励
        claims_today = next_claims_today(account.claims_today, account.last_claim, now)
        if settings.award_policy == AWARD_ACCRUED:
            awarded = self._accrued(account, now)
        else:
            awarded = flat_award(settings.base_unit, account.mining_rate)

        # 4. 更新挖矿账户
        account.claims_today = claims_today
        account.last_claim = now
        account.next_claim_possible = now + timedelta(hours=float(settings.claim_interval_hours))
        if settings.points_policy == POINTS_REFILL:
            account.points = awarded
        elif settings.points_policy == POINTS_RESET:
            account.points = ZERO
        session.flush()

        # 5. 累加余额账本
        self._credit_ledger(session, user_id, awarded, now)

        return ClaimResult(awarded, claims_today, account.next_claim_possible)

    def _credit_ledger(self, session, user_id, amount, now):
        balance = session.query(UserBalance).filter_by(user_id=user_id).with_for_update().first()
        if balance is None:
            session.add(UserBalance(user_id=user_id, points=amount, updated_at=now))
        else:
            balance.points = UserBalance.points + amount
            balance.updated_at = now

        session.add(PointsHistory(
            user_id=user_id,
            change_type='mining_claim',
            change_amount=amount,
            description='Mining points claimed',
            created_at=now,
        ))
        session.flush()

    # ===== 挖矿速率 =====

    def boost_mining_rate(self, user_id):
        with self._session() as session:
            try:
                account = self._find(session, user_id, for_update=True)
                if account is None:
                    raise NotFound()
                account.mining_rate = account.mining_rate + self.settings.mining_rate_boost
                new_rate = account.mining_rate
                session.commit()
            except MiningError:
                session.rollback()
                raise
            except SQLAlchemyError:
                session.rollback()
                logger.exception(f'[boost_mining_rate] {user_id} failed')
                raise TransactionFailure()

        logger.info(f'[boost_mining_rate] {user_id} mining rate now {new_rate}')
        return new_rate
