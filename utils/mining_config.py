import os
from decimal import Decimal, InvalidOperation
from utils.mining_service import ACCRUAL_MODES, ACCRUAL_PROPORTIONAL, to_decimal

AWARD_UNIT = 'unit'          # 基础单位 * 挖矿速率
AWARD_ACCRUED = 'accrued'    # 按时间比例累计的积分
AWARD_POLICIES = (AWARD_UNIT, AWARD_ACCRUED)

POINTS_REFILL = 'refill'     # 领取后 points 设为本次奖励，进入下一轮释放
POINTS_RESET = 'reset'       # 领取后清零
POINTS_KEEP = 'keep'         # 保持不变
POINTS_POLICIES = (POINTS_REFILL, POINTS_RESET, POINTS_KEEP)


def env_config():
    """从环境变量读取挖矿相关配置（供 app.config.update 使用）"""
    base_unit = os.getenv('MINNE_AMOUNT', '10')
    return {
        'MINNE_AMOUNT': base_unit,
        'MAX_DAILY_CLAIMS': os.getenv('MAX_DAILY_CLAIMS', '1'),
        'NEXT_CLAIM_INTERVAL': os.getenv('NEXT_CLAIM_INTERVAL', '24'),
        'INITIAL_POINTS': os.getenv('INITIAL_POINTS', base_unit),
        'MINING_RATE_BOOST': os.getenv('MINING_RATE_BOOST', '0.1'),
        'BALANCE_BELOW_UNIT_MESSAGE': os.getenv('BALANCE_BELOW_UNIT_MESSAGE'),
        'ACCRUAL_MODE': os.getenv('ACCRUAL_MODE', ACCRUAL_PROPORTIONAL),
        'AWARD_POLICY': os.getenv('AWARD_POLICY', AWARD_UNIT),
        'POINTS_POLICY': os.getenv('POINTS_POLICY', POINTS_REFILL),
        'ENFORCE_COOLDOWN': os.getenv('ENFORCE_COOLDOWN', 'False') == 'True',
    }


def _decimal(config, key, minimum=None):
    try:
        value = to_decimal(config[key])
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f'{key} must be a number, got {config[key]!r}')
    if minimum is not None and value < minimum:
        raise ValueError(f'{key} must be >= {minimum}, got {value}')
    return value


def _choice(config, key, choices):
    value = str(config[key]).lower()
    if value not in choices:
        raise ValueError(f'{key} must be one of {", ".join(choices)}, got {config[key]!r}')
    return value


def _flag(config, key):
    value = config.get(key, False)
    if isinstance(value, bool):
        return value
    # 与 env_config 一致：字符串只接受 True / False
    if value in ('True', 'False'):
        return value == 'True'
    raise ValueError(f'{key} must be True or False, got {value!r}')


class MiningSettings:
    def __init__(self, base_unit, max_daily_claims=1, claim_interval_hours=24,
                 initial_points=None, mining_rate_boost=Decimal('0.1'),
                 below_unit_message=None, accrual_mode=ACCRUAL_PROPORTIONAL,
                 award_policy=AWARD_UNIT, points_policy=POINTS_REFILL,
                 enforce_cooldown=False):
        self.base_unit = to_decimal(base_unit)
        self.max_daily_claims = int(max_daily_claims)
        self.claim_interval_hours = to_decimal(claim_interval_hours)
        self.initial_points = self.base_unit if initial_points is None else to_decimal(initial_points)
        self.mining_rate_boost = to_decimal(mining_rate_boost)
        self.below_unit_message = below_unit_message
        self.accrual_mode = accrual_mode
        self.award_policy = award_policy
        self.points_policy = points_policy
        self.enforce_cooldown = enforce_cooldown

    @classmethod
    def from_config(cls, config):
        """从 Flask app.config 构建，配置非法时启动即报错"""
        try:
            max_daily_claims = int(config['MAX_DAILY_CLAIMS'])
        except (TypeError, ValueError):
            raise ValueError(f'MAX_DAILY_CLAIMS must be an integer, got {config["MAX_DAILY_CLAIMS"]!r}')
        if max_daily_claims < 1:
            raise ValueError('MAX_DAILY_CLAIMS must be >= 1')

        base_unit = _decimal(config, 'MINNE_AMOUNT')
        if base_unit <= 0:
            raise ValueError('MINNE_AMOUNT must be positive')

        return cls(
            base_unit=base_unit,
            max_daily_claims=max_daily_claims,
            claim_interval_hours=_decimal(config, 'NEXT_CLAIM_INTERVAL', minimum=0),
            initial_points=_decimal(config, 'INITIAL_POINTS', minimum=0),
            mining_rate_boost=_decimal(config, 'MINING_RATE_BOOST', minimum=0),
            below_unit_message=config.get('BALANCE_BELOW_UNIT_MESSAGE') or None,
            accrual_mode=_choice(config, 'ACCRUAL_MODE', ACCRUAL_MODES),
            award_policy=_choice(config, 'AWARD_POLICY', AWARD_POLICIES),
            points_policy=_choice(config, 'POINTS_POLICY', POINTS_POLICIES),
            enforce_cooldown=_flag(config, 'ENFORCE_COOLDOWN'),
        )
