from datetime import timezone
from decimal import Decimal

ACCRUAL_FLAT = 'flat'
ACCRUAL_PROPORTIONAL = 'proportional'
ACCRUAL_MODES = (ACCRUAL_FLAT, ACCRUAL_PROPORTIONAL)

ZERO = Decimal('0')
ONE = Decimal('1')


def to_decimal(value):
    if isinstance(value, Decimal):
        return value
    # float 先转字符串，避免二进制精度误差
    return Decimal(str(value))


def to_utc(value):
    """统一转换为不带时区的 UTC 时间，无时区的值视为 UTC"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def accrual_proportion(last_claim, next_claim_possible, now):
    """
    当前时间在 [last_claim, next_claim_possible] 区间中的比例，范围 0~1
    区间长度为 0 时视为已满
    """
    last_claim = to_utc(last_claim)
    total = (to_utc(next_claim_possible) - last_claim).total_seconds()
    if total <= 0:
        return ONE
    elapsed = (to_utc(now) - last_claim).total_seconds()
    proportion = to_decimal(elapsed) / to_decimal(total)
    return min(max(proportion, ZERO), ONE)


def compute_accrued(points, last_claim, next_claim_possible, mining_rate, base_unit, now,
                    mode=ACCRUAL_PROPORTIONAL):
    """
    计算用户当前可领取（待结算）积分
    flat: 直接返回存储的 points
    proportional: points 按时间比例释放，超过一个基础单位时封顶为 base_unit * mining_rate
    """
    points = to_decimal(points)
    if mode == ACCRUAL_FLAT:
        return max(points, ZERO)
    if mode != ACCRUAL_PROPORTIONAL:
        raise ValueError(f'Unknown accrual mode: {mode}')

    base_unit = to_decimal(base_unit)
    accrued = points * accrual_proportion(last_claim, next_claim_possible, now)
    if accrued <= base_unit:
        return max(accrued, ZERO)
    return base_unit * to_decimal(mining_rate)


def flat_award(base_unit, mining_rate):
    """单次领取奖励 = 基础单位 * 挖矿速率"""
    return max(to_decimal(base_unit) * to_decimal(mining_rate), ZERO)


def fraction_of_unit(accrued, base_unit):
    base_unit = to_decimal(base_unit)
    if base_unit <= 0:
        return ZERO
    return to_decimal(accrued) / base_unit


# ===== 每日领取次数 =====

def window_rolled_over(last_claim, now):
    """上次领取是否发生在更早的 UTC 自然日"""
    return to_utc(last_claim).date() < to_utc(now).date()


def can_claim(claims_today, last_claim, now, max_daily_claims):
    return claims_today < max_daily_claims or window_rolled_over(last_claim, now)


def next_claims_today(claims_today, last_claim, now):
    if window_rolled_over(last_claim, now):
        return 1
    return claims_today + 1


def cooldown_active(next_claim_possible, now):
    return to_utc(now) < to_utc(next_claim_possible)
