"""
Meteora DLMM Math Utilities

Bin pricing and the amount-balancing function that derives a token Y
amount from a token X amount for a given strategy shape.
"""

from decimal import Decimal, ROUND_FLOOR
from typing import List, Tuple

from ...types import StrategyType
from .constants import BASIS_POINT_MAX, MAX_WEIGHT, MIN_WEIGHT

# (bin_id, weight)
BinWeight = Tuple[int, int]


def get_price_of_bin(bin_id: int, bin_step: int) -> Decimal:
    """
    Raw price of a bin (no decimal adjustment)

    Formula: price = (1 + bin_step/10000)^bin_id
    """
    base = Decimal(1) + Decimal(bin_step) / Decimal(BASIS_POINT_MAX)
    return base ** bin_id


def to_weight_spot(min_bin_id: int, max_bin_id: int) -> List[BinWeight]:
    """Uniform weight across the range"""
    return [(bin_id, 1) for bin_id in range(min_bin_id, max_bin_id + 1)]


def _check_active_in_range(min_bin_id: int, max_bin_id: int, active_id: int):
    if active_id < min_bin_id or active_id > max_bin_id:
        raise ValueError(
            f"Active bin {active_id} outside strategy range [{min_bin_id}, {max_bin_id}]"
        )


def to_weight_curve(min_bin_id: int, max_bin_id: int, active_id: int) -> List[BinWeight]:
    """
    Weight peaks at the active bin and falls off linearly to MIN_WEIGHT

    Raises:
        ValueError: If the active bin is outside the range
    """
    _check_active_in_range(min_bin_id, max_bin_id, active_id)

    diff_weight = MAX_WEIGHT - MIN_WEIGHT
    diff_min_weight = diff_weight // (active_id - min_bin_id) if active_id > min_bin_id else 0
    diff_max_weight = diff_weight // (max_bin_id - active_id) if max_bin_id > active_id else 0

    weights = []
    for bin_id in range(min_bin_id, max_bin_id + 1):
        if bin_id < active_id:
            weight = MAX_WEIGHT - (active_id - bin_id) * diff_min_weight
        elif bin_id > active_id:
            weight = MAX_WEIGHT - (bin_id - active_id) * diff_max_weight
        else:
            weight = MAX_WEIGHT
        weights.append((bin_id, weight))
    return weights


def to_weight_bid_ask(min_bin_id: int, max_bin_id: int, active_id: int) -> List[BinWeight]:
    """
    Weight is lowest at the active bin and grows linearly towards the edges

    Raises:
        ValueError: If the active bin is outside the range
    """
    _check_active_in_range(min_bin_id, max_bin_id, active_id)

    diff_weight = MAX_WEIGHT - MIN_WEIGHT
    diff_min_weight = diff_weight // (active_id - min_bin_id) if active_id > min_bin_id else 0
    diff_max_weight = diff_weight // (max_bin_id - active_id) if max_bin_id > active_id else 0

    weights = []
    for bin_id in range(min_bin_id, max_bin_id + 1):
        if bin_id < active_id:
            weight = MIN_WEIGHT + (active_id - bin_id) * diff_min_weight
        elif bin_id > active_id:
            weight = MIN_WEIGHT + (bin_id - active_id) * diff_max_weight
        else:
            weight = MIN_WEIGHT
        weights.append((bin_id, weight))
    return weights


def auto_fill_y_by_weight(
    active_id: int,
    bin_step: int,
    amount_x: int,
    amount_x_in_active_bin: int,
    amount_y_in_active_bin: int,
    distributions: List[BinWeight],
) -> int:
    """
    Token Y amount that balances amount_x across the weighted bins

    Bins above the active bin hold only X (weight per price), bins below
    only Y. The active bin is split by its current reserve ratio, or
    evenly when it is empty.

    Returns:
        Token Y amount (smallest unit, floored)
    """
    active_weights = [weight for bin_id, weight in distributions if bin_id == active_id]

    total_weight_x = Decimal(0)
    total_weight_y = Decimal(0)

    if len(active_weights) == 1:
        weight = Decimal(active_weights[0])
        p0 = get_price_of_bin(active_id, bin_step)
        x_active = Decimal(amount_x_in_active_bin)
        y_active = Decimal(amount_y_in_active_bin)

        if x_active == 0 and y_active == 0:
            total_weight_x = weight / (p0 * 2)
            total_weight_y = weight / 2
        else:
            if x_active != 0:
                total_weight_x = weight / (p0 + y_active / x_active)
            if y_active != 0:
                total_weight_y = weight / (1 + p0 * x_active / y_active)

        for bin_id, bin_weight in distributions:
            if bin_id < active_id:
                total_weight_y += Decimal(bin_weight)
            elif bin_id > active_id:
                total_weight_x += Decimal(bin_weight) / get_price_of_bin(bin_id, bin_step)
    else:
        for bin_id, bin_weight in distributions:
            if bin_id < active_id:
                total_weight_y += Decimal(bin_weight)
            else:
                total_weight_x += Decimal(bin_weight) / get_price_of_bin(bin_id, bin_step)

    kx = Decimal(1) if total_weight_x == 0 else Decimal(amount_x) / total_weight_x
    amount_y = kx * total_weight_y
    return int(amount_y.to_integral_value(rounding=ROUND_FLOOR))


def auto_fill_y_by_strategy(
    active_id: int,
    bin_step: int,
    amount_x: int,
    amount_x_in_active_bin: int,
    amount_y_in_active_bin: int,
    min_bin_id: int,
    max_bin_id: int,
    strategy_type: StrategyType,
) -> int:
    """
    Balanced token Y amount for a strategy

    Args:
        active_id: Active bin ID
        bin_step: Pool bin step (basis points)
        amount_x: Token X amount to deposit
        amount_x_in_active_bin: Token X reserve of the active bin
        amount_y_in_active_bin: Token Y reserve of the active bin
        min_bin_id: Lower bin of the position
        max_bin_id: Upper bin of the position
        strategy_type: Liquidity shape

    Returns:
        Token Y amount (smallest unit)

    Raises:
        ValueError: Unknown strategy, or active bin outside range for Curve/BidAsk
    """
    strategy_type = StrategyType(strategy_type)
    if strategy_type == StrategyType.SPOT:
        distributions = to_weight_spot(min_bin_id, max_bin_id)
    elif strategy_type == StrategyType.CURVE:
        distributions = to_weight_curve(min_bin_id, max_bin_id, active_id)
    else:
        distributions = to_weight_bid_ask(min_bin_id, max_bin_id, active_id)

    return auto_fill_y_by_weight(
        active_id,
        bin_step,
        amount_x,
        amount_x_in_active_bin,
        amount_y_in_active_bin,
        distributions,
    )
