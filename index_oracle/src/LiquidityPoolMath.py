"""LiquidityPoolMath: LP token pricing for two-asset constant product pools.

Reserves and supplies are raw token amounts in their own decimals; prices
are 18-decimal rates as returned by the price providers. Results are
18-decimal prices per LP token.

The fair price follows Alpha Finance's fair LP token pricing
(https://blog.alphafinance.io/fair-lp-token-pricing/), which cannot be
skewed by manipulating pool reserves within a single block::

    fair = 2 * sqrt(r_a * r_b) * sqrt(p_a * p_b) / supply
"""

from __future__ import annotations

from dataclasses import dataclass

from .FixedPoint import DECIMALS, PRECISION, checked_add, muldiv, muldiv_fp, sqrt


@dataclass(frozen=True)
class FairLpPriceInfo:
    """One side of a liquidity pool.

    :ivar reserve: Pool reserve of the token, in token decimals.
    :ivar price: Token price (18 decimals).
    :ivar decimals: Token decimals.
    """

    reserve: int
    price: int
    decimals: int


def normalize_value(value: int, decimals: int) -> int:
    """Scale an amount expressed in ``decimals`` to 18 decimals.

    Amounts with more than 18 decimals are truncated.

    :raises ArithmeticOverflow: If the result does not fit in 256 bits.
    """
    if decimals == DECIMALS:
        return value
    return muldiv(value, PRECISION, 10**decimals)


def get_lp_token_spot_price(
    a: FairLpPriceInfo,
    b: FairLpPriceInfo,
    total_supply: int,
    lp_token_decimals: int,
) -> int:
    """Spot price of an LP token: total pool value over supply.

    :param a: First pool token.
    :param b: Second pool token.
    :param total_supply: LP token supply in LP token decimals.
    :param lp_token_decimals: Decimals of the LP token.
    :returns: Price per LP token (18 decimals).
    :raises ArithmeticOverflow: On a zero supply or an out of range value.
    """
    value_a = muldiv_fp(normalize_value(a.reserve, a.decimals), a.price)
    value_b = muldiv_fp(normalize_value(b.reserve, b.decimals), b.price)
    total_value = checked_add(value_a, value_b)
    return muldiv(total_value, PRECISION, normalize_value(total_supply, lp_token_decimals))


def get_fair_lp_token_price(
    a: FairLpPriceInfo,
    b: FairLpPriceInfo,
    total_supply: int,
    lp_token_decimals: int,
) -> int:
    """Manipulation resistant price of an LP token.

    :param a: First pool token.
    :param b: Second pool token.
    :param total_supply: LP token supply in LP token decimals.
    :param lp_token_decimals: Decimals of the LP token.
    :returns: Price per LP token (18 decimals).
    :raises ArithmeticOverflow: On a zero supply or an out of range value.
    """
    reserve_a = normalize_value(a.reserve, a.decimals)
    reserve_b = normalize_value(b.reserve, b.decimals)
    supply = normalize_value(total_supply, lp_token_decimals)
    r = sqrt(muldiv_fp(reserve_a, reserve_b))
    p = sqrt(muldiv_fp(a.price, b.price))
    rp = muldiv(r, p, supply)
    return checked_add(rp, rp)
