"""Payout computation: partition positions into winners/losers and price them.

Pure function over already-locked positions; persistence happens in the
coordinator.
"""

from decimal import ROUND_FLOOR, Decimal

from src.pts_settlement.domain.fee import calc_fee
from src.pts_settlement.domain.models import Position, PositionPayout, SettlementPlan


def gross_payout(stake_points: int, odds: Decimal | float | str) -> int:
    """floor(stake x odds) using exact decimal arithmetic (odds is NUMERIC(7,2))."""
    if not isinstance(odds, Decimal):
        odds = Decimal(str(odds))
    value = Decimal(stake_points) * odds
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def plan_settlement(
    positions: list[Position], result_option_id: int, fee_bps: int
) -> SettlementPlan:
    plan = SettlementPlan(result_option_id=result_option_id)
    for position in positions:
        is_winner = position.option_id == result_option_id
        gross = gross_payout(position.stake_points, position.odds_at_purchase) if is_winner else 0
        fee = calc_fee(gross, fee_bps)
        net = max(0, gross - fee)

        plan.positions.append(
            PositionPayout(
                position_id=position.id,
                account_id=position.account_id,
                is_winner=is_winner,
                gross=gross,
                fee=fee,
                net=net,
            )
        )
        if net > 0:
            plan.payouts_by_account[position.account_id] = (
                plan.payouts_by_account.get(position.account_id, 0) + net
            )
            plan.fees_by_account[position.account_id] = (
                plan.fees_by_account.get(position.account_id, 0) + fee
            )
        plan.total_fees += fee
    return plan
