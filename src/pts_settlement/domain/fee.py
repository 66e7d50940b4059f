"""Fee policy: platform cut of a winning payout."""

_BPS_DENOMINATOR = 10000


def calc_fee(gross_payout: int, fee_bps: int) -> int:
    """Floor division fee: gross_payout x fee_bps // 10000, 0 for non-positive payouts.

    Rounds down, never up, so a payout is never reduced by more than the rate.
    """
    if gross_payout <= 0 or fee_bps <= 0:
        return 0
    return gross_payout * fee_bps // _BPS_DENOMINATOR
