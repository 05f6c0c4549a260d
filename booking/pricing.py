"""Price resolution and platform fee splitting."""

from decimal import ROUND_FLOOR, Decimal

from models.payment import PaymentSplit
from models.service import Service


def resolve_price(service: Service, completed_count: int) -> int:
    """
    Price to charge a client for a service.

    Args:
        service: The booked service
        completed_count: Client's COMPLETED bookings with the service's diviner

    Returns:
        The first-time price when the client has never completed a
        consultation with this diviner and the service offers one,
        otherwise the standard price.
    """
    if completed_count < 0:
        raise ValueError(f"Invalid completed booking count: {completed_count}")

    if completed_count == 0 and service.first_time_price is not None:
        return service.first_time_price
    return service.price


def split_payment(total: int, fee_rate: float) -> PaymentSplit:
    """
    Split a charge into the platform fee and the diviner's net.

    The fee is floor(total * fee_rate). The multiplication runs on the
    decimal form of the rate so e.g. 100 * 0.29 floors to 29, not 28.

    Raises:
        ValueError: On a negative total or a rate outside [0, 1)
    """
    if total < 0:
        raise ValueError(f"Invalid amount: {total} must not be negative")
    if not 0 <= fee_rate < 1:
        raise ValueError(f"Invalid fee rate: {fee_rate}")

    fee = (Decimal(total) * Decimal(str(fee_rate))).to_integral_value(
        rounding=ROUND_FLOOR
    )
    platform_fee = int(fee)
    return PaymentSplit(platform_fee=platform_fee, diviner_net=total - platform_fee)
