"""Provider processing fees.

Card processors and PayPal both charge a percentage of the captured amount
plus a fixed per-transaction fee. Manual (offline) payments carry no fee.
"""

from dataclasses import dataclass
from enum import Enum


class Provider(Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    MANUAL = "manual"


@dataclass(frozen=True)
class FeeSchedule:
    percentage: float
    fixed: float

    def fee_for(self, amount: float) -> float:
        if amount <= 0:
            return 0.0
        return round(amount * self.percentage + self.fixed, 2)


FEE_SCHEDULES: dict[Provider, FeeSchedule] = {
    Provider.STRIPE: FeeSchedule(percentage=0.029, fixed=0.30),
    Provider.PAYPAL: FeeSchedule(percentage=0.029, fixed=0.30),
    Provider.MANUAL: FeeSchedule(percentage=0.0, fixed=0.0),
}


def calculate_fees(provider, amount: float) -> tuple[float, float]:
    """Return ``(fees, net_amount)`` for a capture of ``amount`` through ``provider``."""
    resolved = provider if isinstance(provider, Provider) else Provider(provider)
    fees = FEE_SCHEDULES[resolved].fee_for(amount)
    return fees, round(amount - fees, 2)
