# app/schemas/common.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from pydantic import PlainSerializer

MONEY_PLACES = Decimal("0.01")


def money_float(v: Decimal) -> float:
    # cents, half-up; clients get plain JSON numbers
    return float(Decimal(v).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP))


Money = Annotated[Decimal, PlainSerializer(money_float, return_type=float)]

# percentages, hours: same two-decimal rendering
Figure = Annotated[Decimal, PlainSerializer(money_float, return_type=float)]
