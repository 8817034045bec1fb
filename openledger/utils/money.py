"""Fixed-point money helpers.

Every monetary value in OpenLedger is a ``Decimal`` with exactly two decimal
places. Binary floats are only accepted at the edges and always go through
``str()`` first so ``0.1`` stays ``0.10``.
"""

from decimal import Decimal, InvalidOperation

from openledger.exceptions import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Decimal | int | str | float


def to_money(value: MoneyLike, *, field: str = "amount") -> Decimal:
    """Convert ``value`` to a two-place Decimal.

    Raises:
        InvalidAmountError: If the value is not a finite number or has more
            than two decimal places.
    """
    if isinstance(value, bool):
        raise InvalidAmountError("Amount must be a number", field=field, value=value)

    try:
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidAmountError(
            "Amount is not a valid number", field=field, value=value, original_error=e
        ) from e

    if not amount.is_finite():
        raise InvalidAmountError("Amount must be finite", field=field, value=value)

    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise InvalidAmountError(
            "Amount has more than two decimal places",
            field=field,
            value=value,
            constraint="scale<=2",
        )
    return quantized


def require_positive(value: MoneyLike, *, field: str = "amount") -> Decimal:
    """Convert ``value`` and require it to be strictly greater than zero."""
    amount = to_money(value, field=field)
    if amount <= ZERO:
        raise InvalidAmountError(
            "Amount must be greater than 0", field=field, value=value, constraint=">0"
        )
    return amount


def money_sum(values) -> Decimal:
    """Exact sum of money values, ``ZERO`` for an empty iterable."""
    total = ZERO
    for value in values:
        total += value
    return total
