"""
Pure budget utilization functions.

ZERO I/O. ZERO side effects.  ``BudgetTracker`` gathers the actual spend
and hands plain Decimals to these functions.
"""

from decimal import ROUND_HALF_UP, Decimal

from ledger_modules.budget.models import UtilizationStatus

HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def _quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def raw_utilization(budgeted: Decimal, actual: Decimal, places: int = 2) -> Decimal:
    """actual / budgeted x 100, unbounded above, never below zero.

    A zero budget reports 0.
    """
    if budgeted <= _ZERO or actual <= _ZERO:
        return _quantize(_ZERO, places)
    return _quantize(actual / budgeted * HUNDRED, places)


def capped_utilization(budgeted: Decimal, actual: Decimal, places: int = 2) -> Decimal:
    """Utilization clamped to [0, 100]."""
    return min(raw_utilization(budgeted, actual, places), _quantize(HUNDRED, places))


def classify(
    budgeted: Decimal,
    actual: Decimal,
    warning_threshold: Decimal,
) -> UtilizationStatus:
    """
    ``over`` iff actual > budgeted, ``warning`` iff
    warning_threshold < actual / budgeted x 100 <= 100, otherwise ``good``.

    Compared on the exact ratio; the reported percentage is rounded
    separately.  A zero budget is always ``good``.
    """
    if budgeted <= _ZERO:
        return UtilizationStatus.GOOD
    if actual > budgeted:
        return UtilizationStatus.OVER
    if actual * HUNDRED > warning_threshold * budgeted:
        return UtilizationStatus.WARNING
    return UtilizationStatus.GOOD
