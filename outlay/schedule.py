"""
Occurrence expansion for recurring expenses.

Ideal dates are always measured from the series start (``start + n * step``)
so month and year steps keep the start's day of month wherever the target
month has it, and fall back to the month's last day otherwise.
"""
from datetime import date
from typing import Iterable, Iterator

from dateutil.relativedelta import relativedelta

from outlay.models import (
    Adjustment, Occurrence, RecurringExpense, UnrecognizedFrequencyError, ValidationError
)


STEPS = {
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "yearly": relativedelta(years=1),
}


def step_for(frequency: str) -> relativedelta:
    try:
        return STEPS[frequency]
    except (KeyError, TypeError):
        raise UnrecognizedFrequencyError(f"Unrecognized frequency: {frequency!r}") from None


def _first_index(frequency: str, start: date, window_start: date) -> int:
    """Lowest step count that can still land on or after window_start."""
    if window_start <= start:
        return 0
    if frequency == "weekly":
        return (window_start - start).days // 7
    months_diff = (window_start.year - start.year) * 12 + (window_start.month - start.month)
    if frequency == "monthly":
        return max(months_diff - 1, 0)
    return max(window_start.year - start.year - 1, 0)


def iter_occurrence_dates(expense: RecurringExpense, window_start: date, window_end: date) -> Iterator[date]:
    """Yield the ideal dates of ``expense`` inside the inclusive window.

    ``end_date`` is the last permitted ideal date. Raises ``ValidationError``
    for a non-positive amount and ``UnrecognizedFrequencyError`` for an
    unknown frequency, in both cases before anything is yielded.
    """
    if expense.amount <= 0:
        raise ValidationError(f"Expense {expense.id} has non-positive amount {expense.amount}")
    step = step_for(expense.frequency)

    last = window_end
    if expense.end_date is not None and expense.end_date < last:
        last = expense.end_date

    n = _first_index(expense.frequency, expense.start_date, window_start)
    while True:
        ideal = expense.start_date + step * n
        if ideal > last:
            return
        if ideal >= window_start:
            yield ideal
        n += 1


def is_ideal_date(expense: RecurringExpense, day: date) -> bool:
    return any(True for _ in iter_occurrence_dates(expense, day, day))


def resolve_display_date(ideal_date: date, adjustments: Iterable[Adjustment]) -> date:
    for adj in adjustments:
        if adj.original_date == ideal_date:
            return adj.new_date
    return ideal_date


def iter_occurrences(expense: RecurringExpense, window_start: date, window_end: date) -> Iterator[Occurrence]:
    """Occurrences of one series whose display date falls inside the window.

    An adjustment can carry an occurrence across the window edge in either
    direction, so ideal dates inside the window are filtered by display date,
    and adjusted occurrences whose ideal date lies outside are pulled in.
    """
    def make(ideal, display):
        return Occurrence(
            expense_id=expense.id,
            ideal_date=ideal,
            display_date=display,
            amount=expense.amount,
            description=expense.description,
        )

    for ideal in iter_occurrence_dates(expense, window_start, window_end):
        display = resolve_display_date(ideal, expense.adjustments)
        if window_start <= display <= window_end:
            yield make(ideal, display)

    for adj in expense.adjustments:
        if window_start <= adj.original_date <= window_end:
            continue
        if not window_start <= adj.new_date <= window_end:
            continue
        if is_ideal_date(expense, adj.original_date):
            yield make(adj.original_date, adj.new_date)
