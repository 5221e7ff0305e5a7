import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from outlay.dates import iter_days, parse_day, parse_instant
from outlay.models import (
    FREQUENCIES, Adjustment, BalanceAnchor, Frequency, IncomeRecord, NotFoundError, Occurrence,
    OutlayError, RecurringExpense, ValidationError
)
from outlay.money import parse_money, parse_positive_money, round_money
from outlay.schedule import is_ideal_date, iter_occurrences


logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MONTHS = 6

DISPOSABLE_INCOME_KEY = "disposable_income"
LAST_RESET_KEY = "last_reset"


@dataclass
class EditResult:
    expense: RecurringExpense
    forked: Optional[RecurringExpense] = None


# ===== SERIES MUTATION =====

def override_occurrence(expense: RecurringExpense, ideal_date: date, new_date: date) -> RecurringExpense:
    """Move a single occurrence, replacing any earlier override for it."""
    adjustments = [replace(adj) for adj in expense.adjustments]
    for adj in adjustments:
        if adj.original_date == ideal_date:
            adj.new_date = new_date
            break
    else:
        adjustments.append(Adjustment(original_date=ideal_date, new_date=new_date))
    return replace(expense, adjustments=adjustments)


def split_series(expense: RecurringExpense, ideal_date: date, new_date: date):
    """Terminate ``expense`` just before ``ideal_date`` and fork a new series at ``new_date``.

    Splitting at the series' own start leaves the original with an end date
    before its start: it yields nothing but stays on record.
    """
    terminated = replace(
        expense,
        end_date=ideal_date - timedelta(days=1),
        adjustments=list(expense.adjustments),
    )
    forked = RecurringExpense(
        description=expense.description,
        amount=expense.amount,
        frequency=expense.frequency,
        start_date=new_date,
        predecessor_id=expense.id,
    )
    return terminated, forked


# ===== PROJECTION =====

def project_occurrences(
        expenses: Iterable[RecurringExpense],
        window_start: date,
        window_end: date,
        issues: Optional[list] = None,
) -> list[Occurrence]:
    """All occurrences with a display date in the window, sorted by display date.

    A series that cannot be expanded contributes nothing; the error is logged
    and appended to ``issues`` so the caller can flag the record.
    """
    occurrences = []
    for expense in expenses:
        try:
            occurrences.extend(iter_occurrences(expense, window_start, window_end))
        except OutlayError as e:
            logger.warning("Expense %s could not be expanded: %s", expense.id, e)
            if issues is not None:
                issues.append(e)
    occurrences.sort(key=lambda o: (o.display_date, o.description, o.expense_id or 0))
    return occurrences


def build_daily_net(
        expenses: Iterable[RecurringExpense],
        incomes: Iterable[IncomeRecord],
        window_start: date,
        window_end: date,
        issues: Optional[list] = None,
) -> dict[date, Decimal]:
    daily_net = defaultdict(Decimal)
    for income in incomes:
        if window_start <= income.date <= window_end:
            daily_net[income.date] += income.amount
    for occ in project_occurrences(expenses, window_start, window_end, issues):
        daily_net[occ.display_date] -= occ.amount
    return dict(daily_net)


def forecast_balance(
        daily_net: dict,
        range_start: date,
        range_end: date,
        anchor: Optional[BalanceAnchor] = None,
        history_floor: Optional[date] = None,
) -> list[tuple[str, Decimal]]:
    """Walk day by day from the computation start, one point per display day.

    Cash-flow before the anchor day (or the history floor, if later) is
    never counted. Display days before that point carry the starting balance.
    """
    if range_end < range_start:
        raise ValidationError("Forecast range ends before it starts")

    compute_start = computation_start(range_start, anchor, history_floor)
    balance = anchor.value if anchor else Decimal("0")

    points = []
    for c_date in iter_days(min(range_start, compute_start), range_end):
        if anchor is not None and c_date == anchor.day:
            balance = anchor.value
        if c_date >= compute_start:
            balance += daily_net.get(c_date, 0)
        if c_date >= range_start:
            points.append((c_date.isoformat(), round_money(balance)))
    return points


def computation_start(range_start: date, anchor: Optional[BalanceAnchor], history_floor: Optional[date] = None) -> date:
    """First day whose cash-flow counts: the later of the history floor and the anchor day."""
    starts = [d for d in (history_floor, anchor.day if anchor else None) if d is not None]
    return max(starts) if starts else range_start


# ===== STORE OPERATIONS =====

def _default_window(start, end):
    start = parse_day(start) if start is not None else date.today()
    end = parse_day(end) if end is not None else start + relativedelta(months=DEFAULT_HORIZON_MONTHS)
    return start, end


def add_expense(store, description: str, amount, frequency: Frequency, start_date, end_date=None) -> RecurringExpense:
    description = (description or "").strip()
    if not description:
        raise ValidationError("Description cannot be empty")
    amount = parse_positive_money(amount)
    if frequency not in FREQUENCIES:
        raise ValidationError(f"Invalid frequency, use: {'/'.join(FREQUENCIES)}")
    start_date = parse_day(start_date)
    end_date = parse_day(end_date) if end_date else None
    if end_date is not None and end_date < start_date:
        raise ValidationError("End date cannot be before start date")

    expense = store.insert_expense(RecurringExpense(
        description=description,
        amount=amount,
        frequency=frequency,
        start_date=start_date,
        end_date=end_date,
    ))
    logger.info("Added %s expense %s (%s)", frequency, expense.id, description)
    return expense


def add_income(store, description: str, amount, on) -> IncomeRecord:
    description = (description or "").strip()
    if not description:
        raise ValidationError("Description cannot be empty")
    income = store.insert_income(IncomeRecord(
        description=description,
        amount=parse_positive_money(amount),
        date=parse_day(on),
    ))
    logger.info("Added income %s (%s) on %s", income.id, description, income.date)
    return income


def delete_expense(store, expense_id: int) -> None:
    if not store.delete_expense(expense_id):
        raise NotFoundError(f"Expense {expense_id} not found")
    logger.info("Deleted expense %s", expense_id)


def delete_income(store, income_id: int) -> None:
    if not store.delete_income(income_id):
        raise NotFoundError(f"Income record {income_id} not found")
    logger.info("Deleted income %s", income_id)


def apply_edit(store, expense_id: int, ideal_date, new_date, propagate: bool = False) -> EditResult:
    """Move one occurrence, or (``propagate``) that occurrence and all later ones."""
    ideal_date = parse_day(ideal_date)
    new_date = parse_day(new_date)

    expense = store.get_expense(expense_id)
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found")
    if not is_ideal_date(expense, ideal_date):
        raise ValidationError(f"{ideal_date} is not an occurrence of expense {expense_id}")

    if not propagate:
        updated = store.upsert_expense(override_occurrence(expense, ideal_date, new_date))
        logger.info("Moved occurrence %s of expense %s to %s", ideal_date, expense_id, new_date)
        return EditResult(expense=updated)

    # a series is split at most once; later splits go through its fork
    successors = [e.id for e in store.list_expenses() if e.predecessor_id == expense.id]
    if successors:
        raise ValidationError(
            f"Expense {expense_id} was already split; edit expense {successors[0]} instead")

    terminated, forked = split_series(expense, ideal_date, new_date)
    terminated = store.upsert_expense(terminated)
    forked = store.insert_expense(forked)
    logger.info("Split expense %s at %s, continued as %s from %s",
                expense_id, ideal_date, forked.id, new_date)
    return EditResult(expense=terminated, forked=forked)


def get_anchor(store) -> Optional[BalanceAnchor]:
    value = store.get_setting(DISPOSABLE_INCOME_KEY)
    reset_at = store.get_setting(LAST_RESET_KEY)
    if value is None or reset_at is None:
        return None
    return BalanceAnchor(value=parse_money(value), reset_at=parse_instant(reset_at))


def reset_balance(store, value, at=None) -> BalanceAnchor:
    anchor = BalanceAnchor(
        value=parse_money(value),
        reset_at=parse_instant(at) if at is not None else datetime.now(),
    )
    store.set_settings({
        DISPOSABLE_INCOME_KEY: str(anchor.value),
        LAST_RESET_KEY: anchor.reset_at.isoformat(),
    })
    logger.info("Balance reset to %s at %s", anchor.value, anchor.reset_at)
    return anchor


def project(store, window_start=None, window_end=None, issues: Optional[list] = None) -> list[Occurrence]:
    window_start, window_end = _default_window(window_start, window_end)
    return project_occurrences(store.list_expenses(), window_start, window_end, issues)


def forecast(store, range_start=None, range_end=None, history_floor=None,
             issues: Optional[list] = None) -> list[tuple[str, Decimal]]:
    range_start, range_end = _default_window(range_start, range_end)
    history_floor = parse_day(history_floor) if history_floor is not None else None
    anchor = get_anchor(store)

    compute_start = computation_start(range_start, anchor, history_floor)
    daily_net = build_daily_net(store.list_expenses(), store.list_income(), compute_start, range_end, issues)
    return forecast_balance(daily_net, range_start, range_end, anchor, history_floor)
