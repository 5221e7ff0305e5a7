import io
import json
import tempfile
import unittest
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path

from outlay.cli import OutlayCLI
from outlay.logic import (
    add_expense, add_income, apply_edit, build_daily_net, delete_expense, delete_income,
    forecast, forecast_balance, get_anchor, override_occurrence, project,
    project_occurrences, reset_balance, split_series
)
from outlay.models import (
    Adjustment, BalanceAnchor, IncomeRecord, NotFoundError, RecurringExpense,
    UnrecognizedFrequencyError, ValidationError
)
from outlay.money import parse_money
from outlay.dates import parse_day
from outlay.schedule import (
    is_ideal_date, iter_occurrence_dates, iter_occurrences, resolve_display_date
)
from outlay.storage import JsonStore, list_save_files


def weekly(amount="50", start=date(2024, 1, 1), **kwargs):
    return RecurringExpense(
        description=kwargs.pop("description", "Gym"),
        amount=Decimal(amount),
        frequency=kwargs.pop("frequency", "weekly"),
        start_date=start,
        id=kwargs.pop("id", 1),
        **kwargs
    )


class TestOccurrenceGenerator(unittest.TestCase):
    def test_weekly_window(self):
        """Weekly series yields every 7 days inside the window"""
        dates = list(iter_occurrence_dates(weekly(), date(2024, 1, 1), date(2024, 1, 22)))
        self.assertEqual(dates, [
            date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)
        ])

    def test_window_start_after_series_start(self):
        """Dates before the window are skipped"""
        dates = list(iter_occurrence_dates(weekly(), date(2024, 3, 1), date(2024, 3, 15)))
        self.assertEqual(dates, [date(2024, 3, 4), date(2024, 3, 11)])

        monthly = weekly(frequency="monthly", start=date(2023, 1, 15))
        dates = list(iter_occurrence_dates(monthly, date(2024, 3, 1), date(2024, 5, 31)))
        self.assertEqual(dates, [date(2024, 3, 15), date(2024, 4, 15), date(2024, 5, 15)])

    def test_monthly_clamps_to_month_end(self):
        """Month steps keep the start's day where it exists"""
        expense = weekly(frequency="monthly", start=date(2024, 1, 31))
        dates = list(iter_occurrence_dates(expense, date(2024, 1, 1), date(2024, 5, 31)))
        self.assertEqual(dates, [
            date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31),
            date(2024, 4, 30), date(2024, 5, 31)
        ])

    def test_yearly_leap_day(self):
        """Feb 29 falls back to Feb 28 in non-leap years"""
        expense = weekly(frequency="yearly", start=date(2020, 2, 29))
        dates = list(iter_occurrence_dates(expense, date(2020, 1, 1), date(2024, 12, 31)))
        self.assertEqual(dates, [
            date(2020, 2, 29), date(2021, 2, 28), date(2022, 2, 28),
            date(2023, 2, 28), date(2024, 2, 29)
        ])

    def test_end_date_is_inclusive(self):
        """An occurrence on the end date is still generated"""
        expense = weekly(end_date=date(2024, 1, 15))
        dates = list(iter_occurrence_dates(expense, date(2024, 1, 1), date(2024, 1, 31)))
        self.assertEqual(dates, [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)])

    def test_restartable(self):
        """Each call starts a fresh sequence"""
        expense = weekly()
        first = list(iter_occurrence_dates(expense, date(2024, 1, 1), date(2024, 2, 1)))
        second = list(iter_occurrence_dates(expense, date(2024, 1, 1), date(2024, 2, 1)))
        self.assertEqual(first, second)

    def test_window_containment(self):
        """Every date lies within both the series bounds and the window"""
        expense = weekly(frequency="monthly", start=date(2023, 11, 30), end_date=date(2024, 9, 1))
        lo, hi = date(2024, 1, 1), date(2024, 12, 31)
        dates = list(iter_occurrence_dates(expense, lo, hi))
        self.assertEqual(len(dates), 8)
        for d in dates:
            self.assertTrue(expense.start_date <= d <= expense.end_date)
            self.assertTrue(lo <= d <= hi)

    def test_non_positive_amount(self):
        """A non-positive amount is reported, not skipped"""
        with self.assertRaises(ValidationError):
            list(iter_occurrence_dates(weekly(amount="0"), date(2024, 1, 1), date(2024, 2, 1)))

    def test_unknown_frequency_fails_closed(self):
        """An unknown frequency stops expansion before yielding anything"""
        gen = iter_occurrence_dates(weekly(frequency="fortnightly"), date(2024, 1, 1), date(2024, 2, 1))
        with self.assertRaises(UnrecognizedFrequencyError):
            next(gen)

    def test_is_ideal_date(self):
        expense = weekly()
        self.assertTrue(is_ideal_date(expense, date(2024, 1, 15)))
        self.assertFalse(is_ideal_date(expense, date(2024, 1, 16)))
        self.assertFalse(is_ideal_date(expense, date(2023, 12, 25)))


class TestAdjustmentResolver(unittest.TestCase):
    def test_resolve(self):
        adjustments = [Adjustment(date(2024, 1, 8), date(2024, 1, 10))]
        self.assertEqual(resolve_display_date(date(2024, 1, 8), adjustments), date(2024, 1, 10))
        self.assertEqual(resolve_display_date(date(2024, 1, 15), adjustments), date(2024, 1, 15))
        self.assertEqual(resolve_display_date(date(2024, 1, 15), []), date(2024, 1, 15))

    def test_idempotent(self):
        """Resolving twice with the same table gives the same answer"""
        adjustments = [Adjustment(date(2024, 1, 8), date(2024, 1, 10))]
        first = resolve_display_date(date(2024, 1, 8), adjustments)
        self.assertEqual(first, resolve_display_date(date(2024, 1, 8), adjustments))


class TestSeriesMutator(unittest.TestCase):
    def test_override_upserts(self):
        """A second override of the same occurrence replaces the first"""
        expense = weekly()
        moved = override_occurrence(expense, date(2024, 1, 8), date(2024, 1, 9))
        self.assertEqual(moved.adjustments, [Adjustment(date(2024, 1, 8), date(2024, 1, 9))])

        moved = override_occurrence(moved, date(2024, 1, 8), date(2024, 1, 12))
        self.assertEqual(moved.adjustments, [Adjustment(date(2024, 1, 8), date(2024, 1, 12))])

        moved = override_occurrence(moved, date(2024, 1, 15), date(2024, 1, 14))
        self.assertEqual(len(moved.adjustments), 2)

        # start, end and frequency untouched; input record not mutated
        self.assertEqual(moved.start_date, expense.start_date)
        self.assertIsNone(moved.end_date)
        self.assertEqual(moved.frequency, "weekly")
        self.assertEqual(expense.adjustments, [])

    def test_split_series(self):
        """Propagate edit ends the original and forks a new series"""
        expense = weekly()
        terminated, forked = split_series(expense, date(2024, 1, 15), date(2024, 1, 16))

        self.assertEqual(terminated.end_date, date(2024, 1, 14))
        self.assertIsNone(expense.end_date)
        self.assertEqual(
            list(iter_occurrence_dates(terminated, date(2024, 1, 1), date(2024, 1, 22))),
            [date(2024, 1, 1), date(2024, 1, 8)]
        )

        self.assertEqual(forked.start_date, date(2024, 1, 16))
        self.assertIsNone(forked.end_date)
        self.assertEqual(forked.adjustments, [])
        self.assertEqual(forked.amount, expense.amount)
        self.assertEqual(forked.frequency, expense.frequency)
        self.assertEqual(forked.predecessor_id, expense.id)
        self.assertEqual(
            list(iter_occurrence_dates(forked, date(2024, 1, 1), date(2024, 1, 31))),
            [date(2024, 1, 16), date(2024, 1, 23), date(2024, 1, 30)]
        )

    def test_split_at_start(self):
        """Splitting at the first occurrence leaves an empty series"""
        terminated, forked = split_series(weekly(), date(2024, 1, 1), date(2024, 1, 3))
        self.assertEqual(terminated.end_date, date(2023, 12, 31))
        self.assertEqual(list(iter_occurrence_dates(terminated, date(2023, 1, 1), date(2025, 1, 1))), [])
        self.assertEqual(forked.start_date, date(2024, 1, 3))


class TestCashFlowAggregator(unittest.TestCase):
    def test_adjustment_moves_out_of_window(self):
        expense = weekly(adjustments=[Adjustment(date(2024, 1, 22), date(2024, 2, 5))])
        occurrences = project_occurrences([expense], date(2024, 1, 1), date(2024, 1, 31))
        self.assertEqual(
            [o.display_date for o in occurrences],
            [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 29)]
        )

    def test_adjustment_moves_into_window(self):
        expense = weekly(adjustments=[Adjustment(date(2024, 1, 29), date(2024, 2, 2))])
        occurrences = project_occurrences([expense], date(2024, 2, 1), date(2024, 2, 29))
        self.assertEqual(
            [o.display_date for o in occurrences],
            [date(2024, 2, 2), date(2024, 2, 5), date(2024, 2, 12), date(2024, 2, 19), date(2024, 2, 26)]
        )
        self.assertEqual(occurrences[0].ideal_date, date(2024, 1, 29))
        self.assertTrue(occurrences[0].moved)

    def test_sorted_across_series(self):
        rent = weekly(amount="900", frequency="monthly", start=date(2024, 1, 3), description="Rent", id=2)
        occurrences = project_occurrences([weekly(), rent], date(2024, 1, 1), date(2024, 1, 10))
        self.assertEqual(
            [(o.display_date, o.expense_id) for o in occurrences],
            [(date(2024, 1, 1), 1), (date(2024, 1, 3), 2), (date(2024, 1, 8), 1)]
        )

    def test_bad_series_is_isolated(self):
        """One broken series does not stop the others"""
        broken = weekly(frequency="daily", id=2)
        issues = []
        with self.assertLogs("outlay.logic", level="WARNING"):
            occurrences = project_occurrences([broken, weekly()], date(2024, 1, 1), date(2024, 1, 22), issues)
        self.assertEqual(len(occurrences), 4)
        self.assertEqual(len(issues), 1)
        self.assertIsInstance(issues[0], UnrecognizedFrequencyError)

    def test_daily_net(self):
        """Same-day entries sum; dates outside the window are dropped"""
        expenses = [weekly(amount="30"), weekly(amount="20", id=2, description="Phone")]
        incomes = [
            IncomeRecord("Salary", Decimal("100"), date(2024, 1, 1), id=1),
            IncomeRecord("Bonus", Decimal("40"), date(2024, 3, 1), id=2),
        ]
        net = build_daily_net(expenses, incomes, date(2024, 1, 1), date(2024, 1, 10))
        self.assertEqual(net, {
            date(2024, 1, 1): Decimal("50"),
            date(2024, 1, 8): Decimal("-50"),
        })


class TestBalanceForecaster(unittest.TestCase):
    def setUp(self):
        self.expense = weekly(amount="30")
        self.income = IncomeRecord("Refund", Decimal("100"), date(2024, 2, 1), id=1)

    def test_scenario_balance(self):
        """Income 100, weekly expense 30, anchor 0 on Jan 1"""
        anchor = BalanceAnchor(Decimal("0"), datetime(2024, 1, 1))
        net = build_daily_net([self.expense], [self.income], date(2024, 1, 1), date(2024, 2, 1))
        points = forecast_balance(net, date(2024, 2, 1), date(2024, 2, 1), anchor)
        self.assertEqual(points, [("2024-02-01", Decimal("-50.00"))])
        self.assertEqual(str(points[0][1]), "-50.00")

    def test_continuity(self):
        """One point per day; each step is the day's net change or the reset"""
        anchor = BalanceAnchor(Decimal("250"), datetime(2024, 1, 10, 14, 30))
        net = build_daily_net([self.expense], [self.income], date(2024, 1, 10), date(2024, 2, 10))
        points = forecast_balance(net, date(2024, 1, 5), date(2024, 2, 10), anchor)

        self.assertEqual(len(points), 37)
        days = [date.fromisoformat(d) for d, _ in points]
        self.assertEqual(days, [date(2024, 1, 5) + timedelta(days=i) for i in range(37)])

        for (prev_day, prev_bal), (day, bal) in zip(points, points[1:]):
            d = date.fromisoformat(day)
            if d == anchor.day:
                self.assertEqual(bal, anchor.value + net.get(d, 0))
            else:
                self.assertEqual(bal - prev_bal, net.get(d, Decimal("0")))

    def test_history_before_anchor_ignored(self):
        """Expenses before the anchor day never reach the balance"""
        anchor = BalanceAnchor(Decimal("500"), datetime(2024, 1, 10))
        net = build_daily_net([self.expense], [], date(2024, 1, 1), date(2024, 1, 15))
        points = dict(forecast_balance(net, date(2024, 1, 1), date(2024, 1, 15), anchor))
        self.assertEqual(points["2024-01-08"], Decimal("500.00"))
        self.assertEqual(points["2024-01-10"], Decimal("500.00"))
        self.assertEqual(points["2024-01-15"], Decimal("470.00"))

    def test_history_floor(self):
        anchor = BalanceAnchor(Decimal("0"), datetime(2024, 1, 1))
        net = build_daily_net([self.expense], [], date(2024, 1, 1), date(2024, 1, 20))
        points = dict(forecast_balance(net, date(2024, 1, 10), date(2024, 1, 20), anchor,
                                       history_floor=date(2024, 1, 10)))
        self.assertEqual(points["2024-01-10"], Decimal("0.00"))
        self.assertEqual(points["2024-01-20"], Decimal("-30.00"))

    def test_no_anchor_starts_at_zero(self):
        net = {date(2024, 1, 2): Decimal("12.345")}
        points = forecast_balance(net, date(2024, 1, 1), date(2024, 1, 3))
        self.assertEqual(points, [
            ("2024-01-01", Decimal("0.00")),
            ("2024-01-02", Decimal("12.35")),
            ("2024-01-03", Decimal("12.35")),
        ])

    def test_inverted_range(self):
        with self.assertRaises(ValidationError):
            forecast_balance({}, date(2024, 2, 1), date(2024, 1, 1))


class TestStoreOperations(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.saves_dir = Path(self._tmp.name)
        self.store = JsonStore("test_save", saves_dir=self.saves_dir)

    def tearDown(self):
        self._tmp.cleanup()

    def test_add_expense(self):
        expense = add_expense(self.store, "Gym", "50", "weekly", "2024-01-01")
        self.assertEqual(expense.id, 1)
        self.assertEqual(expense.amount, Decimal("50.00"))
        self.assertEqual(expense.start_date, date(2024, 1, 1))
        self.assertEqual(len(self.store.list_expenses()), 1)

    def test_add_expense_validation(self):
        """Invalid input is rejected before anything is stored"""
        with self.assertRaises(ValidationError):
            add_expense(self.store, "Gym", "0", "weekly", "2024-01-01")
        with self.assertRaises(ValidationError):
            add_expense(self.store, "Gym", "-5", "weekly", "2024-01-01")
        with self.assertRaises(ValidationError):
            add_expense(self.store, "Gym", "abc", "weekly", "2024-01-01")
        with self.assertRaises(ValidationError):
            add_expense(self.store, "Gym", "50", "daily", "2024-01-01")
        with self.assertRaises(ValidationError):
            add_expense(self.store, "Gym", "50", "weekly", "2024-13-01")
        with self.assertRaises(ValidationError):
            add_expense(self.store, "Gym", "50", "weekly", "2024-02-01", end_date="2024-01-01")
        with self.assertRaises(ValidationError):
            add_expense(self.store, "  ", "50", "weekly", "2024-01-01")
        self.assertEqual(self.store.list_expenses(), [])

    def test_add_and_delete_income(self):
        income = add_income(self.store, "Refund", "100", "2024-02-01")
        self.assertEqual(income.date, date(2024, 2, 1))
        delete_income(self.store, income.id)
        self.assertEqual(self.store.list_income(), [])
        with self.assertRaises(NotFoundError):
            delete_income(self.store, income.id)

    def test_delete_expense(self):
        expense = add_expense(self.store, "Gym", "50", "weekly", "2024-01-01")
        delete_expense(self.store, expense.id)
        self.assertIsNone(self.store.get_expense(expense.id))
        with self.assertRaises(NotFoundError):
            delete_expense(self.store, expense.id)

    def test_edit_override(self):
        expense = add_expense(self.store, "Gym", "50", "weekly", "2024-01-01")
        result = apply_edit(self.store, expense.id, "2024-01-08", "2024-01-10")
        self.assertIsNone(result.forked)

        apply_edit(self.store, expense.id, "2024-01-08", "2024-01-11")
        stored = self.store.get_expense(expense.id)
        self.assertEqual(stored.adjustments, [Adjustment(date(2024, 1, 8), date(2024, 1, 11))])

        occurrences = project(self.store, "2024-01-01", "2024-01-15")
        self.assertEqual(
            [o.display_date for o in occurrences],
            [date(2024, 1, 1), date(2024, 1, 11), date(2024, 1, 15)]
        )

    def test_edit_propagate(self):
        """After a split the original yields nothing from the edited date on"""
        expense = add_expense(self.store, "Gym", "50", "weekly", "2024-01-01")
        result = apply_edit(self.store, expense.id, date(2024, 1, 15), date(2024, 1, 16), propagate=True)

        self.assertEqual(result.expense.end_date, date(2024, 1, 14))
        self.assertEqual(result.forked.start_date, date(2024, 1, 16))
        self.assertEqual(result.forked.predecessor_id, expense.id)
        self.assertEqual(len(self.store.list_expenses()), 2)

        occurrences = project(self.store, "2024-01-01", "2024-01-22")
        by_series = {}
        for o in occurrences:
            by_series.setdefault(o.expense_id, []).append(o.display_date)
        self.assertEqual(by_series[expense.id], [date(2024, 1, 1), date(2024, 1, 8)])
        self.assertEqual(by_series[result.forked.id], [date(2024, 1, 16)])

    def test_edit_propagate_only_once(self):
        """A series that was already split cannot be split again"""
        expense = add_expense(self.store, "Gym", "50", "weekly", "2024-01-01")
        result = apply_edit(self.store, expense.id, "2024-01-15", "2024-01-16", propagate=True)

        with self.assertRaises(ValidationError):
            apply_edit(self.store, expense.id, "2024-01-08", "2024-01-09", propagate=True)

        self.assertEqual(self.store.get_expense(expense.id).end_date, date(2024, 1, 14))
        self.assertEqual(len(self.store.list_expenses()), 2)
        occurrences = project(self.store, "2024-01-01", "2024-01-31")
        self.assertEqual(
            [(o.display_date, o.expense_id) for o in occurrences],
            [(date(2024, 1, 1), expense.id), (date(2024, 1, 8), expense.id),
             (date(2024, 1, 16), result.forked.id), (date(2024, 1, 23), result.forked.id),
             (date(2024, 1, 30), result.forked.id)]
        )

        # single-occurrence moves on the terminated part are still allowed
        apply_edit(self.store, expense.id, "2024-01-08", "2024-01-09")
        self.assertEqual(len(self.store.get_expense(expense.id).adjustments), 1)
        # and the fork can be split in turn
        second = apply_edit(self.store, result.forked.id, "2024-01-30", "2024-01-31", propagate=True)
        self.assertEqual(second.forked.predecessor_id, result.forked.id)

    def test_edit_not_found(self):
        with self.assertRaises(NotFoundError):
            apply_edit(self.store, 99, "2024-01-08", "2024-01-10")
        self.assertEqual(self.store.list_expenses(), [])

    def test_edit_rejects_non_occurrence(self):
        expense = add_expense(self.store, "Gym", "50", "weekly", "2024-01-01")
        with self.assertRaises(ValidationError):
            apply_edit(self.store, expense.id, "2024-01-09", "2024-01-10", propagate=True)
        with self.assertRaises(ValidationError):
            apply_edit(self.store, expense.id, "2024-01-08", "not-a-date")
        stored = self.store.get_expense(expense.id)
        self.assertIsNone(stored.end_date)
        self.assertEqual(stored.adjustments, [])
        self.assertEqual(len(self.store.list_expenses()), 1)

    def test_reset_balance(self):
        self.assertIsNone(get_anchor(self.store))
        anchor = reset_balance(self.store, "1250.5", "2024-01-01")
        self.assertEqual(anchor, BalanceAnchor(Decimal("1250.50"), datetime(2024, 1, 1)))
        self.assertEqual(get_anchor(self.store), anchor)
        self.assertEqual(self.store.get_setting("disposable_income"), "1250.50")
        self.assertEqual(self.store.get_setting("last_reset"), "2024-01-01T00:00:00")

    def test_forecast_scenario(self):
        add_expense(self.store, "Gym", "30", "weekly", "2024-01-01")
        add_income(self.store, "Refund", "100", "2024-02-01")
        reset_balance(self.store, "0", "2024-01-01")

        points = forecast(self.store, "2024-01-30", "2024-02-01")
        self.assertEqual(points, [
            ("2024-01-30", Decimal("-150.00")),
            ("2024-01-31", Decimal("-150.00")),
            ("2024-02-01", Decimal("-50.00")),
        ])

    def test_forecast_reports_broken_series(self):
        add_expense(self.store, "Gym", "30", "weekly", "2024-01-01")
        broken = self.store.get_expense(1)
        broken.frequency = "hourly"
        broken.id = None
        self.store.insert_expense(broken)

        issues = []
        with self.assertLogs("outlay.logic", level="WARNING"):
            points = forecast(self.store, "2024-01-01", "2024-01-08", issues=issues)
        self.assertEqual(points[-1], ("2024-01-08", Decimal("-60.00")))
        self.assertEqual(len(issues), 1)

    def test_default_window(self):
        add_expense(self.store, "Gym", "30", "weekly", date.today())
        occurrences = project(self.store)
        self.assertEqual(occurrences[0].display_date, date.today())
        self.assertTrue(all(o.display_date <= date.today() + timedelta(days=186) for o in occurrences))


class TestJsonStore(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.saves_dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_round_trip(self):
        store = JsonStore("test_save", saves_dir=self.saves_dir)
        expense = add_expense(store, "Rent", "1,200.00", "monthly", "2024-01-31", end_date="2024-12-31")
        apply_edit(store, expense.id, "2024-02-29", "2024-03-01")
        add_income(store, "Bonus", "300", "2024-03-15")
        reset_balance(store, "80", datetime(2024, 1, 5, 9, 30))

        reloaded = JsonStore("test_save", saves_dir=self.saves_dir)
        self.assertEqual(reloaded.list_expenses(), store.list_expenses())
        self.assertEqual(reloaded.list_income(), store.list_income())
        self.assertEqual(get_anchor(reloaded), BalanceAnchor(Decimal("80.00"), datetime(2024, 1, 5, 9, 30)))

        raw = json.loads((self.saves_dir / "test_save.json").read_text())
        self.assertEqual(raw["expenses"][0]["start_date"], "2024-01-31")
        self.assertEqual(raw["expenses"][0]["amount"], "1200.00")

    def test_ids_not_reused(self):
        store = JsonStore("test_save", saves_dir=self.saves_dir)
        first = store.insert_expense(weekly(id=None))
        second = store.insert_expense(weekly(id=None))
        store.delete_expense(second.id)

        reloaded = JsonStore("test_save", saves_dir=self.saves_dir)
        third = reloaded.insert_expense(weekly(id=None))
        self.assertEqual((first.id, second.id, third.id), (1, 2, 3))

    def test_reads_are_snapshots(self):
        store = JsonStore("test_save", saves_dir=self.saves_dir)
        store.insert_expense(weekly(id=None))
        snapshot = store.list_expenses()
        snapshot[0].adjustments.append(Adjustment(date(2024, 1, 1), date(2024, 1, 2)))
        self.assertEqual(store.get_expense(1).adjustments, [])

    def test_invalid_records_skipped(self):
        path = self.saves_dir / "test_bad.json"
        path.write_text(json.dumps({
            "metadata": {"version": "2.0"},
            "expenses": [
                {"id": 1, "description": "Gym", "amount": "50", "frequency": "weekly",
                 "start_date": "2024-01-01", "end_date": None, "adjustments": []},
                {"id": 2, "description": "Bad", "amount": "50", "frequency": "weekly",
                 "start_date": "01/01/2024", "adjustments": []},
                {"id": 3, "description": "Odd", "amount": "10", "frequency": "biweekly",
                 "start_date": "2024-01-01", "adjustments": []},
            ],
            "income": [
                {"id": 1, "description": "Refund", "amount": "oops", "date": "2024-01-01"},
                {"id": 2, "description": "Zero", "amount": "0", "date": "2024-01-01"},
                {"id": 3, "description": "Negative", "amount": "-5", "date": "2024-01-01"},
            ],
        }))
        with self.assertLogs("outlay.storage", level="WARNING") as logs:
            store = JsonStore("test_bad", saves_dir=self.saves_dir)
        self.assertEqual(len(logs.records), 4)
        self.assertEqual([e.id for e in store.list_expenses()], [1, 3])
        self.assertEqual(store.get_expense(3).frequency, "biweekly")
        self.assertEqual(store.list_income(), [])

    def test_list_save_files(self):
        JsonStore("test_save1", saves_dir=self.saves_dir).set_setting("x", 1)
        JsonStore("test_save2", saves_dir=self.saves_dir).set_setting("x", 2)
        self.assertEqual(list_save_files(self.saves_dir), ["test_save1", "test_save2"])


class TestHelpers(unittest.TestCase):
    def test_parse_money(self):
        self.assertEqual(parse_money("$1,234.565"), Decimal("1234.57"))
        self.assertEqual(parse_money(0.1), Decimal("0.10"))
        with self.assertRaises(ValidationError):
            parse_money("")
        with self.assertRaises(ValidationError):
            parse_money("NaN")

    def test_parse_day(self):
        self.assertEqual(parse_day("2024-01-15"), date(2024, 1, 15))
        self.assertEqual(parse_day("2024-01-15T00:00:00.000Z"), date(2024, 1, 15))
        self.assertEqual(parse_day(datetime(2024, 1, 15, 23, 59)), date(2024, 1, 15))
        self.assertEqual(parse_day("2024-01-15T23:30:00+05:00"), date(2024, 1, 15))
        with self.assertRaises(ValidationError):
            parse_day("15/01/2024")
        with self.assertRaises(ValidationError):
            parse_day("2024-01-15garbage")
        with self.assertRaises(ValidationError):
            parse_day("2024-01-15T99:00")
        with self.assertRaises(ValidationError):
            parse_day(None)


class TestCLI(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.out = io.StringIO()
        self.cli = OutlayCLI(JsonStore("test_cli", saves_dir=Path(self._tmp.name)), stdout=self.out)

    def tearDown(self):
        self._tmp.cleanup()

    def run_cmd(self, line):
        self.out.seek(0)
        self.out.truncate()
        self.cli.onecmd(line)
        return self.out.getvalue()

    def test_add_and_upcoming(self):
        output = self.run_cmd("add 50 weekly 2024-01-01 Gym membership")
        self.assertIn("✓ Added expense 1", output)

        output = self.run_cmd("upcoming from 2024-01-01 to 2024-01-22")
        self.assertEqual(output.count("Gym membership"), 4)

    def test_add_invalid(self):
        output = self.run_cmd("add 50 daily 2024-01-01 Gym")
        self.assertIn("Invalid input", output)
        output = self.run_cmd("add -5 weekly 2024-01-01 Gym")
        self.assertIn("Invalid input", output)
        self.assertEqual(self.cli.store.list_expenses(), [])

    def test_add_with_end_date(self):
        self.run_cmd("add 20 monthly 2024-01-10 --until 2024-03-10 Phone")
        expense = self.cli.store.get_expense(1)
        self.assertEqual(expense.end_date, date(2024, 3, 10))
        self.assertEqual(expense.description, "Phone")

    def test_edit(self):
        self.run_cmd("add 50 weekly 2024-01-01 Gym")
        output = self.run_cmd("edit 1 2024-01-08 2024-01-09")
        self.assertIn("✓ Moved", output)
        output = self.run_cmd("upcoming from 2024-01-01 to 2024-01-10")
        self.assertIn("moved from 2024-01-08", output)

        output = self.run_cmd("edit 1 2024-01-15 2024-01-16 --all")
        self.assertIn("continues as 2", output)

        output = self.run_cmd("edit 9 2024-01-15 2024-01-16")
        self.assertIn("not found", output)

    def test_forecast(self):
        self.run_cmd("add 30 weekly 2024-01-01 Gym")
        self.run_cmd("income 100 2024-02-01 Refund")
        output = self.run_cmd("reset 0 2024-01-01")
        self.assertIn("✓ Balance set", output)

        output = self.run_cmd("forecast from 2024-02-01 to 2024-02-01")
        self.assertIn("2024-02-01  $-50.00", output)

    def test_range_dates_validated(self):
        self.run_cmd("add 30 weekly 2024-01-01 Gym")
        self.assertIn("Error: Date must be in YYYY-MM-DD format",
                      self.run_cmd("forecast from 2024-02-01garbage"))
        self.assertIn("Error: Date must be in YYYY-MM-DD format",
                      self.run_cmd("upcoming from 2024-02-30"))
        self.assertIn("Error: Unexpected argument", self.run_cmd("upcoming since 2024-02-01"))

    def test_delete(self):
        self.run_cmd("add 30 weekly 2024-01-01 Gym")
        self.assertIn("✓ Deleted expense 1", self.run_cmd("delete 1"))
        self.assertIn("not found", self.run_cmd("delete 1"))
        self.run_cmd("income 100 2024-02-01 Refund")
        self.assertIn("✓ Deleted income 1", self.run_cmd("delete 1 --income"))

    def test_list_and_saves(self):
        self.run_cmd("add 30 weekly 2024-01-01 Gym")
        self.assertIn("[1] Gym", self.run_cmd("list"))
        self.assertIn("test_cli *", self.run_cmd("saves"))
        self.run_cmd("load other")
        self.assertEqual(self.run_cmd("list").strip(), "No records")


if __name__ == "__main__":
    unittest.main()
