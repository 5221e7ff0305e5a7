import cmd
import shlex

from outlay.dates import parse_day
from outlay.logic import (
    add_expense,
    add_income,
    apply_edit,
    delete_expense,
    delete_income,
    forecast,
    get_anchor,
    project,
    reset_balance,
)
from outlay.models import FREQUENCIES, OutlayError
from outlay.storage import JsonStore, list_save_files, DEFAULT_SAVE


class OutlayCLI(cmd.Cmd):
    prompt = "(outlay) "

    def __init__(self, store=None, stdout=None):
        super().__init__(stdout=stdout)
        self.store = store if store is not None else JsonStore(DEFAULT_SAVE)
        self.intro = "Welcome to Outlay. Type 'help' for commands."

    def _print(self, text=""):
        self.stdout.write(f"{text}\n")

    # ===== RECORDS =====
    def do_add(self, arg):
        """Add a recurring expense: add <amount> <weekly|monthly|yearly> <YYYY-MM-DD> [--until YYYY-MM-DD] <description>"""
        try:
            args = self._parse_add_args(arg)
            expense = add_expense(self.store, **args)
            self._print(f"✓ Added expense {expense.id}: {expense.description} "
                        f"${expense.amount:,.2f} {expense.frequency} from {expense.start_date}")
        except (OutlayError, ValueError) as e:
            self._print(f"Invalid input: {e}")

    def do_income(self, arg):
        """Add one-off income: income <amount> <YYYY-MM-DD> <description>"""
        args = shlex.split(arg)
        if len(args) < 3:
            self._print("Usage: income <amount> <YYYY-MM-DD> <description>")
            return
        try:
            income = add_income(self.store, " ".join(args[2:]), args[0], args[1])
            self._print(f"✓ Added income {income.id}: {income.description} ${income.amount:,.2f} on {income.date}")
        except (OutlayError, ValueError) as e:
            self._print(f"Invalid input: {e}")

    def do_list(self, arg):
        """List recurring expenses and income records"""
        expenses = sorted(self.store.list_expenses(), key=lambda e: (e.description, e.start_date))
        income = sorted(self.store.list_income(), key=lambda i: i.date)
        if not expenses and not income:
            self._print("No records")
            return

        if expenses:
            self._print("\nRecurring expenses:")
            for e in expenses:
                until = f" until {e.end_date}" if e.end_date else ""
                moved = f", {len(e.adjustments)} moved" if e.adjustments else ""
                self._print(f"  [{e.id}] {e.description}: ${e.amount:,.2f} {e.frequency} "
                            f"from {e.start_date}{until}{moved}")
        if income:
            self._print("\nIncome:")
            for i in income:
                self._print(f"  [{i.id}] {i.description}: ${i.amount:,.2f} on {i.date}")

    def do_delete(self, arg):
        """Delete a record: delete <ID> [--income]"""
        args = arg.split()
        if not args or not args[0].isdigit():
            self._print("Usage: delete <ID> [--income]")
            return
        try:
            if "--income" in args[1:]:
                delete_income(self.store, int(args[0]))
                self._print(f"✓ Deleted income {args[0]}")
            else:
                delete_expense(self.store, int(args[0]))
                self._print(f"✓ Deleted expense {args[0]}")
        except OutlayError as e:
            self._print(str(e))

    # ===== SCHEDULE =====
    def do_upcoming(self, arg):
        """Show upcoming occurrences: upcoming [from YYYY-MM-DD] [to YYYY-MM-DD]"""
        try:
            start, end = self._parse_range_args(arg)
            issues = []
            occurrences = project(self.store, start, end, issues=issues)
        except (OutlayError, ValueError) as e:
            self._print(f"Error: {e}")
            return

        if not occurrences:
            self._print("No upcoming expenses")
        for occ in occurrences:
            moved = f" (moved from {occ.ideal_date})" if occ.moved else ""
            self._print(f"  {occ.display_date}  [{occ.expense_id}] {occ.description}: "
                        f"${occ.amount:,.2f}{moved}")
        for issue in issues:
            self._print(f"Warning: {issue}")

    def do_edit(self, arg):
        """Move an occurrence: edit <ID> <occurrence YYYY-MM-DD> <new YYYY-MM-DD> [--all]

        --all moves this occurrence and every later one (the series is split)."""
        args = arg.split()
        if len(args) < 3 or not args[0].isdigit():
            self._print("Usage: edit <ID> <occurrence YYYY-MM-DD> <new YYYY-MM-DD> [--all]")
            return
        propagate = "--all" in args[3:]
        try:
            result = apply_edit(self.store, int(args[0]), args[1], args[2], propagate=propagate)
        except OutlayError as e:
            self._print(f"Error: {e}")
            return

        if result.forked is not None:
            self._print(f"✓ Expense {result.expense.id} now ends {result.expense.end_date}; "
                        f"continues as {result.forked.id} from {result.forked.start_date}")
        else:
            self._print(f"✓ Moved {args[1]} to {args[2]}")

    # ===== BALANCE =====
    def do_forecast(self, arg):
        """Forecast daily balance: forecast [from YYYY-MM-DD] [to YYYY-MM-DD]"""
        try:
            start, end = self._parse_range_args(arg)
            issues = []
            points = forecast(self.store, start, end, issues=issues)
        except (OutlayError, ValueError) as e:
            self._print(f"Error: {e}")
            return

        anchor = get_anchor(self.store)
        if anchor is None:
            self._print("Note: no balance reset recorded, starting from $0.00")
        else:
            self._print(f"Anchored at ${anchor.value:,.2f} on {anchor.day}")
        for day, balance in points:
            self._print(f"  {day}  ${balance:,.2f}")
        for issue in issues:
            self._print(f"Warning: {issue}")

    def do_reset(self, arg):
        """Record the current disposable income: reset <amount> [YYYY-MM-DD]"""
        args = arg.split()
        if not args:
            self._print("Usage: reset <amount> [YYYY-MM-DD]")
            return
        try:
            anchor = reset_balance(self.store, args[0], args[1] if len(args) > 1 else None)
            self._print(f"✓ Balance set to ${anchor.value:,.2f} as of {anchor.day}")
        except (OutlayError, ValueError) as e:
            self._print(f"Invalid input: {e}")

    # ===== DATA MANAGEMENT =====
    def do_saves(self, arg):
        """List save files"""
        saves = list_save_files(self.store.saves_dir)
        if not saves:
            self._print("No save files available")
            return
        for i, name in enumerate(saves, 1):
            marker = " *" if name == self.store.save_name else ""
            self._print(f"{i}. {name}{marker}")

    def do_load(self, arg):
        """Switch to another save file (created on first write): load <name>"""
        name = arg.strip()
        if not name:
            self._print("Usage: load <name>")
            return
        self.store = JsonStore(name, saves_dir=self.store.saves_dir)
        self._print(f"✓ Using '{name}'")

    # ===== UTILITIES =====
    def do_exit(self, arg):
        """Exit the program"""
        self._print("Goodbye!")
        return True

    # ===== HELPERS =====
    @staticmethod
    def _parse_add_args(arg):
        """Parse add command arguments"""
        args = shlex.split(arg)
        if len(args) < 4:
            raise ValueError("Missing required arguments (amount, frequency, start date, description)")

        result = {
            'amount': args[0],
            'frequency': args[1].lower(),
            'start_date': args[2],
            'end_date': None,
            'description': "",
        }
        if result['frequency'] not in FREQUENCIES:
            raise ValueError(f"Invalid frequency, use: {'/'.join(FREQUENCIES)}")

        rest = args[3:]
        if rest and rest[0] == '--until':
            if len(rest) < 2:
                raise ValueError("Missing date after --until")
            result['end_date'] = rest[1]
            rest = rest[2:]
        result['description'] = " ".join(rest)
        return result

    @staticmethod
    def _parse_range_args(arg):
        """Parse optional 'from <date>' / 'to <date>' pairs"""
        args = arg.split()
        result = {'from': None, 'to': None}

        i = 0
        while i < len(args):
            if args[i] in result and i + 1 < len(args):
                result[args[i]] = parse_day(args[i + 1])
                i += 2
            else:
                raise ValueError(f"Unexpected argument: {args[i]}")

        return result['from'], result['to']
