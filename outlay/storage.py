import copy
import json
import logging
import os
from pathlib import Path
from datetime import date
from decimal import Decimal
from typing import Optional

from .models import Adjustment, IncomeRecord, RecurringExpense


logger = logging.getLogger(__name__)

SAVES_DIR = Path(os.getenv("OUTLAY_SAVES_DIR", "saves"))
DEFAULT_SAVE = "default"
FORMAT_VERSION = "2.0"


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


def list_save_files(saves_dir: Optional[Path] = None):
    saves_dir = Path(saves_dir or SAVES_DIR)
    if not saves_dir.exists():
        return []
    return sorted(f.stem for f in saves_dir.glob("*.json"))


def expense_to_dict(expense: RecurringExpense) -> dict:
    return {
        "id": expense.id,
        "description": expense.description,
        "amount": expense.amount,
        "frequency": expense.frequency,
        "start_date": expense.start_date,
        "end_date": expense.end_date,
        "adjustments": [
            {"original_date": adj.original_date, "new_date": adj.new_date}
            for adj in expense.adjustments
        ],
        "predecessor_id": expense.predecessor_id,
    }


def expense_from_dict(data: dict) -> RecurringExpense:
    # frequency is kept verbatim; an unknown value fails at expansion time
    return RecurringExpense(
        id=int(data["id"]),
        description=data["description"],
        amount=Decimal(str(data["amount"])),
        frequency=data["frequency"],
        start_date=date.fromisoformat(data["start_date"]),
        end_date=date.fromisoformat(data["end_date"]) if data.get("end_date") else None,
        adjustments=[
            Adjustment(
                original_date=date.fromisoformat(adj["original_date"]),
                new_date=date.fromisoformat(adj["new_date"]),
            ) for adj in data.get("adjustments", [])
        ],
        predecessor_id=data.get("predecessor_id"),
    )


def income_to_dict(income: IncomeRecord) -> dict:
    return {
        "id": income.id,
        "description": income.description,
        "amount": income.amount,
        "date": income.date,
    }


def income_from_dict(data: dict) -> IncomeRecord:
    amount = Decimal(str(data["amount"]))
    if not amount > 0:
        raise ValueError(f"non-positive amount {amount}")
    return IncomeRecord(
        id=int(data["id"]),
        description=data["description"],
        amount=amount,
        date=date.fromisoformat(data["date"]),
    )


class JsonStore:
    """Keyed record store backed by one JSON save file.

    Every mutation is written through to disk. Readers get copies, so a
    computation works on a snapshot that later writes cannot disturb.
    """

    def __init__(self, save_name: str = DEFAULT_SAVE, saves_dir: Optional[Path] = None):
        self.save_name = save_name
        self.saves_dir = Path(saves_dir or SAVES_DIR)
        self._expenses: dict[int, RecurringExpense] = {}
        self._income: dict[int, IncomeRecord] = {}
        self._settings: dict = {}
        self._counters = {"expense": 0, "income": 0}
        self._load()

    @property
    def path(self) -> Path:
        return self.saves_dir / f"{self.save_name}.json"

    # ===== EXPENSES =====
    def list_expenses(self) -> list[RecurringExpense]:
        return [copy.deepcopy(e) for e in self._expenses.values()]

    def get_expense(self, expense_id: int) -> Optional[RecurringExpense]:
        expense = self._expenses.get(expense_id)
        return copy.deepcopy(expense) if expense else None

    def insert_expense(self, expense: RecurringExpense) -> RecurringExpense:
        expense = copy.deepcopy(expense)
        expense.id = self._next_id("expense")
        self._expenses[expense.id] = expense
        self._save()
        return copy.deepcopy(expense)

    def upsert_expense(self, expense: RecurringExpense) -> RecurringExpense:
        if expense.id is None:
            return self.insert_expense(expense)
        self._expenses[expense.id] = copy.deepcopy(expense)
        self._counters["expense"] = max(self._counters["expense"], expense.id)
        self._save()
        return copy.deepcopy(expense)

    def delete_expense(self, expense_id: int) -> bool:
        if self._expenses.pop(expense_id, None) is None:
            return False
        self._save()
        return True

    # ===== INCOME =====
    def list_income(self) -> list[IncomeRecord]:
        return [copy.deepcopy(i) for i in self._income.values()]

    def insert_income(self, income: IncomeRecord) -> IncomeRecord:
        income = copy.deepcopy(income)
        income.id = self._next_id("income")
        self._income[income.id] = income
        self._save()
        return copy.deepcopy(income)

    def delete_income(self, income_id: int) -> bool:
        if self._income.pop(income_id, None) is None:
            return False
        self._save()
        return True

    # ===== SETTINGS =====
    def get_setting(self, key: str, default=None):
        return self._settings.get(key, default)

    def set_setting(self, key: str, value) -> None:
        self.set_settings({key: value})

    def set_settings(self, values: dict) -> None:
        self._settings.update(values)
        self._save()

    # ===== PERSISTENCE =====
    def _next_id(self, kind: str) -> int:
        self._counters[kind] += 1
        return self._counters[kind]

    def _save(self) -> None:
        data = {
            "metadata": {
                "version": FORMAT_VERSION,
                "saved": date.today().isoformat(),
                "expense_counter": self._counters["expense"],
                "income_counter": self._counters["income"],
            },
            "expenses": [expense_to_dict(e) for e in self._expenses.values()],
            "income": [income_to_dict(i) for i in self._income.values()],
            "settings": self._settings,
        }
        self.saves_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(data, cls=EnhancedJSONEncoder, indent=2))
        tmp_path.replace(self.path)
        logger.info("Saved %d expenses, %d income records to '%s'",
                    len(self._expenses), len(self._income), self.save_name)

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("Save file '%s' not found, starting empty", self.save_name)
            return

        data = json.loads(self.path.read_text())
        metadata = data.get("metadata", {})

        for e_data in data.get("expenses", []):
            try:
                expense = expense_from_dict(e_data)
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                logger.warning("Skipping invalid expense %s: %s", e_data.get("id"), e)
                continue
            self._expenses[expense.id] = expense

        for i_data in data.get("income", []):
            try:
                income = income_from_dict(i_data)
            except (KeyError, TypeError, ValueError, ArithmeticError) as e:
                logger.warning("Skipping invalid income record %s: %s", i_data.get("id"), e)
                continue
            self._income[income.id] = income

        self._settings = dict(data.get("settings", {}))
        # counters never go backwards, even if the highest-id record was deleted
        self._counters["expense"] = max(
            [int(metadata.get("expense_counter", 0)), *self._expenses.keys()])
        self._counters["income"] = max(
            [int(metadata.get("income_counter", 0)), *self._income.keys()])

        logger.info("Loaded %d expenses, %d income records from '%s'",
                    len(self._expenses), len(self._income), self.save_name)
