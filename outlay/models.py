from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal


Frequency = Literal["weekly", "monthly", "yearly"]

FREQUENCIES = ("weekly", "monthly", "yearly")


class OutlayError(Exception):
    """Base class for engine errors."""


class ValidationError(OutlayError, ValueError):
    """Input rejected before any record was touched."""


class NotFoundError(OutlayError, LookupError):
    """An edit or delete referenced an unknown identifier."""


class UnrecognizedFrequencyError(OutlayError, ValueError):
    """A stored series carries a frequency the generator cannot step."""


@dataclass
class Adjustment:
    original_date: date
    new_date: date


@dataclass
class RecurringExpense:
    description: str
    amount: Decimal
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    adjustments: List[Adjustment] = field(default_factory=list)
    predecessor_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class IncomeRecord:
    description: str
    amount: Decimal
    date: date
    id: Optional[int] = None


@dataclass(frozen=True)
class BalanceAnchor:
    value: Decimal
    reset_at: datetime

    @property
    def day(self) -> date:
        return self.reset_at.date()


@dataclass(frozen=True)
class Occurrence:
    expense_id: Optional[int]
    ideal_date: date
    display_date: date
    amount: Decimal
    description: str = ""

    @property
    def moved(self) -> bool:
        return self.ideal_date != self.display_date
