from dataclasses import dataclass, field
from typing import Optional

GOAL_TYPES = ("yearly", "quarterly", "monthly")
MONTH_KEYS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
EXPENSE_FIELDS = ("personal", "family", "rent", "loan", "misc")
INCOME_FIELDS = ("mainIncome", "sideIncome")
PORTFOLIO_FIELDS = EXPENSE_FIELDS + INCOME_FIELDS


@dataclass(frozen=True)
class Goal:
    text: str
    completed: bool = False
    created_at: int = 0     # epoch ms


@dataclass(frozen=True)
class ArchivedGoal:
    text: str
    completed: bool
    created_at: int
    period: str             # e.g. "Month 5/2025" or "Q2 2025"
    archived_at: int


@dataclass(frozen=True)
class Task:
    name: str
    days: frozenset = frozenset()   # completed days of month, 1..31


@dataclass(frozen=True)
class Expense:
    id: str
    name: str
    amount: float           # always > 0
    date: str               # "YYYY-MM-DD"
    created_at: int
    place: str = ""
    description: str = ""
    updated_at: Optional[int] = None


@dataclass(frozen=True)
class PortfolioMonth:
    personal: float = 0.0
    family: float = 0.0
    rent: float = 0.0
    loan: float = 0.0
    misc: float = 0.0
    mainIncome: float = 0.0
    sideIncome: float = 0.0

    @property
    def total_expense(self) -> float:
        return self.personal + self.family + self.rent + self.loan + self.misc

    @property
    def total_income(self) -> float:
        return self.mainIncome + self.sideIncome

    @property
    def savings(self) -> float:
        return self.total_income - self.total_expense


@dataclass(frozen=True)
class Portfolio:
    opening_balance: float = 0.0
    months: dict = field(default_factory=lambda: {k: PortfolioMonth() for k in MONTH_KEYS})

    @property
    def total_savings(self) -> float:
        return sum(m.savings for m in self.months.values())

    @property
    def closing_balance(self) -> float:
        return self.opening_balance + self.total_savings
