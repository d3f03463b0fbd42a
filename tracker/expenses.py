import logging
from typing import Optional
from uuid import uuid4

from tracker.domain import Expense
from tracker.functional import unwrap, validate_expense_input
from tracker.lazy import iter_expenses, month_filter_options
from tracker.filters import by_year_month
from tracker.services import StoreService, now_ms, owner_required
from tracker.transforms import expense_to_record, expenses_from_snapshot, sort_expenses

logger = logging.getLogger(__name__)


class ExpenseService(StoreService):

    @owner_required(default=tuple)
    def load(self) -> tuple:
        fresh, raw = self.fetch("expenses", self.session.paths().expenses)
        if fresh:
            self.session.expenses = sort_expenses(expenses_from_snapshot(raw))
        return self.session.expenses

    @owner_required()
    def add_expense(self, name, amount, date, place: str = "", description: str = "") -> Expense:
        clean = unwrap(validate_expense_input(name, amount, date))
        expense = Expense(
            id=uuid4().hex,
            created_at=now_ms(),
            place=(place or "").strip(),
            description=(description or "").strip(),
            **clean,
        )
        self.store.set(self.session.paths().expense(expense.id), expense_to_record(expense))
        self.session.expenses = sort_expenses(self.session.expenses + (expense,))
        logger.info("added expense %s (%.2f on %s)", expense.id, expense.amount, expense.date)
        return expense

    @owner_required()
    def edit_expense(self, expense_id: str, name, amount, date, place: str = "",
                     description: str = "") -> Optional[Expense]:
        existing = next((e for e in self.session.expenses if e.id == expense_id), None)
        if existing is None:
            return None
        clean = unwrap(validate_expense_input(name, amount, date))
        expense = Expense(
            id=expense_id,
            created_at=existing.created_at,
            updated_at=now_ms(),
            place=(place or "").strip(),
            description=(description or "").strip(),
            **clean,
        )
        self.store.set(self.session.paths().expense(expense_id), expense_to_record(expense))
        self.session.expenses = sort_expenses(
            expense if e.id == expense_id else e for e in self.session.expenses
        )
        logger.info("updated expense %s", expense_id)
        return expense

    @owner_required()
    def delete_expense(self, expense_id: str) -> None:
        self.store.delete(self.session.paths().expense(expense_id))
        self.session.expenses = tuple(e for e in self.session.expenses if e.id != expense_id)
        logger.info("deleted expense %s", expense_id)

    def filtered(self, year_month: Optional[str] = None) -> tuple:
        """Cached expenses for one ``YYYY-MM`` key, or all of them."""
        if not year_month or year_month == "all":
            return self.session.expenses
        return tuple(iter_expenses(self.session.expenses, by_year_month(year_month)))

    def month_options(self) -> list:
        return list(month_filter_options(self.session.expenses))
