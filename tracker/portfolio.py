"""Monthly income/expense bookkeeping with a realtime subscription.

Only one listener per portfolio path is ever active: subscribing again
closes the previous listener first.
"""
import logging
import threading
from typing import Any, Callable, Optional

from tracker.domain import MONTH_KEYS, PORTFOLIO_FIELDS, Portfolio
from tracker.errors import RemoteReadError, ValidationError
from tracker.services import StoreService, owner_required
from tracker.transforms import (
    month_from_record,
    month_to_record,
    portfolio_from_snapshot,
    sanitize_amount,
    set_month_field,
)

logger = logging.getLogger(__name__)


def totals_row(portfolio: Portfolio) -> dict[str, float]:
    """Every column summed over the twelve months, plus the derived totals."""
    row = {f: sum(getattr(m, f) for m in portfolio.months.values()) for f in PORTFOLIO_FIELDS}
    row["totalExpense"] = sum(m.total_expense for m in portfolio.months.values())
    row["totalIncome"] = sum(m.total_income for m in portfolio.months.values())
    row["savings"] = sum(m.savings for m in portfolio.months.values())
    return row


class PortfolioService(StoreService):

    def __init__(self, store, session):
        super().__init__(store, session)
        self._subscription = None
        self._subscribed_path: Optional[str] = None
        self._lock = threading.Lock()

    @owner_required(default=Portfolio)
    def load(self) -> Portfolio:
        fresh, raw = self.fetch("portfolio", self.session.paths().portfolio)
        if fresh:
            self.session.portfolio = portfolio_from_snapshot(raw)
        return self.session.portfolio or Portfolio()

    @owner_required()
    def set_month_field(self, month_key: str, field_name: str, value: Any) -> float:
        if month_key not in MONTH_KEYS:
            raise ValidationError(f"Unknown month: {month_key}", field="month")
        if field_name not in PORTFOLIO_FIELDS:
            raise ValidationError(f"Unknown portfolio field: {field_name}", field=field_name)
        amount = sanitize_amount(value)

        def step(current):
            return month_to_record(set_month_field(month_from_record(current), field_name, amount))

        self.store.transaction(self.session.paths().portfolio_month(month_key), step)
        portfolio = self.session.portfolio or Portfolio()
        months = dict(portfolio.months)
        months[month_key] = set_month_field(months[month_key], field_name, amount)
        self.session.portfolio = Portfolio(opening_balance=portfolio.opening_balance, months=months)
        logger.info("portfolio %s.%s = %.2f", month_key, field_name, amount)
        return amount

    @owner_required()
    def set_opening_balance(self, value: Any) -> float:
        amount = sanitize_amount(value)
        self.store.set(self.session.paths().opening_balance, amount)
        portfolio = self.session.portfolio or Portfolio()
        self.session.portfolio = Portfolio(opening_balance=amount, months=portfolio.months)
        logger.info("portfolio opening balance = %.2f", amount)
        return amount

    @owner_required(default=False)
    def subscribe(self, callback: Optional[Callable[[Portfolio], None]] = None) -> bool:
        """Follow the portfolio document; each snapshot replaces the session copy."""
        path = self.session.paths().portfolio

        def on_snapshot(raw):
            portfolio = portfolio_from_snapshot(raw)
            self.session.portfolio = portfolio
            if callback is not None:
                callback(portfolio)

        with self._lock:
            self._close_locked()
            try:
                self._subscription = self.store.listen(path, on_snapshot)
            except RemoteReadError as e:
                logger.warning("live updates unavailable for %s: %s", path, e.message)
                return False
            self._subscribed_path = path
        logger.info("subscribed to %s", path)
        return True

    def unsubscribe(self) -> None:
        with self._lock:
            self._close_locked()

    def _close_locked(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            logger.debug("closed subscription on %s", self._subscribed_path)
        self._subscription = None
        self._subscribed_path = None
