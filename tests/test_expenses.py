from datetime import date

import pytest

from tracker.errors import ValidationError
from tracker.expenses import ExpenseService
from tracker.session import SessionContext
from tracker.store import MemoryStore
from tracker.transforms import sort_expenses, expense_from_record

ROOT = "users/u1/years/2025/expenses"


def make_service(records=None):
    tree = {"users": {"u1": {"years": {"2025": {"expenses": records}}}}} if records else {}
    store = MemoryStore(tree)
    session = SessionContext(uid="u1", year=2025)
    service = ExpenseService(store, session)
    service.load()
    return store, session, service


def make_records():
    return {
        "e1": {"name": "Coffee", "amount": 3.5, "date": "2025-03-02", "createdAt": 10},
        "e2": {"name": "Rent", "amount": 900, "date": "2025-03-01", "createdAt": 5, "place": "Landlord"},
        "e3": {"name": "Lunch", "amount": 12, "date": "2025-03-02", "createdAt": 20},
        "e4": {"name": "Books", "amount": 40, "date": "2025-02-14", "createdAt": 1, "description": "gift"},
    }


def test_load_sorts_newest_first_with_created_at_tiebreak():
    _, session, _ = make_service(make_records())
    assert [e.id for e in session.expenses] == ["e3", "e1", "e2", "e4"]


def test_sort_order_is_a_total_order():
    a = expense_from_record("a", {"name": "x", "amount": 1, "date": "2025-01-01", "createdAt": 7})
    b = expense_from_record("b", {"name": "y", "amount": 1, "date": "2025-01-01", "createdAt": 7})
    assert sort_expenses([a, b]) == sort_expenses([b, a])


def test_add_expense_stores_record_and_updates_cache():
    store, session, service = make_service()
    e = service.add_expense(" Taxi ", "25.50", date(2025, 4, 9), place="Airport")

    assert e.name == "Taxi"
    assert e.amount == 25.5
    assert e.date == "2025-04-09"
    rec = store.get(f"{ROOT}/{e.id}")
    assert rec["name"] == "Taxi"
    assert rec["amount"] == 25.5
    assert rec["place"] == "Airport"
    assert rec["createdAt"] > 0
    assert "updatedAt" not in rec
    assert session.expenses == (e,)


@pytest.mark.parametrize(
    "name, amount, when, field",
    [
        ("", 10, "2025-01-01", "name"),
        ("Coffee", 0, "2025-01-01", "amount"),
        ("Coffee", -5, "2025-01-01", "amount"),
        ("Coffee", "abc", "2025-01-01", "amount"),
        ("Coffee", 5, "01/02/2025", "date"),
        ("Coffee", 5, "20250105", "date"),
        ("Coffee", 5, "2025-W01-1", "date"),
        ("Coffee", 5, "2025-02-30", "date"),
        ("Coffee", "inf", "2025-01-05", "amount"),
        ("Coffee", "nan", "2025-01-05", "amount"),
        ("Coffee", "1e400", "2025-01-05", "amount"),
    ],
)
def test_add_expense_validation(name, amount, when, field):
    store, session, service = make_service()
    with pytest.raises(ValidationError) as e:
        service.add_expense(name, amount, when)
    assert e.value.field == field
    assert store.get(ROOT) is None
    assert session.expenses == ()


def test_add_expense_stores_iso_date():
    store, _, service = make_service()
    from_date = service.add_expense("Coffee", 3, date(2025, 1, 5))
    from_text = service.add_expense("Tea", 2, "2025-01-05")
    assert from_date.date == from_text.date == "2025-01-05"
    assert store.get(f"{ROOT}/{from_date.id}/date") == "2025-01-05"



def test_edit_keeps_created_at_and_sets_updated_at():
    store, session, service = make_service(make_records())
    updated = service.edit_expense("e4", "Books", 45, "2025-02-15", description="")

    rec = store.get(f"{ROOT}/e4")
    assert rec["createdAt"] == 1
    assert rec["updatedAt"] > 0
    assert rec["amount"] == 45.0
    assert rec["date"] == "2025-02-15"
    assert updated.updated_at == rec["updatedAt"]
    assert [e.id for e in session.expenses][-1] == "e4"


def test_edit_unknown_id_returns_none():
    store, _, service = make_service(make_records())
    assert service.edit_expense("zzz", "X", 1, "2025-01-01") is None
    assert store.get(f"{ROOT}/zzz") is None


def test_delete_expense():
    store, session, service = make_service(make_records())
    service.delete_expense("e2")
    assert store.get(f"{ROOT}/e2") is None
    assert "e2" not in {e.id for e in session.expenses}


def test_filtered_and_month_options():
    _, _, service = make_service(make_records())
    assert [e.id for e in service.filtered("2025-03")] == ["e3", "e1", "e2"]
    assert [e.id for e in service.filtered("2025-02")] == ["e4"]
    assert len(service.filtered("all")) == 4
    assert len(service.filtered(None)) == 4
    assert service.month_options() == [
        ("all", "All Months"),
        ("2025-03", "March 2025"),
        ("2025-02", "February 2025"),
    ]
