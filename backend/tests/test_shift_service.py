"""
Shift lifecycle tests: open, close, reopen, delete.

Covers the single-open rule, the all-or-nothing close, the stock
projection round trip and the reopen audit trail.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from barflow.extensions import db
from barflow.models import InventoryStock, Sale, ShiftSession
from barflow.models.shifts import SHIFT_CLOSED, SHIFT_OPEN, SNAPSHOT_FINAL
from barflow.services import credit_service, products_service, sales_service, shift_service
from barflow.time_utils import utcnow
from barflow.validation import ConflictError, NotFoundError, PermissionDenied, ValidationError


def stock_of(product_id):
    row = db.session.get(InventoryStock, product_id)
    return row.quantity if row else None


class TestOpenShift:
    def test_negative_initial_count_rejected(self, admin, beer_a):
        with pytest.raises(ValidationError):
            shift_service.open_shift(admin, {beer_a.id: -3})
        assert shift_service.get_active_shift() is None
        assert stock_of(beer_a.id) is None

    def test_open_snapshots_every_active_product(self, admin, beer_a, beer_b):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})

        assert shift.status == SHIFT_OPEN
        assert shift.opened_by_user_id == admin.id
        counts = {s["product_id"]: s["count"] for s in shift.to_dict()["initial_inventory"]}
        assert counts == {beer_a.id: 24, beer_b.id: 0}

    def test_open_writes_stock_projection(self, admin, beer_a):
        shift_service.open_shift(admin, {beer_a.id: 24})
        assert stock_of(beer_a.id) == 24

    def test_unknown_products_are_dropped(self, admin, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 3, 9999: 7})
        ids = [s["product_id"] for s in shift.to_dict()["initial_inventory"]]
        assert ids == [beer_a.id]

    def test_inactive_products_are_not_counted(self, admin, beer_a, beer_b):
        products_service.update_product(beer_b.id, is_active=False)
        shift = shift_service.open_shift(admin, {beer_a.id: 3, beer_b.id: 9})
        ids = [s["product_id"] for s in shift.to_dict()["initial_inventory"]]
        assert ids == [beer_a.id]

    def test_employee_cannot_open(self, employee, beer_a):
        with pytest.raises(PermissionDenied):
            shift_service.open_shift(employee, {beer_a.id: 1})
        assert shift_service.get_active_shift() is None

    def test_second_open_conflicts(self, admin, beer_a):
        first = shift_service.open_shift(admin, {beer_a.id: 1})
        with pytest.raises(ConflictError):
            shift_service.open_shift(admin, {beer_a.id: 1})
        assert shift_service.get_active_shift().id == first.id

    def test_open_without_products_fails(self, admin):
        with pytest.raises(ValidationError):
            shift_service.open_shift(admin, {})
        assert db.session.query(ShiftSession).count() == 0

    def test_database_rejects_second_open_row(self, admin):
        """The partial unique index holds even if the service check is bypassed."""
        now = utcnow()
        db.session.add(ShiftSession(opened_by_user_id=admin.id, status=SHIFT_OPEN, opened_at=now))
        db.session.commit()

        db.session.add(ShiftSession(opened_by_user_id=admin.id, status=SHIFT_OPEN, opened_at=now))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_closed_rows_are_not_limited(self, admin):
        now = utcnow()
        for _ in range(3):
            db.session.add(ShiftSession(opened_by_user_id=admin.id, status=SHIFT_CLOSED, opened_at=now))
        db.session.commit()
        assert db.session.query(ShiftSession).count() == 3


class TestCloseShift:
    def test_end_to_end_with_credit(self, admin, employee, beer_a, customer):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)

        closed = shift_service.close_shift(shift.id, {beer_a.id: 20}, 65000, employee)

        report = closed.to_dict()["sales_report"]
        assert closed.status == SHIFT_CLOSED
        assert closed.closed_by_user_id == employee.id
        assert report["total_revenue_cents"] == 20000
        assert report["total_cost_cents"] == 8000
        assert report["total_profit_cents"] == 12000
        assert report["total_credit_sales_cents"] == 15000
        assert report["total_cash_payments_cents"] == 0
        assert report["cash_to_deliver_cents"] == 5000
        assert report["difference_cents"] == 60000
        assert report["items_sold"] == [{
            "product_id": beer_a.id,
            "product_name": "BeerA",
            "quantity": 4,
            "revenue_cents": 20000,
            "profit_cents": 12000,
        }]

    def test_cash_payment_counts_toward_delivery(self, admin, employee, beer_a, customer):
        credit_service.authorize_debt(customer.id, 10000, "before shift", employee)
        shift = shift_service.open_shift(admin, {beer_a.id: 10})
        credit_service.record_payment(customer.id, 4000, "CASH", employee)
        credit_service.record_payment(customer.id, 1000, "TRANSFER", employee)

        closed = shift_service.close_shift(shift.id, {beer_a.id: 10}, 4000, employee)

        assert closed.total_credit_sales_cents == 0
        assert closed.total_cash_payments_cents == 4000
        assert closed.total_non_cash_payments_cents == 1000
        assert closed.cash_to_deliver_cents == 4000
        assert closed.difference_cents == 0

    def test_restock_clamps_sold_to_zero(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 5})
        closed = shift_service.close_shift(shift.id, {beer_a.id: 12}, 0, employee)
        assert closed.total_revenue_cents == 0
        assert closed.items == []

    def test_close_writes_stock_projection(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 0, employee)
        assert stock_of(beer_a.id) == 20

    def test_missing_real_cash_writes_nothing(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})

        with pytest.raises(ValidationError):
            shift_service.close_shift(shift.id, {beer_a.id: 20}, None, employee)

        reloaded = shift_service.get_shift(shift.id)
        assert reloaded.status == SHIFT_OPEN
        assert reloaded.inventory(SNAPSHOT_FINAL) == []
        assert reloaded.total_revenue_cents is None
        assert stock_of(beer_a.id) == 24

    def test_failure_mid_close_rolls_back_everything(self, monkeypatch, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        real_write = products_service.write_stock

        def write_then_fail(product_id, quantity, **kwargs):
            real_write(product_id, quantity, **kwargs)
            db.session.flush()
            raise RuntimeError("disk full")

        monkeypatch.setattr(products_service, "write_stock", write_then_fail)
        with pytest.raises(RuntimeError):
            shift_service.close_shift(shift.id, {beer_a.id: 20}, 65000, employee)
        monkeypatch.undo()

        reloaded = shift_service.get_shift(shift.id)
        assert reloaded.status == SHIFT_OPEN
        assert reloaded.closed_at is None
        assert reloaded.inventory(SNAPSHOT_FINAL) == []
        assert reloaded.items == []
        assert reloaded.total_revenue_cents is None
        assert stock_of(beer_a.id) == 24

        # The same shift still closes cleanly afterwards
        closed = shift_service.close_shift(shift.id, {beer_a.id: 20}, 65000, employee)
        assert closed.status == SHIFT_CLOSED
        assert stock_of(beer_a.id) == 20

    def test_negative_final_count_rejected(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        with pytest.raises(ValidationError):
            shift_service.close_shift(shift.id, {beer_a.id: -1}, 0, employee)
        assert shift_service.get_shift(shift.id).status == SHIFT_OPEN
        assert stock_of(beer_a.id) == 24

    def test_negative_real_cash_rejected(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        with pytest.raises(ValidationError):
            shift_service.close_shift(shift.id, {beer_a.id: 20}, -1, employee)

    def test_double_close_conflicts(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 20000, employee)

        with pytest.raises(ConflictError):
            shift_service.close_shift(shift.id, {beer_a.id: 10}, 99999, employee)

        reloaded = shift_service.get_shift(shift.id)
        assert reloaded.real_cash_cents == 20000
        assert reloaded.total_revenue_cents == 20000

    def test_close_unknown_shift(self, employee):
        with pytest.raises(NotFoundError):
            shift_service.close_shift(12345, {}, 0, employee)

    def test_price_change_does_not_alter_closed_report(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 0, employee)

        products_service.update_product(beer_a.id, sale_price_cents=99999)

        report = shift_service.get_shift(shift.id).to_dict()["sales_report"]
        assert report["total_revenue_cents"] == 20000
        assert report["items_sold"][0]["revenue_cents"] == 20000

    def test_product_added_mid_shift_is_counted_at_close(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        wine = products_service.create_product("Wine", 3000, 8000)

        closed = shift_service.close_shift(shift.id, {beer_a.id: 24, wine.id: 6}, 0, employee)

        final = {s["product_id"]: s["count"] for s in closed.to_dict()["final_inventory"]}
        assert final == {beer_a.id: 24, wine.id: 6}
        assert closed.total_revenue_cents == 0
        assert stock_of(wine.id) == 6


class TestReopenShift:
    def _closed_shift(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        return shift_service.close_shift(shift.id, {beer_a.id: 20}, 20000, employee)

    def test_reopen_restores_stock_and_records_audit(self, admin, employee, beer_a):
        shift = self._closed_shift(admin, employee, beer_a)
        assert stock_of(beer_a.id) == 20

        reopened = shift_service.reopen_shift(shift.id, "Miscounted BeerA", admin)

        assert reopened.status == SHIFT_OPEN
        assert reopened.closed_by_user_id is None
        assert reopened.closed_at is None
        assert reopened.items == []
        assert stock_of(beer_a.id) == 24

        data = reopened.to_dict()
        assert data["sales_report"] is None
        assert data["superseded_report"]["total_revenue_cents"] == 20000
        assert data["final_inventory"] == []
        assert data["real_cash_cents"] is None
        assert len(data["audit_log"]) == 1
        entry = data["audit_log"][0]
        assert entry["action"] == "REOPEN"
        assert entry["reason"] == "Miscounted BeerA"
        assert entry["user_id"] == admin.id

    def test_reclose_recomputes_report(self, admin, employee, beer_a):
        shift = self._closed_shift(admin, employee, beer_a)
        shift_service.reopen_shift(shift.id, "Wrong count", admin)

        closed = shift_service.close_shift(shift.id, {beer_a.id: 22}, 10000, employee)

        assert closed.total_revenue_cents == 10000
        assert closed.difference_cents == 0
        assert len(closed.inventory(SNAPSHOT_FINAL)) == 1
        assert [i.quantity for i in closed.items] == [2]
        assert stock_of(beer_a.id) == 22
        assert len(closed.audit_entries) == 1

    def test_reopen_removes_stock_created_by_close(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        wine = products_service.create_product("Wine", 3000, 8000)
        shift_service.close_shift(shift.id, {beer_a.id: 24, wine.id: 6}, 0, employee)
        assert stock_of(wine.id) == 6

        shift_service.reopen_shift(shift.id, "Wine miscounted", admin)

        assert stock_of(wine.id) is None

    def test_employee_cannot_reopen(self, admin, employee, beer_a):
        shift = self._closed_shift(admin, employee, beer_a)
        with pytest.raises(PermissionDenied):
            shift_service.reopen_shift(shift.id, "please", employee)
        assert shift_service.get_shift(shift.id).status == SHIFT_CLOSED

    def test_blank_reason_rejected(self, admin, employee, beer_a):
        shift = self._closed_shift(admin, employee, beer_a)
        with pytest.raises(ValidationError):
            shift_service.reopen_shift(shift.id, "   ", admin)

    def test_open_shift_cannot_be_reopened(self, admin, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 1})
        with pytest.raises(ConflictError):
            shift_service.reopen_shift(shift.id, "why", admin)

    def test_reopen_conflicts_with_another_open_shift(self, admin, employee, beer_a):
        first = self._closed_shift(admin, employee, beer_a)
        shift_service.open_shift(admin, {beer_a.id: 20})

        with pytest.raises(ConflictError):
            shift_service.reopen_shift(first.id, "late fix", admin)
        assert shift_service.get_shift(first.id).status == SHIFT_CLOSED


class TestDeleteShift:
    def test_delete_leaves_ledger_and_stock(self, admin, employee, beer_a, customer):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 5000, employee)
        shift_id = shift.id

        result = shift_service.delete_shift(shift_id, admin)

        assert result == {"deleted": shift_id, "credit_transactions_in_window": 1}
        assert db.session.get(ShiftSession, shift_id) is None
        assert len(credit_service.customer_history(customer.id)) == 1
        assert credit_service.get_customer(customer.id).current_used_cents == 15000
        assert stock_of(beer_a.id) == 20

    def test_delete_open_shift_allows_new_open(self, admin, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 5})
        shift_service.delete_shift(shift.id, admin)

        assert shift_service.get_active_shift() is None
        assert shift_service.open_shift(admin, {beer_a.id: 5}).status == SHIFT_OPEN

    def test_delete_detaches_recorded_sales(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 5})
        sale = sales_service.record_sale(
            employee, "CASH",
            [{"product_id": beer_a.id, "quantity": 1, "unit_price_cents": 5000}],
            shift_id=shift.id,
        )

        shift_service.delete_shift(shift.id, admin)

        db.session.expire_all()
        assert db.session.get(Sale, sale.id).shift_id is None

    def test_employee_cannot_delete(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 5})
        with pytest.raises(PermissionDenied):
            shift_service.delete_shift(shift.id, employee)

    def test_delete_unknown_shift(self, admin):
        with pytest.raises(NotFoundError):
            shift_service.delete_shift(4242, admin)


class TestQueries:
    def test_list_newest_first(self, admin, employee, beer_a):
        first = shift_service.open_shift(admin, {beer_a.id: 5})
        shift_service.close_shift(first.id, {beer_a.id: 5}, 0, employee)
        second = shift_service.open_shift(admin, {beer_a.id: 5})

        assert [s.id for s in shift_service.list_shifts()] == [second.id, first.id]

    def test_no_active_shift(self, db_session):
        assert shift_service.get_active_shift() is None
