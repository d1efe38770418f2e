"""
Reporting / history tests.

Viewer scoping, shift detail with recorded sales, export, purge and the
closed-shift aggregates used by the advisory layer.
"""

import pytest

from barflow.extensions import db
from barflow.models import CreditTransaction, Sale, ShiftSession
from barflow.services import credit_service, reporting_service, sales_service, settings_service, shift_service
from barflow.services.reporting_service import ViewerContext
from barflow.validation import ConflictError, LimitExceededError, PermissionDenied


def run_shift(admin, closer, product, start, end, cash=0):
    shift = shift_service.open_shift(admin, {product.id: start})
    return shift_service.close_shift(shift.id, {product.id: end}, cash, closer)


class TestShiftHistory:
    def test_employee_sees_only_own_closes(self, admin, employee, other_employee, beer_a):
        mine = run_shift(admin, employee, beer_a, 10, 8)
        theirs = run_shift(admin, other_employee, beer_a, 8, 5)

        viewer = ViewerContext.from_user(employee)
        assert [s.id for s in reporting_service.shift_history(viewer)] == [mine.id]

        viewer = ViewerContext.from_user(other_employee)
        assert [s.id for s in reporting_service.shift_history(viewer)] == [theirs.id]

    def test_employee_filter_is_ignored(self, admin, employee, other_employee, beer_a):
        mine = run_shift(admin, employee, beer_a, 10, 8)
        run_shift(admin, other_employee, beer_a, 8, 5)

        viewer = ViewerContext.from_user(employee)
        history = reporting_service.shift_history(viewer, closed_by_user_id=other_employee.id)
        assert [s.id for s in history] == [mine.id]

    def test_admin_sees_all_and_can_filter(self, admin, employee, other_employee, beer_a):
        first = run_shift(admin, employee, beer_a, 10, 8)
        second = run_shift(admin, other_employee, beer_a, 8, 5)
        viewer = ViewerContext.from_user(admin)

        assert [s.id for s in reporting_service.shift_history(viewer)] == [second.id, first.id]
        filtered = reporting_service.shift_history(viewer, closed_by_user_id=employee.id)
        assert [s.id for s in filtered] == [first.id]

    def test_open_shift_visible_to_admin_only(self, admin, employee, beer_a):
        shift_service.open_shift(admin, {beer_a.id: 3})
        assert len(reporting_service.shift_history(ViewerContext.from_user(admin))) == 1
        assert reporting_service.shift_history(ViewerContext.from_user(employee)) == []


class TestShiftDetail:
    def test_detail_includes_recorded_sales(self, admin, employee, beer_a):
        shift = shift_service.open_shift(admin, {beer_a.id: 10})
        for qty in (1, 2):
            sales_service.record_sale(
                employee, "CASH",
                [{"product_id": beer_a.id, "quantity": qty, "unit_price_cents": 5000, "cost_price_cents": 2000}],
                shift_id=shift.id,
            )
        shift_service.close_shift(shift.id, {beer_a.id: 7}, 15000, employee)

        detail = reporting_service.shift_detail(ViewerContext.from_user(employee), shift.id)

        assert detail["recorded_sales"] == {"count": 2, "total_cents": 15000}
        # Itemized sales never feed the reconciliation
        assert detail["sales_report"]["total_revenue_cents"] == 15000
        assert detail["sales_report"]["difference_cents"] == 0

    def test_employee_cannot_view_others_shift(self, admin, employee, other_employee, beer_a):
        shift = run_shift(admin, other_employee, beer_a, 5, 4)
        with pytest.raises(PermissionDenied):
            reporting_service.shift_detail(ViewerContext.from_user(employee), shift.id)


class TestExportAndPurge:
    def test_export_contains_shifts_and_ledger(self, admin, employee, beer_a, customer):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 65000, employee)

        export = reporting_service.export_history()

        assert export["bar_name"] == "BarFlow"
        assert export["exported_at"].endswith("Z")
        assert len(export["shifts"]) == 1
        exported = export["shifts"][0]
        assert exported["initial_inventory"][0]["count"] == 24
        assert exported["final_inventory"][0]["count"] == 20
        assert exported["sales_report"]["difference_cents"] == 60000
        assert [t["amount_cents"] for t in export["credit_transactions"]] == [15000]

    def test_purge_refused_while_shift_open(self, admin, beer_a):
        shift_service.open_shift(admin, {beer_a.id: 1})
        with pytest.raises(ConflictError):
            reporting_service.purge_history(admin)
        assert db.session.query(ShiftSession).count() == 1

    def test_purge_requires_admin(self, employee):
        with pytest.raises(PermissionDenied):
            reporting_service.purge_history(employee)

    def test_purge_clears_history_and_carries_balances_forward(self, admin, employee, beer_a, customer):
        shift = shift_service.open_shift(admin, {beer_a.id: 24})
        credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)
        sales_service.record_sale(
            employee, "CASH", [{"product_id": beer_a.id, "quantity": 1, "unit_price_cents": 5000}],
            shift_id=shift.id,
        )
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 65000, employee)
        shift_service.reopen_shift(shift.id, "recount", admin)
        shift_service.close_shift(shift.id, {beer_a.id: 20}, 65000, employee)

        counts = reporting_service.purge_history(admin)

        assert counts == {"shifts": 1, "credit_transactions": 1, "sales": 1}
        assert db.session.query(ShiftSession).count() == 0
        assert db.session.query(Sale).count() == 0
        assert credit_service.get_customer(customer.id).current_used_cents == 15000

        carried = credit_service.customer_history(customer.id)
        assert [(t.tx_type, t.amount_cents, t.observation) for t in carried] == [
            ("DEBT", 15000, reporting_service.CARRY_FORWARD_NOTE)
        ]
        assert credit_service.find_balance_mismatches() == []
        assert settings_service.get_config().last_export_date is not None

        # The limit still counts the carried balance
        with pytest.raises(LimitExceededError):
            credit_service.authorize_debt(customer.id, 100000, "fresh tab", employee)
        credit_service.record_payment(customer.id, 15000, "CASH", employee)
        assert credit_service.get_customer(customer.id).current_used_cents == 0
        assert credit_service.find_balance_mismatches() == []

    def test_purge_skips_customers_without_balance(self, admin, employee, customer):
        credit_service.authorize_debt(customer.id, 5000, "tab", employee)
        credit_service.record_payment(customer.id, 5000, "TRANSFER", employee)

        counts = reporting_service.purge_history(admin)

        assert counts["credit_transactions"] == 2
        assert db.session.query(CreditTransaction).count() == 0
        assert credit_service.get_customer(customer.id).current_used_cents == 0


class TestSalesAggregates:
    def test_top_products_by_revenue(self, admin, employee, beer_a, beer_b):
        shift = shift_service.open_shift(admin, {beer_a.id: 10, beer_b.id: 10})
        shift_service.close_shift(shift.id, {beer_a.id: 9, beer_b.id: 5}, 0, employee)

        aggregates = reporting_service.sales_aggregates(30)

        assert aggregates.shift_count == 1
        assert aggregates.total_revenue_cents == 5000 + 5 * 2000
        assert [p.name for p in aggregates.top_products] == ["BeerB", "BeerA"]
        assert aggregates.top_products[0].quantity == 5

    def test_open_shifts_are_ignored(self, admin, beer_a):
        shift_service.open_shift(admin, {beer_a.id: 10})
        aggregates = reporting_service.sales_aggregates(30)
        assert aggregates.shift_count == 0
        assert aggregates.top_products == []
