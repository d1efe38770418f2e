"""
Reconciliation math tests.

Pure functions, no database: products and credit activity are plain
stand-ins that satisfy the PricedProduct / CreditActivity protocols.
"""

import random
from types import SimpleNamespace

import pytest

from barflow.models.credit import PAYMENT_CARD, PAYMENT_CASH, PAYMENT_TRANSFER, TX_DEBT, TX_PAYMENT
from barflow.services.reconciliation import (
    compute_items_sold,
    compute_sales_report,
    sold_quantity,
    summarize_credit,
)


def product(pid, name, cost, price):
    return SimpleNamespace(id=pid, name=name, cost_price_cents=cost, sale_price_cents=price)


def debt(amount):
    return SimpleNamespace(tx_type=TX_DEBT, amount_cents=amount, payment_method=None)


def payment(amount, method=PAYMENT_CASH):
    return SimpleNamespace(tx_type=TX_PAYMENT, amount_cents=amount, payment_method=method)


class TestSoldQuantity:
    def test_normal_sale(self):
        assert sold_quantity(24, 20) == 4

    def test_restock_clamps_to_zero(self):
        """More stock at close than at open is not a negative sale."""
        assert sold_quantity(5, 12) == 0

    def test_unchanged(self):
        assert sold_quantity(7, 7) == 0


class TestItemsSold:
    def test_only_products_with_sales_are_itemized(self):
        products = [product(1, "BeerA", 500, 1250), product(2, "BeerB", 800, 2000)]
        items = compute_items_sold(products, {1: 24, 2: 10}, {1: 20, 2: 10})

        assert len(items) == 1
        item = items[0]
        assert item.product_name == "BeerA"
        assert item.quantity == 4
        assert item.revenue_cents == 5000
        assert item.cost_cents == 2000
        assert item.profit_cents == 3000

    def test_missing_counts_default_to_zero(self):
        products = [product(1, "BeerA", 500, 1250), product(2, "New", 100, 300)]
        items = compute_items_sold(products, {1: 3}, {2: 4})

        assert [(i.product_id, i.quantity) for i in items] == [(1, 3)]


class TestCreditSummary:
    def test_splits_cash_and_non_cash_payments(self):
        totals = summarize_credit([
            debt(15000),
            payment(4000, PAYMENT_CASH),
            payment(3000, PAYMENT_TRANSFER),
            payment(1000, PAYMENT_CARD),
        ])
        assert totals.credit_sales_cents == 15000
        assert totals.cash_payments_cents == 4000
        assert totals.non_cash_payments_cents == 4000


class TestSalesReport:
    def test_end_to_end_example(self):
        """BeerA 24 -> 20 at 5000/2000, one 15000 debt, 65000 counted."""
        report = compute_sales_report(
            [product(1, "BeerA", 2000, 5000)],
            {1: 24},
            {1: 20},
            [debt(15000)],
            65000,
        )
        assert report.total_revenue_cents == 20000
        assert report.total_cost_cents == 8000
        assert report.total_profit_cents == 12000
        assert report.total_credit_sales_cents == 15000
        assert report.total_cash_payments_cents == 0
        assert report.cash_to_deliver_cents == 5000
        assert report.difference_cents == 60000

    def test_cash_payment_raises_cash_to_deliver(self):
        report = compute_sales_report([], {}, {}, [payment(2500)], 2500)
        assert report.cash_to_deliver_cents == 2500
        assert report.difference_cents == 0

    def test_non_cash_payment_does_not_touch_cash(self):
        report = compute_sales_report([], {}, {}, [payment(2500, PAYMENT_TRANSFER)], 0)
        assert report.total_non_cash_payments_cents == 2500
        assert report.cash_to_deliver_cents == 0

    @pytest.mark.parametrize("seed", range(5))
    def test_cash_identity_holds_exactly(self, seed):
        rng = random.Random(seed)
        products = [product(i, f"P{i}", rng.randint(0, 5000), rng.randint(0, 9000)) for i in range(1, 8)]
        initial = {p.id: rng.randint(0, 50) for p in products}
        final = {p.id: rng.randint(0, 50) for p in products}
        activity = [
            debt(rng.randint(1, 20000)) if rng.random() < 0.5
            else payment(rng.randint(1, 20000), rng.choice([PAYMENT_CASH, PAYMENT_TRANSFER, PAYMENT_CARD]))
            for _ in range(12)
        ]
        real_cash = rng.randint(0, 500000)

        report = compute_sales_report(products, initial, final, activity, real_cash)

        assert report.total_revenue_cents == sum(i.revenue_cents for i in report.items_sold)
        assert report.cash_to_deliver_cents == (
            report.total_revenue_cents - report.total_credit_sales_cents + report.total_cash_payments_cents
        )
        assert report.difference_cents == real_cash - report.cash_to_deliver_cents
        assert all(i.quantity > 0 for i in report.items_sold)
