"""
Shift reconciliation math.

Pure functions: no database access, no clock. shift_service gathers the
inputs inside its transaction and persists the resulting SalesReport.

CASH IDENTITY:
    cash_to_deliver = revenue - credit_sales + cash_payments
    difference      = real_cash - cash_to_deliver

All amounts are integers in minor units, so the identity holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Protocol

from ..models.credit import PAYMENT_CASH, TX_DEBT, TX_PAYMENT


class PricedProduct(Protocol):
    id: int
    name: str
    cost_price_cents: int
    sale_price_cents: int


class CreditActivity(Protocol):
    tx_type: str
    amount_cents: int
    payment_method: str | None


@dataclass(frozen=True)
class SoldItem:
    product_id: int
    product_name: str
    quantity: int
    revenue_cents: int
    cost_cents: int

    @property
    def profit_cents(self) -> int:
        return self.revenue_cents - self.cost_cents


@dataclass(frozen=True)
class CreditTotals:
    credit_sales_cents: int = 0
    cash_payments_cents: int = 0
    non_cash_payments_cents: int = 0


@dataclass(frozen=True)
class SalesReport:
    total_revenue_cents: int
    total_cost_cents: int
    total_credit_sales_cents: int
    total_cash_payments_cents: int
    total_non_cash_payments_cents: int
    real_cash_cents: int
    items_sold: list[SoldItem] = field(default_factory=list)

    @property
    def total_profit_cents(self) -> int:
        return self.total_revenue_cents - self.total_cost_cents

    @property
    def cash_to_deliver_cents(self) -> int:
        return self.total_revenue_cents - self.total_credit_sales_cents + self.total_cash_payments_cents

    @property
    def difference_cents(self) -> int:
        # Positive = surplus, negative = shortage. Never auto-corrected.
        return self.real_cash_cents - self.cash_to_deliver_cents


def sold_quantity(start_count: int, end_count: int) -> int:
    """
    Units sold between two counts.

    More stock at close than at open (a mid-shift restock or a miscount)
    clamps to zero. The two cases are indistinguishable here.
    """
    return max(0, start_count - end_count)


def compute_items_sold(
    products: Iterable[PricedProduct],
    initial_counts: Mapping[int, int],
    final_counts: Mapping[int, int],
) -> list[SoldItem]:
    """Itemized sales for every product with sold > 0, priced at current catalog prices."""
    items = []
    for product in products:
        sold = sold_quantity(initial_counts.get(product.id, 0), final_counts.get(product.id, 0))
        if sold <= 0:
            continue
        items.append(SoldItem(
            product_id=product.id,
            product_name=product.name,
            quantity=sold,
            revenue_cents=sold * product.sale_price_cents,
            cost_cents=sold * product.cost_price_cents,
        ))
    return items


def summarize_credit(transactions: Iterable[CreditActivity]) -> CreditTotals:
    credit_sales = 0
    cash_payments = 0
    non_cash_payments = 0
    for tx in transactions:
        if tx.tx_type == TX_DEBT:
            credit_sales += tx.amount_cents
        elif tx.tx_type == TX_PAYMENT:
            if tx.payment_method == PAYMENT_CASH:
                cash_payments += tx.amount_cents
            else:
                non_cash_payments += tx.amount_cents
    return CreditTotals(
        credit_sales_cents=credit_sales,
        cash_payments_cents=cash_payments,
        non_cash_payments_cents=non_cash_payments,
    )


def compute_sales_report(
    products: Iterable[PricedProduct],
    initial_counts: Mapping[int, int],
    final_counts: Mapping[int, int],
    credit_activity: Iterable[CreditActivity],
    real_cash_cents: int,
) -> SalesReport:
    items = compute_items_sold(products, initial_counts, final_counts)
    credit = summarize_credit(credit_activity)
    return SalesReport(
        total_revenue_cents=sum(i.revenue_cents for i in items),
        total_cost_cents=sum(i.cost_cents for i in items),
        total_credit_sales_cents=credit.credit_sales_cents,
        total_cash_payments_cents=credit.cash_payments_cents,
        total_non_cash_payments_cents=credit.non_cash_payments_cents,
        real_cash_cents=real_cash_cents,
        items_sold=items,
    )
