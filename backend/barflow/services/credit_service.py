"""
Credit Ledger ("fiao") Service

WHY: Trusted customers take goods against a running balance. The ledger
is append-only; current_used_cents is a denormalized balance kept in the
same transaction as every ledger insert.

INVARIANTS:
- 0 <= current_used_cents <= max_limit_cents after every debt
- A debt is rejected exactly when amount > max_limit - current_used
- A payment floors the balance at zero (overpayment is accepted)
- Only authorize_debt and record_payment write current_used_cents

CONCURRENCY: the customer row is locked (SELECT ... FOR UPDATE) and
version-checked, so two concurrent debts cannot both pass the limit check
against a stale balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import CreditCustomer, CreditTransaction, User
from ..models.credit import TX_DEBT, TX_PAYMENT, PAYMENT_METHODS
from ..validation import (
    LimitExceededError,
    NotFoundError,
    ValidationError,
    optional_text,
    require_amount,
    require_text,
)
from barflow.time_utils import utcnow
from .concurrency import lock_for_update, run_atomic

STATUS_NORMAL = "NORMAL"
STATUS_WARNING = "WARNING"
STATUS_CRITICAL = "CRITICAL"

WARNING_PERCENT = 60
CRITICAL_PERCENT = 90


@dataclass(frozen=True)
class CreditStatus:
    percentage: float
    level: str

    @property
    def blocked(self) -> bool:
        # Presentation layers must refuse new debt in this state; the
        # server-side limit check in authorize_debt still applies.
        return self.level == STATUS_CRITICAL

    def to_dict(self) -> dict:
        return {
            "percentage": round(self.percentage, 2),
            "level": self.level,
            "blocked": self.blocked,
        }


def credit_status(current_used_cents: int, max_limit_cents: int) -> CreditStatus:
    """
    Classify usage of a credit line.

    NORMAL (< 60%), WARNING (60-89%), CRITICAL (>= 90%). A zero limit
    counts as fully used.
    """
    if max_limit_cents <= 0:
        return CreditStatus(percentage=100.0, level=STATUS_CRITICAL)

    percentage = current_used_cents / max_limit_cents * 100
    if percentage >= CRITICAL_PERCENT:
        level = STATUS_CRITICAL
    elif percentage >= WARNING_PERCENT:
        level = STATUS_WARNING
    else:
        level = STATUS_NORMAL
    return CreditStatus(percentage=percentage, level=level)


# =============================================================================
# CUSTOMERS
# =============================================================================

def _customer_fields(data: dict, *, partial: bool) -> dict:
    fields = {}
    if not partial or "name" in data:
        fields["name"] = require_text("name", data.get("name"), max_length=128)
    if not partial or "max_limit_cents" in data:
        fields["max_limit_cents"] = require_amount("max_limit_cents", data.get("max_limit_cents"), allow_zero=True)
    for key, max_length in (("document_id", 32), ("phone", 32), ("observations", None)):
        if key in data:
            fields[key] = optional_text(data.get(key), max_length=max_length)
    if "is_active" in data:
        if not isinstance(data["is_active"], bool):
            raise ValidationError("is_active must be a boolean")
        fields["is_active"] = data["is_active"]
    if "current_used_cents" in data:
        raise ValidationError("current_used_cents changes only through debts and payments")
    return fields


def create_customer(data: dict) -> CreditCustomer:
    customer = CreditCustomer(current_used_cents=0, **_customer_fields(data, partial=False))
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, data: dict) -> CreditCustomer:
    """
    Edit customer details and credit ceiling.

    The ceiling cannot drop below the current balance.
    """
    fields = _customer_fields(data, partial=True)

    def _op():
        customer = _lock_customer(customer_id)
        new_limit = fields.get("max_limit_cents", customer.max_limit_cents)
        if new_limit < customer.current_used_cents:
            raise ValidationError(
                f"max_limit_cents cannot be below the current balance of {customer.current_used_cents}"
            )
        for key, value in fields.items():
            setattr(customer, key, value)
        return customer

    return run_atomic(_op, conflict_message="Customer changed concurrently, retry")


def get_customer(customer_id: int) -> CreditCustomer:
    customer = db.session.get(CreditCustomer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def list_customers() -> list[CreditCustomer]:
    return db.session.query(CreditCustomer).order_by(CreditCustomer.created_at.desc(), CreditCustomer.id.desc()).all()


def _lock_customer(customer_id: int) -> CreditCustomer:
    customer = lock_for_update(db.session.query(CreditCustomer).filter_by(id=customer_id)).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


# =============================================================================
# LEDGER OPERATIONS
# =============================================================================

def authorize_debt(customer_id: int, amount_cents, observation: str, employee: User) -> CreditTransaction:
    """
    Give goods on credit.

    Raises:
        ValidationError: amount <= 0 or blank observation
        NotFoundError: no such customer
        ValidationError: customer inactive
        LimitExceededError: amount > available (message carries the available amount)
    """
    amount = require_amount("amount_cents", amount_cents)
    note = require_text("observation", observation)

    def _op():
        customer = _lock_customer(customer_id)
        if not customer.is_active:
            raise ValidationError("Customer is not active")

        available = customer.max_limit_cents - customer.current_used_cents
        if amount > available:
            raise LimitExceededError(max(0, available))

        tx = CreditTransaction(
            customer_id=customer.id,
            employee_id=employee.id,
            employee_name=employee.name,
            tx_type=TX_DEBT,
            amount_cents=amount,
            observation=note,
            occurred_at=utcnow(),
        )
        db.session.add(tx)
        customer.current_used_cents = customer.current_used_cents + amount
        db.session.flush()
        return tx

    tx = run_atomic(_op, conflict_message="Customer balance changed concurrently, retry")
    current_app.logger.info(
        "Debt %s recorded for customer %s by user %s: %s", tx.id, customer_id, employee.id, amount
    )
    return tx


def record_payment(
    customer_id: int,
    amount_cents,
    payment_method: str,
    employee: User,
    observation: str | None = None,
) -> CreditTransaction:
    """
    Receive money against a customer's balance.

    The balance is floored at zero: overpaying simply clears it. Cash
    payments count toward the cash to deliver of the shift whose window
    contains them.
    """
    amount = require_amount("amount_cents", amount_cents)
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    note = optional_text(observation)

    def _op():
        customer = _lock_customer(customer_id)
        tx = CreditTransaction(
            customer_id=customer.id,
            employee_id=employee.id,
            employee_name=employee.name,
            tx_type=TX_PAYMENT,
            amount_cents=amount,
            payment_method=payment_method,
            observation=note,
            occurred_at=utcnow(),
        )
        db.session.add(tx)
        customer.current_used_cents = max(0, customer.current_used_cents - amount)
        db.session.flush()
        return tx

    tx = run_atomic(_op, conflict_message="Customer balance changed concurrently, retry")
    current_app.logger.info(
        "Payment %s (%s) recorded for customer %s by user %s: %s",
        tx.id, payment_method, customer_id, employee.id, amount,
    )
    return tx


# =============================================================================
# READS
# =============================================================================

def customer_history(customer_id: int) -> list[CreditTransaction]:
    """Ledger of one customer, newest first."""
    get_customer(customer_id)
    return db.session.query(CreditTransaction).filter_by(customer_id=customer_id).order_by(
        CreditTransaction.occurred_at.desc(), CreditTransaction.id.desc()
    ).all()


def transactions_in_range(start: datetime, end: datetime) -> list[CreditTransaction]:
    """Ledger entries with start <= occurred_at <= end, newest first."""
    if end < start:
        raise ValidationError("end must not be before start")
    return db.session.query(CreditTransaction).filter(
        CreditTransaction.occurred_at >= start,
        CreditTransaction.occurred_at <= end,
    ).order_by(CreditTransaction.occurred_at.desc(), CreditTransaction.id.desc()).all()


def ledger_balance(customer_id: int) -> int:
    """
    Recompute a customer's balance by folding the ledger in order.

    Uses the same floor-at-zero rule as record_payment, so it must equal
    current_used_cents whenever the denormalized counter is consistent.
    """
    balance = 0
    txns = db.session.query(CreditTransaction).filter_by(customer_id=customer_id).order_by(
        CreditTransaction.occurred_at, CreditTransaction.id
    ).all()
    for tx in txns:
        if tx.tx_type == TX_DEBT:
            balance += tx.amount_cents
        else:
            balance = max(0, balance - tx.amount_cents)
    return balance


def find_balance_mismatches() -> list[dict]:
    mismatches = []
    for customer in list_customers():
        folded = ledger_balance(customer.id)
        if folded != customer.current_used_cents:
            mismatches.append({
                "customer_id": customer.id,
                "name": customer.name,
                "current_used_cents": customer.current_used_cents,
                "ledger_balance_cents": folded,
            })
    return mismatches
