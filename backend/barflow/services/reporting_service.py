"""
Reporting / History Projection

Read-only views over closed shifts and the credit ledger, plus the
export-then-purge housekeeping flow.

Every per-user view takes an explicit ViewerContext; nothing here reads
the requesting user from request globals.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import desc, func

from ..extensions import db
from ..models import (
    CreditCustomer,
    CreditTransaction,
    Sale,
    SaleItem,
    ShiftAuditEntry,
    ShiftInventorySnapshot,
    ShiftItem,
    ShiftSession,
    User,
)
from ..models.auth import ROLE_ADMIN
from ..models.credit import TX_DEBT
from ..models.shifts import SHIFT_CLOSED, SHIFT_OPEN
from ..validation import ConflictError, PermissionDenied
from barflow.time_utils import days_ago, utcnow, to_utc_z
from . import settings_service, shift_service
from .concurrency import run_atomic


@dataclass(frozen=True)
class ViewerContext:
    """Who is asking. Passed into every per-user reporting call."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user: User) -> "ViewerContext":
        return cls(user_id=user.id, role=user.role)


@dataclass(frozen=True)
class TopProduct:
    name: str
    quantity: int
    revenue_cents: int

    def to_dict(self) -> dict:
        return {"name": self.name, "quantity": self.quantity, "revenue_cents": self.revenue_cents}


@dataclass(frozen=True)
class SalesAggregates:
    """Closed-shift totals over a trailing window; input to the advisory layer."""
    window_days: int
    shift_count: int = 0
    total_revenue_cents: int = 0
    total_profit_cents: int = 0
    total_difference_cents: int = 0
    outstanding_credit_cents: int = 0
    top_products: list[TopProduct] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "window_days": self.window_days,
            "shift_count": self.shift_count,
            "total_revenue_cents": self.total_revenue_cents,
            "total_profit_cents": self.total_profit_cents,
            "total_difference_cents": self.total_difference_cents,
            "outstanding_credit_cents": self.outstanding_credit_cents,
            "top_products": [p.to_dict() for p in self.top_products],
        }


def shift_history(viewer: ViewerContext, closed_by_user_id: int | None = None) -> list[ShiftSession]:
    """
    Shifts visible to the viewer, newest first.

    Employees see only shifts they closed. Admins see everything and may
    filter by the user who closed the shift.
    """
    query = db.session.query(ShiftSession)
    if not viewer.is_admin:
        query = query.filter(ShiftSession.closed_by_user_id == viewer.user_id)
    elif closed_by_user_id is not None:
        query = query.filter(ShiftSession.closed_by_user_id == closed_by_user_id)
    return query.order_by(ShiftSession.opened_at.desc(), ShiftSession.id.desc()).all()


def shift_detail(viewer: ViewerContext, shift_id: int) -> dict:
    """Shift with its report plus a summary of itemized sales recorded against it."""
    shift = shift_service.get_shift(shift_id)
    if not viewer.is_admin and shift.closed_by_user_id != viewer.user_id:
        raise PermissionDenied("You can only view shifts you closed")
    count, total = db.session.query(
        func.count(Sale.id), func.coalesce(func.sum(Sale.total_cents), 0)
    ).filter(Sale.shift_id == shift.id).one()

    result = shift.to_dict()
    result["recorded_sales"] = {"count": int(count), "total_cents": int(total)}
    return result


def sales_aggregates(window_days: int) -> SalesAggregates:
    since = days_ago(window_days)
    closed = db.session.query(ShiftSession).filter(
        ShiftSession.status == SHIFT_CLOSED,
        ShiftSession.closed_at >= since,
    )
    shift_count = closed.count()

    revenue, profit, difference = db.session.query(
        func.coalesce(func.sum(ShiftSession.total_revenue_cents), 0),
        func.coalesce(func.sum(ShiftSession.total_profit_cents), 0),
        func.coalesce(func.sum(ShiftSession.difference_cents), 0),
    ).filter(
        ShiftSession.status == SHIFT_CLOSED,
        ShiftSession.closed_at >= since,
    ).one()

    revenue_sum = func.sum(ShiftItem.revenue_cents)
    rows = db.session.query(
        ShiftItem.product_name,
        func.sum(ShiftItem.quantity),
        revenue_sum,
    ).join(ShiftSession, ShiftItem.shift_id == ShiftSession.id).filter(
        ShiftSession.status == SHIFT_CLOSED,
        ShiftSession.closed_at >= since,
    ).group_by(ShiftItem.product_id, ShiftItem.product_name).order_by(desc(revenue_sum)).limit(5).all()

    outstanding = db.session.query(
        func.coalesce(func.sum(CreditCustomer.current_used_cents), 0)
    ).scalar()

    return SalesAggregates(
        window_days=window_days,
        shift_count=shift_count,
        total_revenue_cents=int(revenue),
        total_profit_cents=int(profit),
        total_difference_cents=int(difference),
        outstanding_credit_cents=int(outstanding or 0),
        top_products=[TopProduct(name=r[0], quantity=int(r[1]), revenue_cents=int(r[2])) for r in rows],
    )


def export_history() -> dict:
    """JSON-ready dump of every shift and ledger entry."""
    cfg = settings_service.get_config()
    shifts = db.session.query(ShiftSession).order_by(ShiftSession.opened_at.desc(), ShiftSession.id.desc()).all()
    txns = db.session.query(CreditTransaction).order_by(CreditTransaction.occurred_at, CreditTransaction.id).all()
    return {
        "bar_name": cfg.bar_name,
        "exported_at": to_utc_z(utcnow()),
        "shifts": [s.to_dict() for s in shifts],
        "credit_transactions": [t.to_dict() for t in txns],
    }


CARRY_FORWARD_NOTE = "Balance carried forward from purged history"


def purge_history(actor: User) -> dict:
    """
    Delete historical data after an export.

    Removes every shift (with snapshots, items and audit log), every
    itemized sale and every credit transaction. Balances are left alone:
    each customer who still owes gets one DEBT entry carrying the balance
    forward, so folding the new ledger gives back current_used_cents.

    Raises:
        PermissionDenied: actor is not an admin
        ConflictError: a shift is still open
    """
    if not actor.is_admin:
        raise PermissionDenied("Only administrators can purge history")
    # get_config may commit when it creates the row
    settings_service.get_config()

    def _op():
        if db.session.query(ShiftSession).filter_by(status=SHIFT_OPEN).first():
            raise ConflictError("Close the open shift before purging history")

        counts = {
            "shifts": db.session.query(ShiftSession).count(),
            "credit_transactions": db.session.query(CreditTransaction).count(),
            "sales": db.session.query(Sale).count(),
        }
        db.session.query(SaleItem).delete(synchronize_session=False)
        db.session.query(Sale).delete(synchronize_session=False)
        db.session.query(ShiftAuditEntry).delete(synchronize_session=False)
        db.session.query(ShiftItem).delete(synchronize_session=False)
        db.session.query(ShiftInventorySnapshot).delete(synchronize_session=False)
        db.session.query(ShiftSession).delete(synchronize_session=False)
        db.session.query(CreditTransaction).delete(synchronize_session=False)

        now = utcnow()
        owing = db.session.query(CreditCustomer).filter(CreditCustomer.current_used_cents > 0).all()
        for customer in owing:
            db.session.add(CreditTransaction(
                customer_id=customer.id,
                employee_id=actor.id,
                employee_name=actor.name,
                tx_type=TX_DEBT,
                amount_cents=customer.current_used_cents,
                observation=CARRY_FORWARD_NOTE,
                occurred_at=now,
            ))
        settings_service.mark_exported(commit=False)
        return counts

    counts = run_atomic(_op, conflict_message="History changed while purging")
    db.session.expire_all()
    current_app.logger.warning("History purged by user %s: %s", actor.id, counts)
    return counts
