"""
Shift Reconciliation Service

WHY: A shift is the unit of cash accountability in the bar. Stock is
counted at open and at close; the difference, priced at catalog prices and
adjusted for credit activity, tells the closing employee how much cash
must be delivered.

DESIGN PRINCIPLES:
- One OPEN shift system-wide (partial unique index + pre-check)
- Every operation is a single transaction; failures roll back completely
- Closed shifts change only through an audited, admin-only reopen
- The difference between real and expected cash is reported, never absorbed

STATE MACHINE:
    OPEN --close--> CLOSED
    CLOSED --reopen(reason)--> OPEN
    {OPEN, CLOSED} --delete--> (removed)
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ShiftSession, ShiftInventorySnapshot, ShiftItem, ShiftAuditEntry, Sale, User
from ..models.shifts import SHIFT_OPEN, SHIFT_CLOSED, SNAPSHOT_INITIAL, SNAPSHOT_FINAL
from ..validation import ConflictError, NotFoundError, PermissionDenied, ValidationError, check_counts, require_amount, require_text, optional_text
from barflow.time_utils import utcnow
from . import products_service, credit_service
from .concurrency import lock_for_update, run_atomic
from .reconciliation import compute_sales_report

AUDIT_REOPEN = "REOPEN"


def _require_admin(user: User, action: str) -> None:
    if not user.is_admin:
        raise PermissionDenied(f"Only administrators can {action}")


def _lock_shift(session_id: int) -> ShiftSession:
    shift = lock_for_update(db.session.query(ShiftSession).filter_by(id=session_id)).first()
    if not shift:
        raise NotFoundError("Shift not found")
    return shift


def _ensure_no_open_shift(exclude_id: int | None = None) -> None:
    query = db.session.query(ShiftSession).filter_by(status=SHIFT_OPEN)
    if exclude_id is not None:
        query = query.filter(ShiftSession.id != exclude_id)
    existing = query.first()
    if existing:
        raise ConflictError(f"A shift is already open (shift {existing.id})")


def _drop_unknown(counts: dict[int, int], known_ids: set[int], stage: str) -> None:
    dropped = sorted(pid for pid in counts if pid not in known_ids)
    if dropped:
        current_app.logger.warning(
            "Dropping %s counts for unknown or inactive products: %s", stage, dropped
        )


# =============================================================================
# QUERIES
# =============================================================================

def get_shift(session_id: int) -> ShiftSession:
    shift = db.session.get(ShiftSession, session_id)
    if not shift:
        raise NotFoundError("Shift not found")
    return shift


def get_active_shift() -> ShiftSession | None:
    """The currently open shift, if any."""
    return db.session.query(ShiftSession).filter_by(status=SHIFT_OPEN).first()


def list_shifts() -> list[ShiftSession]:
    """All shifts, newest first."""
    return db.session.query(ShiftSession).order_by(
        ShiftSession.opened_at.desc(), ShiftSession.id.desc()
    ).all()


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_shift(initiator: User, initial_counts: dict[int, int]) -> ShiftSession:
    """
    Open a new shift with a counted initial inventory.

    The snapshot covers every currently active product; omitted products
    get a zero count and entries for unknown or inactive products are
    dropped. Counted quantities also become the running stock projection.

    Raises:
        PermissionDenied: initiator is not an admin
        ConflictError: another shift is open
        ValidationError: a count is negative or not an integer
        ValidationError: there are no active products to count
    """
    _require_admin(initiator, "open a shift")
    initial_counts = check_counts(initial_counts)

    def _op():
        _ensure_no_open_shift()

        products = products_service.get_active_products()
        if not products:
            raise ValidationError("Cannot open a shift without active products")
        _drop_unknown(initial_counts, {p.id for p in products}, "initial")

        now = utcnow()
        shift = ShiftSession(
            opened_by_user_id=initiator.id,
            status=SHIFT_OPEN,
            opened_at=now,
        )
        db.session.add(shift)

        for product in products:
            count = initial_counts.get(product.id, 0)
            shift.snapshots.append(ShiftInventorySnapshot(
                product_id=product.id,
                product_name=product.name,
                quantity=count,
                snapshot_type=SNAPSHOT_INITIAL,
            ))
            products_service.write_stock(product.id, count, at=now)

        # Unique index on OPEN rows rejects a concurrent open here
        db.session.flush()
        return shift

    shift = run_atomic(_op, conflict_message="A shift is already open")
    current_app.logger.info("Shift %s opened by user %s", shift.id, initiator.id)
    return shift


def close_shift(
    session_id: int,
    final_counts: dict[int, int],
    real_cash_cents,
    actor: User,
    closing_observation: str | None = None,
) -> ShiftSession:
    """
    Close an open shift and compute its sales report.

    For every catalog product: sold = max(0, initial - final), priced at
    the current catalog price. Credit transactions within
    [opened_at, close time] adjust the cash to deliver:

        cash_to_deliver = revenue - credit_sales + cash_payments
        difference      = real_cash - cash_to_deliver

    Final counts are written to the stock projection in the same
    transaction as the report.

    Raises:
        ValidationError: real cash missing or negative, or a negative count
            (both checked before any write)
        NotFoundError: no such shift
        ConflictError: shift already closed (including a concurrent double close)
    """
    if real_cash_cents is None:
        raise ValidationError("real_cash_cents is required to close a shift")
    real_cash = require_amount("real_cash_cents", real_cash_cents, allow_zero=True)
    observation = optional_text(closing_observation)
    final_counts = check_counts(final_counts)

    def _op():
        shift = _lock_shift(session_id)
        if shift.status != SHIFT_OPEN:
            raise ConflictError("Shift already closed")

        close_ts = utcnow()
        products = products_service.get_all_products()
        known = {p.id: p for p in products}
        _drop_unknown(final_counts, set(known), "final")

        initial = {s.product_id: s.quantity for s in shift.inventory(SNAPSHOT_INITIAL)}
        active_ids = {p.id for p in products if p.is_active}
        counted_ids = sorted((active_ids | set(initial)) & set(known))
        final = {pid: final_counts.get(pid, 0) for pid in counted_ids}

        credit_activity = credit_service.transactions_in_range(shift.opened_at, close_ts)
        report = compute_sales_report(products, initial, final, credit_activity, real_cash)

        # Replace anything left over from a superseded close
        for snap in shift.inventory(SNAPSHOT_FINAL):
            shift.snapshots.remove(snap)
        shift.items.clear()
        db.session.flush()

        stock_before = products_service.get_stock_levels()
        for pid in counted_ids:
            shift.snapshots.append(ShiftInventorySnapshot(
                product_id=pid,
                product_name=known[pid].name,
                quantity=final[pid],
                snapshot_type=SNAPSHOT_FINAL,
                stock_before=stock_before.get(pid),
            ))
            products_service.write_stock(pid, final[pid], at=close_ts)

        for item in report.items_sold:
            shift.items.append(ShiftItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                revenue_cents=item.revenue_cents,
                cost_cents=item.cost_cents,
                profit_cents=item.profit_cents,
            ))

        shift.total_revenue_cents = report.total_revenue_cents
        shift.total_cost_cents = report.total_cost_cents
        shift.total_profit_cents = report.total_profit_cents
        shift.total_credit_sales_cents = report.total_credit_sales_cents
        shift.total_cash_payments_cents = report.total_cash_payments_cents
        shift.total_non_cash_payments_cents = report.total_non_cash_payments_cents
        shift.cash_to_deliver_cents = report.cash_to_deliver_cents
        shift.difference_cents = report.difference_cents
        shift.real_cash_cents = real_cash
        shift.closing_observation = observation
        shift.closed_by_user_id = actor.id
        shift.closed_at = close_ts
        shift.status = SHIFT_CLOSED

        db.session.flush()
        return shift

    shift = run_atomic(_op, conflict_message="Shift already closed")
    current_app.logger.info(
        "Shift %s closed by user %s: expected=%s real=%s difference=%s",
        shift.id, actor.id, shift.cash_to_deliver_cents, shift.real_cash_cents, shift.difference_cents,
    )
    return shift


def reopen_shift(session_id: int, reason: str, actor: User) -> ShiftSession:
    """
    Return a closed shift to OPEN so a miscount or missing entry can be fixed.

    The stock projection goes back to the initial counts, the itemized
    breakdown is deleted and closed_by/closed_at are cleared. Report totals
    and final counts stay as the superseded close until the next close.
    An audit entry records who reopened it and why.

    Raises:
        PermissionDenied: actor is not an admin
        ValidationError: blank reason
        NotFoundError: no such shift
        ConflictError: shift is not closed, or another shift is open
    """
    _require_admin(actor, "reopen a shift")
    reason_text = require_text("reason", reason)

    def _op():
        shift = _lock_shift(session_id)
        if shift.status != SHIFT_CLOSED:
            raise ConflictError("Only closed shifts can be reopened")
        _ensure_no_open_shift(exclude_id=shift.id)

        now = utcnow()
        initial = shift.inventory(SNAPSHOT_INITIAL)
        initial_ids = {s.product_id for s in initial}

        for snap in shift.inventory(SNAPSHOT_FINAL):
            if snap.product_id in initial_ids:
                continue
            if snap.stock_before is None:
                products_service.remove_stock(snap.product_id)
            else:
                products_service.write_stock(snap.product_id, snap.stock_before, at=now)
        for snap in initial:
            products_service.write_stock(snap.product_id, snap.quantity, at=now)

        shift.items.clear()
        shift.status = SHIFT_OPEN
        shift.closed_by_user_id = None
        shift.closed_at = None
        shift.audit_entries.append(ShiftAuditEntry(
            user_id=actor.id,
            user_name=actor.name,
            action=AUDIT_REOPEN,
            reason=reason_text,
            occurred_at=now,
        ))

        db.session.flush()
        return shift

    shift = run_atomic(_op, conflict_message="Another shift is already open")
    current_app.logger.info("Shift %s reopened by user %s: %s", shift.id, actor.id, reason_text)
    return shift


def delete_shift(session_id: int, actor: User) -> dict:
    """
    Irreversibly remove a shift and its snapshots, items and audit log.

    Data-cleanup tool, not a reversal: the credit ledger and the stock
    projection are left untouched. The number of credit transactions in the
    shift's window is returned so callers can see what stays behind.
    """
    _require_admin(actor, "delete a shift")

    def _op():
        shift = _lock_shift(session_id)
        window_end = shift.closed_at or utcnow()
        in_window = len(credit_service.transactions_in_range(shift.opened_at, window_end))

        db.session.query(Sale).filter_by(shift_id=shift.id).update(
            {"shift_id": None}, synchronize_session=False
        )
        db.session.delete(shift)
        db.session.flush()
        return in_window

    in_window = run_atomic(_op, conflict_message="Shift changed while deleting")
    if in_window:
        current_app.logger.warning(
            "Shift %s deleted by user %s; %s credit transactions in its window remain in the ledger",
            session_id, actor.id, in_window,
        )
    else:
        current_app.logger.info("Shift %s deleted by user %s", session_id, actor.id)

    return {"deleted": session_id, "credit_transactions_in_window": in_window}
