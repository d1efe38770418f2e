from __future__ import annotations

from ..extensions import db
from barflow.time_utils import to_utc_z

SHIFT_OPEN = "OPEN"
SHIFT_CLOSED = "CLOSED"

SNAPSHOT_INITIAL = "INITIAL"
SNAPSHOT_FINAL = "FINAL"


class ShiftSession(db.Model):
    """
    A bar shift: the unit of financial reconciliation.

    LIFECYCLE:
    - OPEN: initial inventory counted, credit activity accepted
    - CLOSED: final inventory counted, report computed, cash variance recorded
    - CLOSED -> OPEN only through an audited reopen (admin-only)

    SINGLE ACTIVE SHIFT: the partial unique index below allows at most one
    row with status = 'OPEN'. The database enforces it, not just the service.

    Report totals are stored inline. After a reopen they are kept as the
    superseded close until the next close overwrites them.
    """
    __tablename__ = "shift_sessions"
    __table_args__ = (
        db.Index(
            "uq_shift_sessions_single_open",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'OPEN'"),
            postgresql_where=db.text("status = 'OPEN'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN)  # OPEN, CLOSED

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Physically counted cash and free-text notes from the closing employee
    real_cash_cents = db.Column(db.Integer, nullable=True)
    closing_observation = db.Column(db.Text, nullable=True)

    # Sales report (all amounts in minor units)
    total_revenue_cents = db.Column(db.Integer, nullable=True)
    total_cost_cents = db.Column(db.Integer, nullable=True)
    total_profit_cents = db.Column(db.Integer, nullable=True)
    total_credit_sales_cents = db.Column(db.Integer, nullable=True)
    total_cash_payments_cents = db.Column(db.Integer, nullable=True)
    total_non_cash_payments_cents = db.Column(db.Integer, nullable=True)
    cash_to_deliver_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)  # real - expected

    version_id = db.Column(db.Integer, nullable=False, default=1)

    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])

    snapshots = db.relationship(
        "ShiftInventorySnapshot",
        back_populates="shift",
        cascade="all, delete-orphan",
        lazy=True,
    )
    items = db.relationship(
        "ShiftItem",
        back_populates="shift",
        cascade="all, delete-orphan",
        lazy=True,
    )
    audit_entries = db.relationship(
        "ShiftAuditEntry",
        back_populates="shift",
        cascade="all, delete-orphan",
        order_by="ShiftAuditEntry.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    def inventory(self, snapshot_type: str) -> list["ShiftInventorySnapshot"]:
        rows = [s for s in self.snapshots if s.snapshot_type == snapshot_type]
        return sorted(rows, key=lambda s: s.product_id)

    def report_dict(self) -> dict | None:
        if self.total_revenue_cents is None:
            return None
        return {
            "total_revenue_cents": self.total_revenue_cents,
            "total_cost_cents": self.total_cost_cents,
            "total_profit_cents": self.total_profit_cents,
            "total_credit_sales_cents": self.total_credit_sales_cents,
            "total_cash_payments_cents": self.total_cash_payments_cents,
            "total_non_cash_payments_cents": self.total_non_cash_payments_cents,
            "cash_to_deliver_cents": self.cash_to_deliver_cents,
            "difference_cents": self.difference_cents,
            "items_sold": [i.to_dict() for i in sorted(self.items, key=lambda i: i.product_id)],
        }

    def to_dict(self) -> dict:
        report = self.report_dict()
        return {
            "id": self.id,
            "status": self.status,
            "opened_by_user_id": self.opened_by_user_id,
            "closed_by_user_id": self.closed_by_user_id,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "initial_inventory": [s.to_dict() for s in self.inventory(SNAPSHOT_INITIAL)],
            "final_inventory": [s.to_dict() for s in self.inventory(SNAPSHOT_FINAL)] if not self.is_open else [],
            "real_cash_cents": self.real_cash_cents if not self.is_open else None,
            "closing_observation": self.closing_observation,
            "sales_report": report if not self.is_open else None,
            # Totals of a close that was later reopened (kept until the next close)
            "superseded_report": report if self.is_open else None,
            "audit_log": [a.to_dict() for a in self.audit_entries],
            "version_id": self.version_id,
        }


class ShiftInventorySnapshot(db.Model):
    """
    Counted quantity of one product at shift open (INITIAL) or close (FINAL).

    product_name is denormalized at capture time. Rows are owned by their
    shift and removed with it.
    """
    __tablename__ = "shift_inventory_snapshots"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "product_id", "snapshot_type", name="uq_shift_snapshots_shift_product_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shift_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    snapshot_type = db.Column(db.String(16), nullable=False)  # INITIAL, FINAL

    # FINAL rows only: projected stock just before the close wrote this count
    # (NULL when the product had no stock row yet). Used by reopen.
    stock_before = db.Column(db.Integer, nullable=True)

    shift = db.relationship("ShiftSession", back_populates="snapshots")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "count": self.quantity,
        }


class ShiftItem(db.Model):
    """
    Itemized sold-quantity line of a closed shift.

    Prices are frozen here at close time. Deleted on reopen and
    recomputed on the next close.
    """
    __tablename__ = "shift_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shift_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(128), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    revenue_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)

    shift = db.relationship("ShiftSession", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "revenue_cents": self.revenue_cents,
            "profit_cents": self.profit_cents,
        }


class ShiftAuditEntry(db.Model):
    """
    Append-only audit trail of corrections (e.g. REOPEN) on a shift.

    IMMUTABLE: Records are never updated. They go away only with their shift.
    """
    __tablename__ = "shift_audit_log"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shift_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    user_name = db.Column(db.String(128), nullable=False)
    action = db.Column(db.String(32), nullable=False)
    reason = db.Column(db.Text, nullable=False)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    shift = db.relationship("ShiftSession", back_populates="audit_entries")

    def to_dict(self) -> dict:
        return {
            "date": to_utc_z(self.occurred_at),
            "user_id": self.user_id,
            "user_name": self.user_name,
            "action": self.action,
            "reason": self.reason,
        }
