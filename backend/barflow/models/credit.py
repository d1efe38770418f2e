from __future__ import annotations

from ..extensions import db
from barflow.time_utils import to_utc_z

TX_DEBT = "DEBT"
TX_PAYMENT = "PAYMENT"

PAYMENT_CASH = "CASH"
PAYMENT_TRANSFER = "TRANSFER"
PAYMENT_CARD = "CARD"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_TRANSFER, PAYMENT_CARD)


class CreditCustomer(db.Model):
    """
    Trusted customer allowed to take goods on credit ("fiao").

    current_used_cents is a denormalized running balance of the ledger.
    Only credit_service.authorize_debt / record_payment write it, always in
    the same transaction as the ledger insert, under a row lock.
    """
    __tablename__ = "credit_customers"
    __table_args__ = (
        db.CheckConstraint("current_used_cents >= 0", name="ck_credit_customers_used_non_negative"),
        db.CheckConstraint("max_limit_cents >= 0", name="ck_credit_customers_limit_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    document_id = db.Column(db.String(32), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    max_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    current_used_cents = db.Column(db.Integer, nullable=False, default=0)

    observations = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def available_cents(self) -> int:
        return self.max_limit_cents - self.current_used_cents

    def to_dict(self) -> dict:
        from ..services.credit_service import credit_status

        return {
            "id": self.id,
            "name": self.name,
            "document_id": self.document_id,
            "phone": self.phone,
            "max_limit_cents": self.max_limit_cents,
            "current_used_cents": self.current_used_cents,
            "available_cents": self.available_cents,
            "observations": self.observations,
            "is_active": self.is_active,
            "status": credit_status(self.current_used_cents, self.max_limit_cents).to_dict(),
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class CreditTransaction(db.Model):
    """
    Append-only credit ledger entry.

    TRANSACTION TYPES:
    - DEBT: goods given on credit (observation mandatory)
    - PAYMENT: money received against the balance (payment_method mandatory)

    IMMUTABLE: Records are never updated or deleted, except by the
    administrative history purge.
    """
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_credit_transactions_amount_positive"),
        db.Index("ix_credit_txns_customer_occurred", "customer_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("credit_customers.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    employee_name = db.Column(db.String(128), nullable=False)

    tx_type = db.Column(db.String(16), nullable=False, index=True)  # DEBT, PAYMENT
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=True)  # CASH, TRANSFER, CARD (PAYMENT only)
    observation = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    customer = db.relationship("CreditCustomer", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "type": self.tx_type,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "observation": self.observation,
            "date": to_utc_z(self.occurred_at),
        }
