"""
Credit ledger tests.

The central invariant: after any sequence of debts and payments,
0 <= current_used <= max_limit, and the stored balance equals a fold of
the ledger with the same floor-at-zero payment rule.
"""

import random
from datetime import timedelta

import pytest

from barflow.models import CreditCustomer
from barflow.models.credit import TX_DEBT, TX_PAYMENT
from barflow.services import credit_service
from barflow.services.credit_service import (
    STATUS_CRITICAL,
    STATUS_NORMAL,
    STATUS_WARNING,
    credit_status,
)
from barflow.time_utils import utcnow
from barflow.validation import LimitExceededError, NotFoundError, ValidationError


class TestAuthorizeDebt:
    def test_debt_increases_balance_and_logs(self, employee, customer):
        tx = credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)

        assert tx.tx_type == TX_DEBT
        assert tx.amount_cents == 15000
        assert tx.employee_id == employee.id
        assert tx.employee_name == "Maria"
        assert credit_service.get_customer(customer.id).current_used_cents == 15000

    def test_exact_available_amount_is_accepted(self, employee, customer):
        credit_service.authorize_debt(customer.id, 100000, "full line", employee)
        assert credit_service.get_customer(customer.id).current_used_cents == 100000

    def test_one_over_available_is_rejected(self, employee, customer):
        credit_service.authorize_debt(customer.id, 60000, "first", employee)

        with pytest.raises(LimitExceededError) as exc_info:
            credit_service.authorize_debt(customer.id, 40001, "second", employee)

        assert exc_info.value.available_cents == 40000
        assert "40000" in str(exc_info.value)
        assert credit_service.get_customer(customer.id).current_used_cents == 60000
        assert len(credit_service.customer_history(customer.id)) == 1

    @pytest.mark.parametrize("amount", [0, -5, "abc", 1.5, None])
    def test_invalid_amounts_rejected(self, employee, customer, amount):
        with pytest.raises(ValidationError):
            credit_service.authorize_debt(customer.id, amount, "x", employee)
        assert credit_service.customer_history(customer.id) == []

    def test_observation_required(self, employee, customer):
        with pytest.raises(ValidationError):
            credit_service.authorize_debt(customer.id, 100, "  ", employee)

    def test_unknown_customer(self, employee, db_session):
        with pytest.raises(NotFoundError):
            credit_service.authorize_debt(999, 100, "x", employee)

    def test_inactive_customer_rejected(self, employee, customer):
        credit_service.update_customer(customer.id, {"is_active": False})
        with pytest.raises(ValidationError):
            credit_service.authorize_debt(customer.id, 100, "x", employee)


class TestRecordPayment:
    def test_payment_reduces_balance(self, employee, customer):
        credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)
        tx = credit_service.record_payment(customer.id, 5000, "CASH", employee)

        assert tx.tx_type == TX_PAYMENT
        assert tx.payment_method == "CASH"
        assert credit_service.get_customer(customer.id).current_used_cents == 10000

    def test_overpayment_floors_at_zero(self, employee, customer):
        credit_service.authorize_debt(customer.id, 15000, "2 beers", employee)
        tx = credit_service.record_payment(customer.id, 20000, "CASH", employee)

        assert tx.amount_cents == 20000
        assert credit_service.get_customer(customer.id).current_used_cents == 0

    def test_unknown_payment_method(self, employee, customer):
        with pytest.raises(ValidationError):
            credit_service.record_payment(customer.id, 100, "BITCOIN", employee)

    def test_zero_payment_rejected(self, employee, customer):
        with pytest.raises(ValidationError):
            credit_service.record_payment(customer.id, 0, "CASH", employee)


class TestInvariant:
    @pytest.mark.parametrize("seed", range(4))
    def test_random_interleaving_keeps_balance_bounded(self, employee, customer, seed):
        rng = random.Random(seed)
        expected = 0

        for _ in range(40):
            amount = rng.randint(1, 40000)
            if rng.random() < 0.6:
                available = 100000 - expected
                if amount > available:
                    with pytest.raises(LimitExceededError):
                        credit_service.authorize_debt(customer.id, amount, "tab", employee)
                else:
                    credit_service.authorize_debt(customer.id, amount, "tab", employee)
                    expected += amount
            else:
                method = rng.choice(["CASH", "TRANSFER", "CARD"])
                credit_service.record_payment(customer.id, amount, method, employee)
                expected = max(0, expected - amount)

            used = credit_service.get_customer(customer.id).current_used_cents
            assert used == expected
            assert 0 <= used <= 100000

        assert credit_service.ledger_balance(customer.id) == expected
        assert credit_service.find_balance_mismatches() == []


class TestCustomers:
    def test_create_customer(self, db_session):
        c = credit_service.create_customer({"name": "Ana", "max_limit_cents": 30000, "phone": "555"})
        assert c.current_used_cents == 0
        assert c.to_dict()["status"] == {"percentage": 0.0, "level": STATUS_NORMAL, "blocked": False}

    def test_balance_cannot_be_written_directly(self, customer):
        with pytest.raises(ValidationError):
            credit_service.update_customer(customer.id, {"current_used_cents": 0})
        with pytest.raises(ValidationError):
            credit_service.create_customer({"name": "X", "max_limit_cents": 1, "current_used_cents": 5})

    def test_limit_cannot_drop_below_balance(self, employee, customer):
        credit_service.authorize_debt(customer.id, 30000, "tab", employee)

        with pytest.raises(ValidationError):
            credit_service.update_customer(customer.id, {"max_limit_cents": 29999})

        updated = credit_service.update_customer(customer.id, {"max_limit_cents": 30000, "name": "Juan P"})
        assert updated.max_limit_cents == 30000
        assert updated.name == "Juan P"

    def test_mismatch_is_reported(self, employee, customer, db_session):
        credit_service.authorize_debt(customer.id, 1000, "tab", employee)
        db_session.query(CreditCustomer).filter_by(id=customer.id).update({"current_used_cents": 999})
        db_session.commit()

        mismatches = credit_service.find_balance_mismatches()
        assert mismatches == [{
            "customer_id": customer.id,
            "name": "Juan",
            "current_used_cents": 999,
            "ledger_balance_cents": 1000,
        }]


class TestCreditStatus:
    @pytest.mark.parametrize("used, level", [
        (0, STATUS_NORMAL),
        (59, STATUS_NORMAL),
        (60, STATUS_WARNING),
        (89, STATUS_WARNING),
        (90, STATUS_CRITICAL),
        (100, STATUS_CRITICAL),
    ])
    def test_levels(self, used, level):
        status = credit_status(used, 100)
        assert status.level == level
        assert status.blocked == (level == STATUS_CRITICAL)

    def test_zero_limit_is_critical(self):
        status = credit_status(0, 0)
        assert status.level == STATUS_CRITICAL
        assert status.percentage == 100.0


class TestTransactionsInRange:
    def test_window_is_inclusive_and_newest_first(self, employee, customer):
        start = utcnow()
        first = credit_service.authorize_debt(customer.id, 100, "a", employee)
        second = credit_service.record_payment(customer.id, 50, "CASH", employee)

        txns = credit_service.transactions_in_range(first.occurred_at, second.occurred_at)
        assert [t.id for t in txns] == [second.id, first.id]

        later = credit_service.transactions_in_range(
            second.occurred_at + timedelta(seconds=1), second.occurred_at + timedelta(days=1)
        )
        assert later == []
        assert len(credit_service.transactions_in_range(start - timedelta(days=1), utcnow())) == 2

    def test_end_before_start_rejected(self, db_session):
        now = utcnow()
        with pytest.raises(ValidationError):
            credit_service.transactions_in_range(now, now - timedelta(seconds=1))
