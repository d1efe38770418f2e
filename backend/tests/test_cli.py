from barflow.models import CreditCustomer, User
from barflow.services import credit_service


class TestCli:
    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=['system', 'init'])
        assert 'PASS Created admin: admin' in result.output
        assert db_session.query(User).filter_by(username='admin').one().role == 'ADMIN'

        again = runner.invoke(args=['system', 'init'])
        assert "already exists" in again.output

    def test_check_balances(self, app, employee, customer, db_session):
        runner = app.test_cli_runner()
        credit_service.authorize_debt(customer.id, 1000, 'tab', employee)

        ok = runner.invoke(args=['credit', 'check-balances'])
        assert ok.exit_code == 0

        db_session.query(CreditCustomer).filter_by(id=customer.id).update({'current_used_cents': 5})
        db_session.commit()
        bad = runner.invoke(args=['credit', 'check-balances'])
        assert bad.exit_code == 1
        assert 'stored=5 ledger=1000' in bad.output

    def test_products_create(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['products', 'create', '--name', 'BeerC', '--cost', '100', '--price', '300'])
        assert result.exit_code == 0
        assert 'Created product' in result.output
