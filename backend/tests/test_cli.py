from barledger.models import User


class TestCli:

    def test_system_init_creates_admin_once(self, app, db_session):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["system", "init", "--admin-password", "Password123!"])
        second = runner.invoke(args=["system", "init", "--admin-password", "Password123!"])

        assert first.exit_code == 0, first.output
        assert "Created admin" in first.output
        assert "existing admin" in second.output
        assert db_session.query(User).filter_by(role="admin").count() == 1

    def test_users_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--username", "Ana", "--password", "Password123!", "--role", "cashier",
        ])
        assert result.exit_code == 0, result.output

        result = runner.invoke(args=["users", "list"])
        assert "ana" in result.output
        assert "cashier" in result.output

    def test_users_create_rejects_short_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--username", "ana", "--password", "123", "--role", "cashier",
        ])
        assert result.exit_code != 0
        assert "at least 8" in result.output

    def test_low_stock_report(self, app, make_product):
        make_product(name="Gin Seco", stock=0)
        make_product(name="Cerveja", stock=40)

        result = app.test_cli_runner().invoke(args=["reports", "low-stock"])
        assert result.exit_code == 0
        assert "Gin Seco" in result.output
        assert "Cerveja" not in result.output
