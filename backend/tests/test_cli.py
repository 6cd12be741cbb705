# Overview: Pytest coverage for the Flask CLI command groups.

import json

from conftest import JUNE_2025, mark_days, working_days


def test_payroll_calculate_prints_breakdown(app, db_session, employee_a):
    mark_days(db_session, employee_a, working_days(*JUNE_2025))
    result = app.test_cli_runner().invoke(args=["payroll", "calculate", "--employee-id", str(employee_a.id), "--month", "2025-06"])
    assert result.exit_code == 0
    assert json.loads(result.output)["net_pay"] == "30000.00"


def test_payroll_calculate_unknown_employee(app, db_session):
    result = app.test_cli_runner().invoke(args=["payroll", "calculate", "--employee-id", "424242", "--month", "2025-06"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_stock_low_lists_units(app, db_session, shop_a, product_no_vat, variant_a):
    result = app.test_cli_runner().invoke(args=["stock", "low", "--shop-id", str(shop_a.id)])
    assert result.exit_code == 0
    assert "Shirt: 4 (threshold 5)" in result.output
    assert "Product A2" not in result.output
