# Overview: Flask CLI command groups for schema bootstrap, payroll preview and stock checks.

# backend/shopcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db-tools init
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask db-tools reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Payroll:
# - python -m flask payroll calculate --employee-id 3 --month 2025-01
#   Print the salary breakdown for one employee and month (read only).
#
# Stock:
# - python -m flask stock low --shop-id 1
#   List units at or below their low-stock threshold in the shop's group.

import json

import click
from flask.cli import with_appcontext

from .errors import ClientError
from .extensions import db
from .models import Employee
from .services.payroll_calculator import calculate
from .services.stock_service import list_low_stock
from .services.tenant_service import get_accessible_shop_ids


@click.group('db-tools')
def db_tools_group():
    """Schema bootstrap commands."""


@db_tools_group.command('init')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("OK Tables created")


@db_tools_group.command('reset')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("OK Database reset")


@click.group('payroll')
def payroll_group():
    """Payroll inspection commands."""


@payroll_group.command('calculate')
@click.option('--employee-id', type=int, required=True, help='Employee ID')
@click.option('--month', required=True, help='Salary month (YYYY-MM)')
@with_appcontext
def calculate_cli(employee_id, month):
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        raise click.ClickException(f"Employee {employee_id} not found")

    result = calculate(employee_id, [employee.shop_id], salary_month=month)
    if not result.status:
        raise click.ClickException(result.message)
    click.echo(json.dumps(result.data, indent=2))


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('low')
@click.option('--shop-id', type=int, required=True, help='Shop ID')
@with_appcontext
def low_stock_cli(shop_id):
    try:
        accessible = get_accessible_shop_ids(shop_id)
    except ClientError as e:
        raise click.ClickException(e.message)

    result = list_low_stock(accessible)
    if not result.status:
        raise click.ClickException(result.message)

    items = result.data["items"]
    if not items:
        click.echo("No low stock items")
        return
    for item in items:
        variant = f" variant={item['variant_id']}" if item["variant_id"] else ""
        click.echo(
            f"shop={item['shop_id']} product={item['product_id']}{variant} "
            f"{item['name']}: {item['stock']} (threshold {item['low_stock_threshold']})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_tools_group)
    app.cli.add_command(payroll_group)
    app.cli.add_command(stock_group)
