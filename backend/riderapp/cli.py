# Overview: Flask CLI command groups for bootstrap, seeding, and inspection.

# backend/riderapp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" with migrations in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Riders:
# - python -m flask riders list
# - python -m flask riders create --name "Juan Dela Cruz" --phone 09171234567 --password secret
# - python -m flask riders devices --rider-id 1
#
# Orders (order intake is not part of the rider API):
# - python -m flask orders create --rider-id 1 --order-number 100234 --barcode BC100234 --cod-amount 450
# - python -m flask orders list --rider-id 1 [--status PENDING]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Rider
from .services import auth_service, device_service, order_service
from .validation import ConflictError, ValidationError
from .models.orders import ORDER_STATUSES


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('riders')
def riders_group():
    """Rider account commands."""


@riders_group.command('list')
@with_appcontext
def list_riders():
    riders = db.session.query(Rider).order_by(Rider.id).all()
    if not riders:
        click.echo("No riders")
        return
    for rider in riders:
        click.echo(f"{rider.id:>5}  {rider.phone:<16} {rider.name}")


@riders_group.command('create')
@click.option('--name', prompt=True)
@click.option('--phone', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_rider(name, phone, password):
    try:
        rider = auth_service.register_rider(name=name, phone=phone, password=password)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created rider {rider.name} (ID: {rider.id})")


@riders_group.command('devices')
@click.option('--rider-id', type=int, required=True)
@with_appcontext
def list_rider_devices(rider_id):
    devices = device_service.list_devices(rider_id)
    if not devices:
        click.echo("No devices")
        return
    for device in devices:
        click.echo(f"{device.id:>5}  {device.platform or '-':<8} {device.device_token}")


@click.group('orders')
def orders_group():
    """Order seeding and inspection commands."""


@orders_group.command('create')
@click.option('--rider-id', type=int, required=True)
@click.option('--order-number', required=True)
@click.option('--barcode', required=True)
@click.option('--cod-amount', default="0", show_default=True)
@click.option('--customer-name', default=None)
@click.option('--customer-phone', default=None)
@click.option('--address', 'delivery_address', default=None)
@with_appcontext
def create_order(rider_id, order_number, barcode, cod_amount, customer_name, customer_phone, delivery_address):
    if db.session.get(Rider, rider_id) is None:
        click.echo(f"FAIL Rider {rider_id} not found")
        raise SystemExit(1)
    try:
        order = order_service.create_order(
            rider_id,
            order_number,
            barcode,
            cod_amount,
            customer_name=customer_name,
            customer_phone=customer_phone,
            delivery_address=delivery_address,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Created order {order.order_number} (ID: {order.id}) for rider {rider_id}")


@orders_group.command('list')
@click.option('--rider-id', type=int, required=True)
@click.option('--status', type=click.Choice(ORDER_STATUSES), default=None)
@with_appcontext
def list_orders(rider_id, status):
    orders = order_service.list_orders(rider_id, status=status)
    if not orders:
        click.echo("No orders")
        return
    for order in orders:
        click.echo(
            f"{order.id:>5}  {order.order_number:<12} {order.status:<16} "
            f"{order.payment_method or '-':<5} {order.cod_amount}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(riders_group)
    app.cli.add_command(orders_group)
