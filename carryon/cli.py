# carryon/cli.py
import click
import pandas as pd
from sqlalchemy import func

from .extensions import db
from .model import Coupon, Driver, Vehicle, Invoice, DiscountType
from .model.types import parse_enum
from .utils.dates import parse_iso8601
from .utils.money import round_money

EXPORT_COLUMNS = [
    "Invoice Number", "Booking ID", "User ID", "Subtotal", "Tax", "Discount",
    "Total", "Tax Rate", "Currency", "Issued At",
]


@click.command("create-coupon")
@click.option("--code", required=True)
@click.option("--type", "discount_type", default="PERCENTAGE", show_default=True)
@click.option("--value", required=True, type=float)
@click.option("--max-discount", type=float, default=None)
@click.option("--min-order", type=float, default=0.0, show_default=True)
@click.option("--usage-limit", type=int, default=100, show_default=True)
@click.option("--expires-at", default=None, help="ISO8601, e.g. 2026-12-31T23:59:59Z")
@click.option("--description", default="")
def create_coupon(code, discount_type, value, max_discount, min_order, usage_limit, expires_at, description):
    code = code.strip().upper()
    dtype = parse_enum(DiscountType, discount_type)
    if dtype is None:
        click.echo("type must be PERCENTAGE or FLAT"); return
    if value <= 0:
        click.echo("value must be > 0"); return
    if dtype == DiscountType.PERCENTAGE and value > 100:
        click.echo("percentage must be <= 100"); return
    if usage_limit < 1:
        click.echo("usage limit must be >= 1"); return
    expires = parse_iso8601(expires_at)
    if expires_at and not expires:
        click.echo("Invalid datetime format for --expires-at"); return
    if db.session.query(Coupon).filter(func.upper(Coupon.code) == code).first():
        click.echo("Coupon code already exists"); return

    c = Coupon(
        code=code, description=description, discount_type=dtype,
        discount_value=round_money(value),
        max_discount=round_money(max_discount) if max_discount else None,
        min_order_value=round_money(min_order), usage_limit=usage_limit,
        expires_at=expires,
    )
    db.session.add(c); db.session.commit()
    click.echo(f"Coupon created: {c.id} {c.code}")


@click.command("create-driver")
@click.option("--name", required=True)
@click.option("--phone", default="")
@click.option("--vehicle-number", default="")
@click.option("--vehicle-model", default="")
def create_driver(name, phone, vehicle_number, vehicle_model):
    d = Driver(name=name.strip(), phone=phone, vehicle_number=vehicle_number, vehicle_model=vehicle_model)
    db.session.add(d); db.session.commit()
    click.echo(f"Driver created: {d.id} {d.name}")


@click.command("create-vehicle")
@click.option("--name", required=True)
@click.option("--base-price", type=float, required=True)
@click.option("--price-per-km", type=float, default=0.0)
@click.option("--capacity", default="")
@click.option("--icon", default="")
def create_vehicle(name, base_price, price_per_km, capacity, icon):
    v = Vehicle(name=name.strip(), base_price=round_money(base_price),
                price_per_km=round_money(price_per_km), capacity=capacity, icon_name=icon)
    db.session.add(v); db.session.commit()
    click.echo(f"Vehicle created: {v.id} {v.name}")


@click.command("export-invoices")
@click.option("--out", "out_path", default="invoices_export.csv", show_default=True)
def export_invoices(out_path):
    """Dump every issued invoice to CSV for the accountants."""
    invoices = db.session.query(Invoice).order_by(Invoice.issued_at.asc(), Invoice.id.asc()).all()
    rows = [
        {
            "Invoice Number": inv.invoice_number,
            "Booking ID": inv.booking_id,
            "User ID": inv.user_id,
            "Subtotal": float(inv.subtotal),
            "Tax": float(inv.tax),
            "Discount": float(inv.discount),
            "Total": float(inv.total),
            "Tax Rate": float(inv.tax_rate),
            "Currency": inv.currency,
            "Issued At": inv.issued_at,
        }
        for inv in invoices
    ]
    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    df.to_csv(out_path, index=False)
    click.echo(f"{len(df)} invoices exported to {out_path}")


def register_cli(app):
    app.cli.add_command(create_coupon)
    app.cli.add_command(create_driver)
    app.cli.add_command(create_vehicle)
    app.cli.add_command(export_invoices)
