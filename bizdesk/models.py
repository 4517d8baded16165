"""
Bizdesk – Domain Models

Master data:
- Client (customers), Supplier, StockItem

Documents:
- Invoice / InvoiceItem, Quote / QuoteItem (header totals are derived from lines)
- Payment (client), SupplierPayment
- Grv / GrvItem (goods received from a supplier; append-only)

Ambient:
- User (login session), AuditLog (before/after snapshots)

IMPORTANT:
- Line totals are stored at full precision; header totals are stored in cents.
- Shared counters (StockItem.quantity_on_hand, Supplier.current_balance, Client.current_balance)
  are only changed through RecordStore.increment(), never read-modify-write.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .utils import money, to_decimal


INVOICE_STATUSES = ("Draft", "Sent", "Paid", "Cancelled")
QUOTE_STATUSES = ("Draft", "Sent", "Accepted", "Invoiced", "Cancelled")
PAYMENT_METHODS = ("Cash", "EFT")
ALLOCATION_TYPES = ("Invoice", "Whole")


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.username}>"


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
class Client(db.Model):
    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)

    customer_code = db.Column(db.String(50), nullable=False, unique=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    owner = db.Column(db.String(255))
    address = db.Column(db.String(255))
    phone_number = db.Column(db.String(50))
    email = db.Column(db.String(255))
    vat_no = db.Column(db.String(50))
    reg_no = db.Column(db.String(50))
    price_category = db.Column(db.String(20))

    credit_limit = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    # Balance owing
    current_balance = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Client {self.customer_code} - {self.customer_name}>"


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    supplier_code = db.Column(db.String(50), nullable=False, unique=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=False, index=True)

    contact_person = db.Column(db.String(255))
    address = db.Column(db.String(255))
    cell_number = db.Column(db.String(50))

    # Amount owed to the supplier
    current_balance = db.Column(db.Numeric(16, 4), nullable=False, default=Decimal("0.0000"))
    # Stored as captured; not computed here
    ageing_balance = db.Column(db.Numeric(16, 4), nullable=True)
    contra = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Supplier {self.supplier_code} - {self.supplier_name}>"


class StockItem(db.Model):
    __tablename__ = "stock_items"

    id = db.Column(db.Integer, primary_key=True)

    stock_code = db.Column(db.String(80), nullable=False, unique=True, index=True)
    stock_descr = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=False, default="Uncategorized", index=True)
    size = db.Column(db.String(50))

    cost_price = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))
    last_cost = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))

    # selling_price is price tier C (the default)
    selling_price = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))
    price_a = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))
    price_b = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))
    price_d = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))
    price_e = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    quantity_in_warehouse = db.Column(db.Integer, nullable=False, default=0)

    supplier = db.Column(db.String(255), nullable=True)
    vat = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("15.00"))

    min_level = db.Column(db.Integer, nullable=False, default=0)
    max_level = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<StockItem {self.stock_code}>"


# ---------------------------------------------------------------------
# Sales documents
# ---------------------------------------------------------------------
class DocumentLineMixin:
    """Columns shared by invoice and quote lines."""

    id = db.Column(db.Integer, primary_key=True)

    description = db.Column(db.String(255), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    # Percent, e.g. 15
    vat_rate = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    # Including VAT, full precision
    line_total = db.Column(db.Numeric(20, 6), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def line_total_display(self) -> Decimal:
        return money(self.line_total)


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)

    invoice_no = db.Column(db.String(40), nullable=False, unique=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    work_scope = db.Column(db.Text, nullable=True)

    # Excluding VAT
    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    vat_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    # Including VAT
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    status = db.Column(db.String(20), nullable=False, default="Draft", index=True)
    # Selects banking details; a non-VAT invoice carries no VAT on any line
    is_vat_invoice = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = db.relationship("Client", backref=db.backref("invoices", lazy=True))

    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    def __repr__(self):
        return f"<Invoice {self.invoice_no}>"


class InvoiceItem(DocumentLineMixin, db.Model):
    __tablename__ = "invoice_items"

    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stock_item_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    invoice = db.relationship("Invoice", back_populates="items")


class Quote(db.Model):
    __tablename__ = "quotes"

    id = db.Column(db.Integer, primary_key=True)

    quote_no = db.Column(db.String(40), nullable=False, unique=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    work_scope = db.Column(db.Text, nullable=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    vat_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=Decimal("0.00"))

    status = db.Column(db.String(20), nullable=False, default="Draft", index=True)

    # Set when the quote is converted
    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = db.relationship("Client", backref=db.backref("quotes", lazy=True))
    invoice = db.relationship("Invoice", foreign_keys=[invoice_id])

    items = db.relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.id",
    )

    def __repr__(self):
        return f"<Quote {self.quote_no}>"


class QuoteItem(DocumentLineMixin, db.Model):
    __tablename__ = "quote_items"

    quote_id = db.Column(
        db.Integer,
        db.ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stock_item_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    quote = db.relationship("Quote", back_populates="items")


# ---------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------
class Payment(db.Model):
    """Client payment. Created once, never edited."""

    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, nullable=False, index=True)

    client_id = db.Column(
        db.Integer,
        db.ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    method = db.Column(db.String(20), nullable=False, default="EFT")
    allocation_type = db.Column(db.String(20), nullable=False, default="Whole")

    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    client = db.relationship("Client", backref=db.backref("payments", lazy=True))
    invoice = db.relationship("Invoice", foreign_keys=[invoice_id])

    @property
    def reference(self) -> str:
        return f"PAY-{self.id:04d}" if self.id is not None else "PAY-NEW"


class SupplierPayment(db.Model):
    __tablename__ = "supplier_payments"

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, nullable=False, index=True)

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    method = db.Column(db.String(20), nullable=False, default="EFT")
    reference = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    supplier = db.relationship("Supplier", backref=db.backref("payments", lazy=True))


# ---------------------------------------------------------------------
# Goods received
# ---------------------------------------------------------------------
class Grv(db.Model):
    """Goods Received Voucher header."""

    __tablename__ = "grvs"

    id = db.Column(db.Integer, primary_key=True)

    reference = db.Column(db.String(100), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    order_no = db.Column(db.String(100), nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier = db.relationship("Supplier", backref=db.backref("grvs", lazy=True))

    items = db.relationship(
        "GrvItem",
        back_populates="grv",
        cascade="all, delete-orphan",
        order_by="GrvItem.id",
    )

    @property
    def total_value(self) -> Decimal:
        return sum((item.line_value for item in self.items), Decimal("0"))

    def __repr__(self):
        return f"<Grv {self.reference}>"


class GrvItem(db.Model):
    __tablename__ = "grv_items"

    id = db.Column(db.Integer, primary_key=True)

    grv_id = db.Column(
        db.Integer,
        db.ForeignKey("grvs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stock_item_id = db.Column(
        db.Integer,
        db.ForeignKey("stock_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    qty = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Numeric(14, 4), nullable=False)
    selling_price = db.Column(db.Numeric(14, 4), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    grv = db.relationship("Grv", back_populates="items")
    stock_item = db.relationship("StockItem")

    @property
    def line_value(self) -> Decimal:
        return Decimal(self.qty or 0) * to_decimal(self.cost_price)


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Who changed which record, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
