"""
JSON views of the domain models used by the blueprints and the CLI.

Money leaves the application as strings ("3680.00") so no float rounding creeps in
on the client side.
"""

from __future__ import annotations

from .utils import money, to_decimal


def _iso(value):
    return value.isoformat() if value is not None else None


def _line_dict(item) -> dict:
    return {
        "id": item.id,
        "stock_item_id": item.stock_item_id,
        "description": item.description,
        "quantity": item.quantity,
        "unit_price": str(money(item.unit_price)),
        "vat_rate": str(to_decimal(item.vat_rate)),
        "line_total": str(item.line_total_display),
    }


def _document_dict(document) -> dict:
    return {
        "id": document.id,
        "date": _iso(document.date),
        "client_id": document.client_id,
        "work_scope": document.work_scope,
        "status": document.status,
        "subtotal": str(money(document.subtotal)),
        "vat_amount": str(money(document.vat_amount)),
        "total_amount": str(money(document.total_amount)),
        "items": [_line_dict(item) for item in document.items],
    }


def invoice_dict(invoice) -> dict:
    data = _document_dict(invoice)
    data["invoice_no"] = invoice.invoice_no
    data["is_vat_invoice"] = invoice.is_vat_invoice
    return data


def quote_dict(quote) -> dict:
    data = _document_dict(quote)
    data["quote_no"] = quote.quote_no
    data["invoice_id"] = quote.invoice_id
    return data


def payment_dict(payment) -> dict:
    return {
        "id": payment.id,
        "reference": payment.reference,
        "date": _iso(payment.date),
        "client_id": payment.client_id,
        "amount": str(money(payment.amount)),
        "method": payment.method,
        "allocation_type": payment.allocation_type,
        "invoice_id": payment.invoice_id,
    }


def supplier_payment_dict(payment) -> dict:
    return {
        "id": payment.id,
        "reference": payment.reference,
        "date": _iso(payment.date),
        "supplier_id": payment.supplier_id,
        "amount": str(money(payment.amount)),
        "method": payment.method,
    }


def grv_dict(grv) -> dict:
    return {
        "id": grv.id,
        "reference": grv.reference,
        "date": _iso(grv.date),
        "supplier_id": grv.supplier_id,
        "order_no": grv.order_no,
        "note": grv.note,
        "total_value": str(money(grv.total_value)),
        "items": [
            {
                "id": item.id,
                "stock_item_id": item.stock_item_id,
                "qty": item.qty,
                "cost_price": str(to_decimal(item.cost_price)),
                "selling_price": str(to_decimal(item.selling_price)),
            }
            for item in grv.items
        ],
    }


def client_dict(client) -> dict:
    return {
        "id": client.id,
        "customer_code": client.customer_code,
        "customer_name": client.customer_name,
        "owner": client.owner,
        "address": client.address,
        "phone_number": client.phone_number,
        "email": client.email,
        "vat_no": client.vat_no,
        "reg_no": client.reg_no,
        "price_category": client.price_category,
        "credit_limit": str(money(client.credit_limit)),
        "current_balance": str(money(client.current_balance)),
    }


def supplier_dict(supplier) -> dict:
    return {
        "id": supplier.id,
        "supplier_code": supplier.supplier_code,
        "supplier_name": supplier.supplier_name,
        "contact_person": supplier.contact_person,
        "address": supplier.address,
        "cell_number": supplier.cell_number,
        "current_balance": str(money(supplier.current_balance)),
        "ageing_balance": str(money(supplier.ageing_balance)) if supplier.ageing_balance is not None else None,
        "contra": supplier.contra,
    }


def stock_dict(item) -> dict:
    data = {
        "id": item.id,
        "stock_code": item.stock_code,
        "stock_descr": item.stock_descr,
        "category": item.category,
        "size": item.size,
        "quantity_on_hand": item.quantity_on_hand,
        "quantity_in_warehouse": item.quantity_in_warehouse,
        "supplier": item.supplier,
        "vat": str(to_decimal(item.vat)),
        "min_level": item.min_level,
        "max_level": item.max_level,
        "is_active": item.is_active,
    }
    for name in ("cost_price", "last_cost", "selling_price", "price_a", "price_b", "price_d", "price_e"):
        data[name] = str(to_decimal(getattr(item, name)))
    return data
