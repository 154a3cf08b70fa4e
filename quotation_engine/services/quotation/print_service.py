"""
Printable quotation document.

A versioned print is rendered only from the frozen snapshot, so the same
version always renders the same bytes no matter what has happened to the
live quotation since. A live print uses current line items and totals.
"""

from decimal import Decimal
from typing import Any

from jinja2 import BaseLoader, Environment, StrictUndefined

from quotation_engine.config.settings import settings
from quotation_engine.models.quotation import (
    Quotation, QuotationLineItem, QuotationVersion
)
from quotation_engine.services.quotation.version_store import build_snapshot
from quotation_engine.utils.logging import ServiceLogger
from quotation_engine.utils.money import to_money


QUOTATION_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Quotation {{ doc.quotation_number }}{% if doc.version_number %} v{{ doc.version_number }}{% endif %}</title>
</head>
<body>
<h1>Quotation {{ doc.quotation_number }}</h1>
<table class="header">
<tr><th>Date</th><td>{{ doc.quotation_date or "" }}</td></tr>
{% if doc.version_number %}<tr><th>Version</th><td>{{ doc.version_number }} ({{ doc.version_created_at }}{% if doc.version_created_by %}, {{ doc.version_created_by }}{% endif %})</td></tr>
{% endif %}<tr><th>Customer</th><td>{{ doc.customer.name or "" }}</td></tr>
<tr><th>Phone</th><td>{{ doc.customer.phone or "" }}</td></tr>
<tr><th>Email</th><td>{{ doc.customer.email or "" }}</td></tr>
<tr><th>Address</th><td>{{ doc.customer.address or "" }}</td></tr>
<tr><th>Vehicle model</th><td>{{ doc.vehicle_model_id or "" }}</td></tr>
<tr><th>Vehicle number</th><td>{{ doc.vehicle_number or "" }}</td></tr>
</table>
<table class="items">
<thead><tr><th>#</th><th>Feature</th><th>Qty</th><th>Unit price ({{ currency }})</th><th>Total ({{ currency }})</th></tr></thead>
<tbody>
{% for item in doc.line_items %}<tr><td>{{ item.line_number }}</td><td>{{ item.name }}</td><td>{{ item.quantity }}</td><td>{{ item.unit_price }}</td><td>{{ item.total_price }}</td></tr>
{% endfor %}</tbody>
</table>
<table class="totals">
<tr><th>Base total</th><td>{{ doc.base_total }}</td></tr>
<tr><th>Discount</th><td>{{ doc.discount_total }}</td></tr>
<tr><th>Discounted total</th><td>{{ doc.discounted_total }}</td></tr>
{% if doc.final_total is not none %}<tr><th>Final total</th><td>{{ doc.final_total }}</td></tr>
{% endif %}</table>
{% if doc.note %}<p class="note">{{ doc.note }}</p>
{% endif %}</body>
</html>
"""


def _money(value: Decimal | str | None) -> str | None:
    if value is None:
        return None
    return str(to_money(value))


class PrintService:
    """Renders quotation documents from live rows or version snapshots."""

    def __init__(self):
        self.jinja_env = Environment(
            loader=BaseLoader(),
            autoescape=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.template = self.jinja_env.from_string(QUOTATION_TEMPLATE)
        self.logger = ServiceLogger("print")

    def render_version(self, version: QuotationVersion) -> str:
        """Render a frozen version. Reads nothing but the version row."""
        snapshot = version.snapshot
        created_at = version.created_at.replace(microsecond=0).isoformat() if version.created_at else ""
        document = {
            **snapshot,
            "version_number": version.version_number,
            "version_created_at": created_at,
            "version_created_by": version.created_by,
            "base_total": _money(version.base_total),
            "discount_total": _money(version.discount_total),
            "discounted_total": _money(version.discounted_total),
            "final_total": None,
            "note": version.note,
        }
        self.logger.log_operation_complete(
            "render_version",
            quotation_id=version.quotation_id,
            version_number=version.version_number,
        )
        return self._render(document)

    def render_live(self, quotation: Quotation, line_items: list[QuotationLineItem]) -> str:
        """Render the quotation as it stands now."""
        document = {
            **build_snapshot(quotation, line_items),
            "version_number": None,
            "version_created_at": None,
            "version_created_by": None,
            "base_total": _money(quotation.base_total),
            "discount_total": _money(quotation.total_discount),
            "discounted_total": _money(quotation.discounted_total),
            "final_total": _money(quotation.final_total),
            "note": None,
        }
        self.logger.log_operation_complete("render_live", quotation_id=quotation.id)
        return self._render(document)

    def _render(self, document: dict[str, Any]) -> str:
        return self.template.render(doc=document, currency=settings.quotation.currency)
