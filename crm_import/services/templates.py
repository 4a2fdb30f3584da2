from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any

import pandas as pd

from ..models.import_kind import ImportKind, canonical_names

"""Downloadable import templates.

Each template has the canonical headers of its kind and two sample rows, so a
file filled in from it maps onto canonical fields without manual edits. CSV
templates are ``;``-delimited UTF-8 with BOM (opens cleanly in Excel with a
Spanish locale); the workbook form is used when asked for, or when the CSV
cannot be produced.
"""

__all__ = [
    "CSV_MEDIA_TYPE",
    "SAMPLE_ROWS",
    "TEMPLATE_NAMES",
    "TemplateFile",
    "XLSX_MEDIA_TYPE",
    "build_template",
    "template_headers",
]

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_NAME = "Plantilla"

TEMPLATE_NAMES = {
    ImportKind.CUSTOMERS: "plantilla_clientes_ejemplo",
    ImportKind.LEADS: "plantilla_leads_ejemplo",
    ImportKind.SALES: "plantilla_ventas_ejemplo",
}

SAMPLE_ROWS: dict[ImportKind, list[dict[str, Any]]] = {
    ImportKind.CUSTOMERS: [
        {
            "firstName": "Juan",
            "lastName": "Pérez",
            "email": "juanperez@example.com",
            "phoneCountry": "+593",
            "phoneNumber": "987654321",
            "street": "Calle Principal 123",
            "city": "Quito",
            "province": "Pichincha",
            "deliveryInstructions": "Casa blanca con puerta azul",
            "source": "Website",
            "brand": "sleepwear,bride",
        },
        {
            "firstName": "María",
            "lastName": "González",
            "email": "mariag@example.com",
            "phoneCountry": "+593",
            "phoneNumber": "912345678",
            "street": "Av. Amazonas 456",
            "city": "Guayaquil",
            "province": "Guayas",
            "deliveryInstructions": "Edificio Central, Piso 3",
            "source": "Referral",
            "brand": "bride",
        },
    ],
    ImportKind.LEADS: [
        {
            "firstName": "Carlos",
            "lastName": "López",
            "email": "carlosl@example.com",
            "phoneCountry": "+593",
            "phoneNumber": "976543210",
            "status": "new",
            "source": "Social Media",
            "notes": "Interesado en pijamas de seda",
            "brand": "sleepwear",
        },
        {
            "firstName": "Laura",
            "lastName": "Torres",
            "email": "laurat@example.com",
            "phoneCountry": "+593",
            "phoneNumber": "934567890",
            "status": "contacted",
            "source": "Event",
            "notes": "Boda programada para diciembre",
            "brand": "bride",
        },
    ],
    ImportKind.SALES: [
        {
            "customerId": "1",
            "amount": "120.50",
            "status": "completed",
            "date": "2025-02-15",
            "notes": "Pago con tarjeta de crédito",
            "product": "Pijama de seda azul",
            "brand": "sleepwear",
        },
        {
            "customerId": "2",
            "amount": "350.00",
            "status": "pending",
            "date": "2025-02-20",
            "notes": "Pendiente depósito bancario",
            "product": "Vestido de novia modelo Celestial",
            "brand": "bride",
        },
    ],
}


@dataclass(frozen=True)
class TemplateFile:
    filename: str
    content: bytes
    media_type: str


def template_headers(kind: ImportKind) -> list[str]:
    # ``name`` is an alternative to firstName + lastName, not a template column
    return [n for n in canonical_names(kind) if n != "name"]


def _frame(kind: ImportKind) -> pd.DataFrame:
    return pd.DataFrame(SAMPLE_ROWS[kind], columns=template_headers(kind)).fillna("")


def _csv(kind: ImportKind) -> TemplateFile:
    text = _frame(kind).to_csv(sep=";", index=False, lineterminator="\n")
    return TemplateFile(
        filename=f"{TEMPLATE_NAMES[kind]}.csv",
        content=text.encode("utf-8-sig"),
        media_type=CSV_MEDIA_TYPE,
    )


def _xlsx(kind: ImportKind) -> TemplateFile:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        _frame(kind).to_excel(writer, sheet_name=SHEET_NAME, index=False)
    return TemplateFile(
        filename=f"{TEMPLATE_NAMES[kind]}.xlsx",
        content=buf.getvalue(),
        media_type=XLSX_MEDIA_TYPE,
    )


def build_template(kind: ImportKind | str, fmt: str = "csv") -> TemplateFile:
    """Build the sample file for ``kind`` in ``fmt`` ("csv" or "xlsx")."""
    kind = ImportKind.parse(kind)
    fmt = (fmt or "csv").strip().lower()
    if fmt not in ("csv", "xlsx"):
        raise ValueError(f"unsupported template format '{fmt}' (expected csv|xlsx)")
    if fmt == "xlsx":
        return _xlsx(kind)
    try:
        return _csv(kind)
    except (UnicodeError, ValueError) as e:
        logger.warning(f"csv template for {kind.value} failed ({e}); falling back to xlsx")
        return _xlsx(kind)
