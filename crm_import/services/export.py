from __future__ import annotations

import io
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..models.import_kind import ImportKind

"""Workbook export of stored rows with Spanish column headers."""

__all__ = [
    "EXPORT_COLUMNS",
    "export_filename",
    "export_workbook",
]

Row = dict[str, Any]

_FILENAMES = {
    ImportKind.CUSTOMERS: "clientes.xlsx",
    ImportKind.LEADS: "leads.xlsx",
    ImportKind.SALES: "ventas.xlsx",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _col(name: str) -> Callable[[Row], str]:
    return lambda r: _text(r.get(name))


def _phone(r: Row) -> str:
    country = _text(r.get("phone_country"))
    number = _text(r.get("phone_number")) or _text(r.get("phone"))
    return f"{country} {number}" if country else number


def _yes_no(name: str) -> Callable[[Row], str]:
    return lambda r: "Sí" if r.get(name) else "No"


_CONTACT_HEAD: list[tuple[str, Callable[[Row], str]]] = [
    ("ID", _col("id")),
    ("Nombre", _col("name")),
    ("Nombre de pila", _col("first_name")),
    ("Apellido", _col("last_name")),
    ("Email", _col("email")),
    ("Teléfono", _phone),
    ("Ciudad", _col("city")),
    ("Provincia", _col("province")),
    ("Dirección", lambda r: _text(r.get("street")) or _text(r.get("address"))),
    ("Marca", _col("brand")),
    ("Origen", _col("source")),
]

EXPORT_COLUMNS: dict[ImportKind, list[tuple[str, Callable[[Row], str]]]] = {
    ImportKind.CUSTOMERS: _CONTACT_HEAD
    + [
        ("ID Número", _col("id_number")),
        ("Instrucciones de entrega", _col("delivery_instructions")),
        ("Notas", _col("notes")),
        ("Fecha Creación", _col("created_at")),
    ],
    ImportKind.LEADS: _CONTACT_HEAD
    + [
        ("Estado", _col("status")),
        ("Etapa", _col("customer_lifecycle_stage")),
        ("Convertido a Cliente", _yes_no("converted_to_customer")),
        ("Notas", _col("notes")),
        ("Fecha Creación", _col("created_at")),
    ],
    ImportKind.SALES: [
        ("ID", _col("id")),
        ("ID Cliente", _col("customer_id")),
        ("Nombre Cliente", _col("customer_name")),
        ("Monto", _col("amount")),
        ("Estado", _col("status")),
        ("Producto", _col("product")),
        ("Marca", _col("brand")),
        ("Notas", _col("notes")),
        ("Fecha Creación", _col("created_at")),
    ],
}


def export_filename(kind: ImportKind | str) -> str:
    return _FILENAMES[ImportKind.parse(kind)]


def _with_customer_names(rows: Sequence[Row], customers: Iterable[Row]) -> list[Row]:
    names = {c.get("id"): c.get("name") or f"{c.get('first_name', '')} {c.get('last_name', '')}".strip() for c in customers}
    return [{**r, "customer_name": r.get("customer_name") or names.get(r.get("customer_id"))} for r in rows]


def export_workbook(
    kind: ImportKind | str, rows: Sequence[Row], customers: Iterable[Row] | None = None
) -> bytes:
    """Render stored rows as ``.xlsx`` bytes.

    ``customers`` resolves the customer name column of a sales export; every
    cell is written as text so values with ``;`` or leading zeros survive.
    """
    kind = ImportKind.parse(kind)
    if kind is ImportKind.SALES and customers is not None:
        rows = _with_customer_names(rows, customers)
    columns = EXPORT_COLUMNS[kind]
    frame = pd.DataFrame(
        [[render(r) for _, render in columns] for r in rows],
        columns=[header for header, _ in columns],
        dtype=str,
    )
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=kind.value, index=False)
    return buf.getvalue()
