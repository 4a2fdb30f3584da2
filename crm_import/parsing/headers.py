from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Sequence

from .reader import RawRecord

"""Header normalizer: arbitrary source column names -> canonical field names.

Static lookup, not a fuzzy matcher. Unknown vocabulary passes through in a
camelCase form so the mapping step can still show it to the user.

Lookup order:
1. exact synonym table on the folded key (lower case, accents removed,
   non-alphanumerics stripped)
2. ordered contains-rules (phone / id document / delivery instructions)
3. camelCase of the original header
"""

__all__ = [
    "CONTAINS_RULES",
    "EXACT_SYNONYMS",
    "fold_key",
    "normalize_header",
    "normalize_headers",
    "normalize_records",
    "to_camel_case",
]

EXACT_SYNONYMS: dict[str, str] = {
    # names
    "firstname": "firstName",
    "nombre": "firstName",
    "nombres": "firstName",
    "nombredepila": "firstName",
    "lastname": "lastName",
    "apellido": "lastName",
    "apellidos": "lastName",
    "name": "name",
    "fullname": "name",
    "nombrecompleto": "name",
    # contact
    "email": "email",
    "correo": "email",
    "correoelectronico": "email",
    "idnumber": "idNumber",
    # address
    "street": "street",
    "calle": "street",
    "direccion": "street",
    "city": "city",
    "ciudad": "city",
    "province": "province",
    "provincia": "province",
    "estado": "province",
    # classification
    "source": "source",
    "fuente": "source",
    "origen": "source",
    "brand": "brand",
    "marca": "brand",
    "status": "status",
    "notes": "notes",
    "notas": "notes",
    "observaciones": "notes",
    # sales
    "customerid": "customerId",
    "idcliente": "customerId",
    "amount": "amount",
    "monto": "amount",
    "date": "date",
    "fecha": "date",
    "product": "product",
    "producto": "product",
}

# (substrings, target) evaluated top to bottom once the exact table missed
CONTAINS_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("phone", "telefono"), "phone"),  # split into phoneCountry / phoneNumber below
    (("cedula", "pasaporte"), "idNumber"),
    (("instrucciones", "delivery"), "deliveryInstructions"),
)

_COUNTRY_MARKERS = ("country", "pais")
_SEPARATOR_WORD = re.compile(r"[\s\-_]+(\w)")
_NON_ALNUM = re.compile(r"[^0-9a-z]", re.IGNORECASE)


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def fold_key(header: str) -> str:
    """Lower-case, accent-fold and drop everything that is not [0-9a-z]."""
    return _NON_ALNUM.sub("", _strip_accents(str(header)).lower())


def to_camel_case(header: str) -> str:
    lowered = str(header).strip().lower()
    camel = _SEPARATOR_WORD.sub(lambda m: m.group(1).upper(), lowered)
    return "".join(c for c in camel if c.isalnum())


def normalize_header(header: str) -> str:
    key = fold_key(header)
    if not key:
        return to_camel_case(header)
    if key in EXACT_SYNONYMS:
        return EXACT_SYNONYMS[key]
    for needles, target in CONTAINS_RULES:
        if any(n in key for n in needles):
            if target == "phone":
                return "phoneCountry" if any(m in key for m in _COUNTRY_MARKERS) else "phoneNumber"
            return target
    return to_camel_case(header)


def normalize_headers(headers: Sequence[str]) -> list[str]:
    """Normalize headers index-aligned with the input, never merging two columns."""
    result: list[str] = []
    taken: set[str] = set()
    for position, header in enumerate(headers, start=1):
        name = normalize_header(header)
        if name in taken:
            name = to_camel_case(header)
            if not name or name in taken:
                name = f"{name or 'column'}{position}"
        taken.add(name)
        result.append(name)
    return result


def normalize_records(headers: Sequence[str], records: Iterable[RawRecord]) -> tuple[list[str], list[RawRecord]]:
    """Rename the keys of every record to the normalized header names."""
    normalized = normalize_headers(headers)
    rename = dict(zip(headers, normalized))
    out: list[RawRecord] = []
    for record in records:
        out.append({rename.get(k, normalize_header(k)): v for k, v in record.items()})
    return normalized, out
