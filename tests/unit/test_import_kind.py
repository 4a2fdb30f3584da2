from __future__ import annotations

import pytest

from crm_import.models.import_kind import (
    ImportKind,
    InvalidImportKindError,
    canonical_names,
    required_fields,
)


@pytest.mark.parametrize("value", ["customers", " Sales ", "LEADS", ImportKind.LEADS])
def test_parse_accepts_known_kinds(value):
    assert isinstance(ImportKind.parse(value), ImportKind)


@pytest.mark.parametrize("value", [None, "", "products", "customer"])
def test_parse_rejects_unknown(value):
    with pytest.raises(InvalidImportKindError):
        ImportKind.parse(value)


def test_required_fields():
    assert required_fields(ImportKind.CUSTOMERS) == ["firstName", "lastName"]
    assert required_fields(ImportKind.LEADS) == ["firstName", "lastName"]
    assert required_fields(ImportKind.SALES) == ["customerId", "amount"]


def test_canonical_names_are_unique_per_kind():
    for kind in ImportKind:
        names = canonical_names(kind)
        assert len(names) == len(set(names))


def test_only_customers_carry_id_number():
    assert "idNumber" in canonical_names(ImportKind.CUSTOMERS)
    assert "idNumber" not in canonical_names(ImportKind.LEADS)
    assert ImportKind.SALES.table == "sales"
