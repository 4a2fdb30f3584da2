from __future__ import annotations

import pytest

import crm_import.services.templates as templates
from crm_import.models.import_kind import ImportKind
from crm_import.parsing.reader import parse_file
from crm_import.services.mapping import propose_mappings, verify_mappings
from crm_import.services.templates import CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, build_template, template_headers
from crm_import.services.validation import validate_records


@pytest.mark.parametrize("kind", list(ImportKind))
def test_csv_template_round_trips_through_the_pipeline(kind):
    tpl = build_template(kind)
    assert tpl.media_type == CSV_MEDIA_TYPE
    assert tpl.filename.endswith(".csv")
    assert tpl.content.startswith(b"\xef\xbb\xbf")
    parsed = parse_file(tpl.content, tpl.filename)
    assert parsed.headers == template_headers(kind)
    assert len(parsed) == 2
    mappings = propose_mappings(parsed.headers, kind)
    verify_mappings(mappings, kind)
    assert all(m.is_mapped for m in mappings)


@pytest.mark.parametrize("kind", list(ImportKind))
def test_xlsx_template(kind):
    tpl = build_template(kind.value, "xlsx")
    assert tpl.media_type == XLSX_MEDIA_TYPE
    assert tpl.filename.endswith(".xlsx")
    parsed = parse_file(tpl.content)
    assert parsed.headers == template_headers(kind)
    assert len(parsed) == 2


def test_template_samples_pass_validation():
    for kind in ImportKind:
        parsed = parse_file(build_template(kind).content)
        validate_records(parsed.records, kind)


def test_semicolon_template_keeps_comma_values():
    parsed = parse_file(build_template(ImportKind.CUSTOMERS).content)
    assert parsed.records[0]["brand"] == "sleepwear,bride"
    assert parsed.records[1]["deliveryInstructions"] == "Edificio Central, Piso 3"


def test_template_file_names():
    assert build_template("customers").filename == "plantilla_clientes_ejemplo.csv"
    assert build_template("sales", "XLSX").filename == "plantilla_ventas_ejemplo.xlsx"


def test_unknown_format_rejected():
    with pytest.raises(ValueError):
        build_template("leads", "pdf")


def test_csv_failure_falls_back_to_xlsx(monkeypatch):
    def broken(kind):
        raise UnicodeError("cannot encode")

    monkeypatch.setattr(templates, "_csv", broken)
    tpl = build_template("leads")
    assert tpl.media_type == XLSX_MEDIA_TYPE
    assert tpl.filename == "plantilla_leads_ejemplo.xlsx"
