import io

import pytest
from openpyxl import Workbook

from sidang_app.models import ImportLog
from sidang_app.roster.services import (
    ROSTER_HEADERS, cell_to_str, import_roster, parse_roster, read_roster_rows, roster_csv,
)
from sidang_app.stores import StudentStore

PROGRAMS = ["K3", "Kesling"]


def csv_bytes(*rows):
    lines = [",".join(ROSTER_HEADERS)] + [",".join(r) for r in rows]
    return ("\ufeff" + "\n".join(lines) + "\n").encode("utf-8")


def xlsx_bytes(*rows):
    wb = Workbook()
    ws = wb.active
    ws.append(ROSTER_HEADERS)
    for r in rows:
        ws.append(list(r))
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def test_cell_to_str():
    assert cell_to_str(None) == ""
    assert cell_to_str(2001234.0) == "2001234"
    assert cell_to_str(1.5) == "1.5"
    assert cell_to_str("  Ani ") == "Ani"


def test_parse_roster_defaults_and_skips():
    rows = [
        ROSTER_HEADERS,
        ["Ani", "101", "kesling", "Judul A", "P1", "P2", "E1", "E2"],
        ["", "102", "", ""],
        ["Tanpa NPM", "", "K3"],
        ["", "", "", ""],
    ]
    parsed, skipped = parse_roster(rows, PROGRAMS)
    assert skipped == 1
    assert len(parsed) == 2
    assert parsed[0]["prodi"] == "Kesling"
    assert parsed[0]["penguji2"] == "E2"
    assert parsed[1]["name"] == "Unknown"
    assert parsed[1]["prodi"] == "K3"
    assert parsed[1]["title"] == "-"
    assert parsed[1]["pembimbing1"] == ""


def test_read_roster_rows_rejects_unknown_extension():
    with pytest.raises(ValueError):
        read_roster_rows("data.txt", b"a,b")


def test_read_roster_rows_rejects_broken_workbook():
    with pytest.raises(ValueError):
        read_roster_rows("data.xlsx", b"not a zip")


def test_import_csv_creates_then_updates(app):
    data = csv_bytes(
        ["Ani", "101", "K3", "Judul A", "Dr. A", "Dr. B", "Dr. C", "Dr. D"],
        ["Budi", "102", "Kesling", "Judul B", "Dr. A", "Dr. B", "Dr. C", "-"],
    )
    with app.app_context():
        assert import_roster("roster.csv", data) == {"created": 2, "updated": 0, "skipped": 0}
        again = csv_bytes(["Ani Putri", "101", "K3", "Judul A2", "Dr. A", "Dr. B", "Dr. C", "Dr. D"])
        assert import_roster("roster.csv", again) == {"created": 0, "updated": 1, "skipped": 0}
        assert StudentStore().find_by_npm("101").name == "Ani Putri"
        assert ImportLog.query.count() == 2


def test_import_xlsx_with_numeric_npm(app):
    data = xlsx_bytes(["Citra", 2001001, "Kesling", "Judul C", "Dr. A", "Dr. B", "Dr. C", "Dr. D"])
    with app.app_context():
        result = import_roster("roster.xlsx", data)
        assert result["created"] == 1
        assert StudentStore().find_by_npm("2001001").prodi == "Kesling"


def test_import_dry_run_writes_nothing_but_logs(app):
    data = csv_bytes(["Ani", "101", "K3", "Judul", "", "", "", ""])
    with app.app_context():
        result = import_roster("roster.csv", data, dry_run=True)
        assert result["created"] == 1
        assert StudentStore().find_by_npm("101") is None
        log = ImportLog.query.first()
        assert log.dry_run is True
        assert log.created_count == 1


def test_roster_csv_uses_import_columns(app, make_student):
    make_student(npm="777", name="Dewi")
    with app.app_context():
        text = roster_csv(StudentStore().list_students())
    lines = text.strip().splitlines()
    assert lines[0] == ",".join(ROSTER_HEADERS)
    assert lines[1].startswith("Dewi,777,K3,")
