import csv
import io
import os
import zipfile
from typing import Dict, List, Tuple

from flask import current_app
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .. import db
from ..models import ImportLog
from ..stores import StudentStore


# Fixed column order of roster files; the first row is always a header
ROSTER_COLUMNS = ["name", "npm", "prodi", "title", "pembimbing1", "pembimbing2", "penguji1", "penguji2"]
ROSTER_HEADERS = ["Nama", "NPM", "Prodi", "Judul Skripsi", "Pembimbing 1", "Pembimbing 2", "Penguji 1", "Penguji 2"]
ALLOWED_ROSTER_EXTS = {"csv", "xlsx", "xlsm"}


def cell_to_str(val) -> str:
    if val is None:
        return ""
    if isinstance(val, str):
        return val.strip()
    if isinstance(val, bool):
        return str(val)
    if isinstance(val, int):
        return str(val)
    if isinstance(val, float):
        # Excel often stores numeric IDs as float; drop .0 when applicable
        if val.is_integer():
            return str(int(val))
        return str(val)
    return str(val).strip()


def _read_csv_rows(data: bytes) -> List[List[str]]:
    text = data.decode("utf-8-sig", errors="replace")
    return [row for row in csv.reader(io.StringIO(text))]


def _read_xlsx_rows(data: bytes) -> List[List[str]]:
    try:
        wb = load_workbook(filename=io.BytesIO(data), data_only=True, read_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ValueError(f"File Excel tidak dapat dibaca: {e}")
    ws = wb.active
    rows = [[cell_to_str(v) for v in row] for row in ws.iter_rows(values_only=True)]
    wb.close()
    return rows


def read_roster_rows(filename: str, data: bytes) -> List[List[str]]:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in (filename or "") else ""
    if ext not in ALLOWED_ROSTER_EXTS:
        raise ValueError("File harus berformat CSV atau Excel (.xlsx).")
    if ext == "csv":
        return _read_csv_rows(data)
    return _read_xlsx_rows(data)


def _match_program(raw: str, programs: List[str]) -> str:
    s = (raw or "").strip()
    if not s:
        return programs[0]
    for p in programs:
        if p.lower() == s.lower():
            return p
    return s


def parse_roster(rows: List[List[str]], programs: List[str]) -> Tuple[List[Dict[str, str]], int]:
    """
    Maps raw rows (header included) onto student fields.
    Returns (parsed rows, skipped count); rows without an NPM are skipped.
    """
    parsed = []
    skipped = 0
    for raw in rows[1:]:
        values = [cell_to_str(v) for v in raw]
        if not any(values):
            continue
        values += [""] * (len(ROSTER_COLUMNS) - len(values))
        data = dict(zip(ROSTER_COLUMNS, values))
        if not data["npm"]:
            skipped += 1
            continue
        data["name"] = data["name"] or "Unknown"
        data["prodi"] = _match_program(data["prodi"], programs)
        data["title"] = data["title"] or "-"
        parsed.append(data)
    return parsed, skipped


def import_roster(filename: str, data: bytes, user_id=None, dry_run=False):
    """
    Imports a roster file. Existing NPMs (case-insensitive) are overwritten in place,
    new NPMs get a generated id.
    Returns: dict(created, updated, skipped)
    """
    programs = current_app.config["PROGRAMS"]
    rows = read_roster_rows(filename, data)
    parsed, skipped = parse_roster(rows, programs)
    created, updated = StudentStore().bulk_upsert(parsed, dry_run=dry_run)

    log = ImportLog(
        user_id_fk=user_id,
        filename=os.path.basename(filename or ""),
        dry_run=dry_run,
        created_count=created,
        updated_count=updated,
        skipped_count=skipped,
    )
    db.session.add(log)
    db.session.commit()
    current_app.logger.info(
        "Roster import %s%s: %d created, %d updated, %d skipped",
        filename, " (dry run)" if dry_run else "", created, updated, skipped,
    )
    return {"created": created, "updated": updated, "skipped": skipped}


def roster_csv(students) -> str:
    """The current roster in import column order, usable as an import template."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(ROSTER_HEADERS)
    for s in students:
        writer.writerow([getattr(s, col) or "" for col in ROSTER_COLUMNS])
    return buf.getvalue()
