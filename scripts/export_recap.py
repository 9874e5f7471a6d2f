import os
import sys
import argparse
import logging
from zoneinfo import ZoneInfo

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from sidang_app import create_app
from sidang_app.recap.services import (
    DETAIL_HEADERS, SUMMARY_HEADERS, detail_filename, detail_rows, summary_filename, summary_rows,
    write_csv, write_xlsx,
)
from sidang_app.scoring.constants import ExamType
from sidang_app.stores import AssessmentStore, StudentStore

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def export(exam_type: str, kind: str, fmt: str, out_dir: str, prodi=None):
    exam = ExamType.from_value(exam_type)
    app = create_app()
    tz = ZoneInfo(app.config["DISPLAY_TIMEZONE"])
    with app.app_context():
        students = StudentStore().list_students(prodi=prodi)
        assessments = AssessmentStore().list_assessments(exam)
        if kind == "detail":
            headers, rows = DETAIL_HEADERS, detail_rows(students, assessments, exam, tz=tz)
            filename = detail_filename(exam, fmt)
        else:
            headers, rows = SUMMARY_HEADERS, summary_rows(students, assessments, exam)
            filename = summary_filename(exam, fmt)

    if not rows:
        logger.warning("No data to export for %s.", exam.value)
        return None
    payload = write_xlsx(headers, rows) if fmt == "xlsx" else write_csv(headers, rows)
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, filename)
    with open(path, "wb") as fh:
        fh.write(payload)
    logger.info("Wrote %d rows to %s", len(rows), path)
    return path


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Export the score recap or the detailed assessment archive.")
    parser.add_argument("--exam-type", default=ExamType.SIDANG_SKRIPSI.value,
                        help="'Seminar Proposal' or 'Sidang Skripsi'")
    parser.add_argument("--kind", choices=["summary", "detail"], default="summary")
    parser.add_argument("--format", dest="fmt", choices=["csv", "xlsx"], default="xlsx")
    parser.add_argument("--prodi", help="Limit to one study program")
    parser.add_argument("--out", default=".", help="Output directory")
    args = parser.parse_args()

    try:
        result = export(args.exam_type, args.kind, args.fmt, args.out, prodi=args.prodi)
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(1)
    if result is None:
        sys.exit(1)
