import os
import sys
import argparse
import logging

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from sidang_app import create_app
from sidang_app.roster.services import import_roster

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def run_import(path: str, dry_run: bool = False):
    if not os.path.exists(path):
        logger.error("File not found: %s", path)
        return None
    with open(path, "rb") as fh:
        data = fh.read()
    app = create_app()
    with app.app_context():
        try:
            result = import_roster(os.path.basename(path), data, dry_run=dry_run)
        except ValueError as e:
            logger.error("Import failed: %s", e)
            return None
    logger.info(
        "%s%d created, %d updated, %d skipped",
        "[dry run] " if dry_run else "", result["created"], result["updated"], result["skipped"],
    )
    return result


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import the student roster from a CSV or Excel file.")
    parser.add_argument("path", help="Roster file (.csv, .xlsx); columns: Nama, NPM, Prodi, Judul, P1, P2, E1, E2")
    parser.add_argument("--dry-run", action="store_true", help="Parse and count without writing")
    args = parser.parse_args()

    if run_import(args.path, dry_run=args.dry_run) is None:
        sys.exit(1)
