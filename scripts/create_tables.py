"""Create the local sheet tables and the lead workbook. Run from project root: python3 scripts/create_tables.py"""
import os
import sys
from pathlib import Path

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

# Local tables only make sense for the SQL backend
os.environ.setdefault("SHEETS_BACKEND", "sql")

from backoffice import create_app
from backoffice.models import db

app = create_app()
if app.config.get("SHEETS_BACKEND") != "sql":
    print("ERROR: SHEETS_BACKEND is", repr(app.config.get("SHEETS_BACKEND")), "- nothing to create for Google Sheets.")
    sys.exit(1)
if not app.config.get("SPREADSHEET_ID"):
    print("ERROR: SPREADSHEET_ID not set. Add SPREADSHEET_ID=<any id> to .env so the lead workbook can be created.")
    sys.exit(1)

with app.app_context():
    db.create_all()
    print("Tables created; lead workbook", app.config["SPREADSHEET_ID"], "ready in", app.config["SQLALCHEMY_DATABASE_URI"])
