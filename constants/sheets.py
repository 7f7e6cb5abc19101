# constants/sheets.py

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Spreadsheet holding every warehouse table
SHEET_ID = os.getenv("SHEET_ID", "")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",  # Read/write access to Google Sheets
]

# DATA TABLES
LOTS_SHEET_RANGE = "lot!A1:S"              # A=Lot, B=Product, ... O=Position, Q=Status, R=MergedTo
DELETED_LOTS_SHEET_RANGE = "deletelot!A1:S"  # A..P lot columns, Q=DeletedAt, R=DeletedBy, S=Reason
PRODUCTS_SHEET_RANGE = "Products!A1:M"     # A=Code, B=Name, C=Group, D-F=UOM, G-H=Ratio
PRODUCTS_DISABLED_CODES_RANGE = "Products!P2:P"

# STATE & MAPPING
# Must start from A1 so the header keeps row numbers aligned with the sheet
LOT_POS_SHEET_RANGE = "lot_pos!A1:B"       # A=Lot, B=Pos

# LOGS
AUDIT_LOG_SHEET_RANGE = "audit_log!A1:I"   # A=TS, B=User, C=Name, D=Method, E=Path, ..., I=Details

WAREHOUSE_TIMEZONE = os.getenv("WAREHOUSE_TIMEZONE", "Asia/Ho_Chi_Minh")


def get_tab(sheet_range: str) -> str:
    """Returns the tab name of an A1 range ('lot!A1:S' -> 'lot')."""
    return sheet_range.split("!")[0]
