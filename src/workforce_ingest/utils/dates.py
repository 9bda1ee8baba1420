import re
from datetime import datetime, timedelta

from dateutil import parser as date_parser

# Day zero of spreadsheet serial dates (1900 date system, leap-year bug included)
EXCEL_EPOCH = datetime(1899, 12, 30)

_SERIAL = re.compile(r"^\d+(\.\d+)?$")
_DOTTED = re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$")


def parse_date(value: str) -> str:
    """Normalize ISO, MM/DD/YYYY, DD.MM.YYYY or spreadsheet serial dates to ISO.

    Raises ValueError when the value is not a recognizable date.
    """
    text = value.strip()
    if _SERIAL.match(text):
        return (EXCEL_EPOCH + timedelta(days=float(text))).date().isoformat()
    parsed = date_parser.parse(text, dayfirst=bool(_DOTTED.match(text)))
    return parsed.date().isoformat()
