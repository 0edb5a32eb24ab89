"""
Helper Functions Module
Value parsing and formatting shared by the extractor, transformer and XML builder
"""

import calendar
import re
from datetime import date, datetime
from typing import Any, List, Optional

MONTH_MAP = {
    'jan': '01', 'feb': '02', 'mar': '03', 'apr': '04',
    'may': '05', 'jun': '06', 'jul': '07', 'aug': '08',
    'sep': '09', 'oct': '10', 'nov': '11', 'dec': '12'
}

# Tally writes this character for an empty value in some exports
TALLY_NULL = "ñ"

_LEADING_NUMBER = re.compile(r'^\s*(-?[\d,]*\.?\d+)')


def parse_tally_date(date_str: str) -> Optional[str]:
    """Parse Tally date format to ISO format (YYYY-MM-DD)"""
    if not date_str or date_str == TALLY_NULL:
        return None
    try:
        date_str = date_str.strip()

        # YYYYMMDD (e.g. 20210401)
        if len(date_str) == 8 and date_str.isdigit():
            return f"{date_str[:4]}-{date_str[4:6]}-{date_str[6:8]}"

        # d-MMM-yy (e.g. 1-Apr-21), tolerating split months like 1-Ap-r--21
        date_str = date_str.replace('--', '-').replace('- ', '-').replace(' -', '-')
        parts = date_str.split('-')
        if len(parts) >= 3:
            day = parts[0].zfill(2)
            month_str = ''.join(parts[1:-1]).lower()[:3]
            year = parts[-1]

            if month_str in MONTH_MAP:
                if len(year) == 2:
                    year = '20' + year if int(year) < 50 else '19' + year
                return f"{year}-{MONTH_MAP[month_str]}-{day}"

        return date_str
    except (ValueError, IndexError):
        return None


def parse_tally_amount(amount_str: Any) -> float:
    """Parse Tally amount string to float, 0.0 for anything non-numeric"""
    if amount_str is None:
        return 0.0
    if isinstance(amount_str, (int, float)):
        return float(amount_str) if amount_str == amount_str else 0.0
    if not amount_str or amount_str == TALLY_NULL:
        return 0.0
    cleaned = re.sub(r'[^\d.-]', '', str(amount_str))
    try:
        return float(cleaned) if cleaned else 0.0
    except ValueError:
        return 0.0


def parse_tally_quantity(qty_str: Any) -> float:
    """Parse the leading number of a Tally quantity/rate (e.g. ' 10 Nos', '50.00/Nos')"""
    if isinstance(qty_str, (int, float)):
        return parse_tally_amount(qty_str)
    if not qty_str or qty_str == TALLY_NULL:
        return 0.0
    match = _LEADING_NUMBER.match(str(qty_str))
    if not match:
        return 0.0
    return parse_tally_amount(match.group(1).replace(',', ''))


def parse_tally_boolean(bool_str: Any) -> int:
    """Parse Tally boolean (Yes/No) to integer (1/0)"""
    if isinstance(bool_str, bool):
        return int(bool_str)
    if not bool_str:
        return 0
    return 1 if str(bool_str).strip().upper() in ("YES", "TRUE", "1") else 0


def normalize_education_date(value: Optional[str] = None, today: Optional[date] = None) -> str:
    """
    Snap a date onto a day Tally Education mode accepts.

    Education licences only post vouchers on the 1st, 2nd or last day of a
    month. Days 1 and 2 are kept, any other day moves to the month end.
    Accepts YYYY-MM-DD or YYYYMMDD and returns YYYYMMDD. Empty or invalid
    input normalizes today's date.
    """
    parsed = None
    if value:
        text = value.strip()
        for fmt in ("%Y-%m-%d", "%Y%m%d"):
            try:
                parsed = datetime.strptime(text, fmt).date()
                break
            except ValueError:
                continue
    if parsed is None:
        parsed = today or date.today()

    if parsed.day not in (1, 2):
        last_day = calendar.monthrange(parsed.year, parsed.month)[1]
        parsed = parsed.replace(day=last_day)
    return parsed.strftime("%Y%m%d")


def to_tally_date(value: Optional[str]) -> str:
    """Convert YYYY-MM-DD to Tally's YYYYMMDD, passing other shapes through"""
    if not value:
        return ""
    return value.replace("-", "") if re.match(r'^\d{4}-\d{2}-\d{2}$', value) else value


def get_current_timestamp() -> str:
    """Get current timestamp in ISO format"""
    return datetime.now().isoformat()


def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
    """Split list into chunks of specified size"""
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]
