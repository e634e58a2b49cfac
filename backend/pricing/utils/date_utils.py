from datetime import date, datetime, timedelta

def try_parse_date(value):
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    s = str(value).strip()
    # "2025-01-15T00:00:00" -> "2025-01-15"
    if "T" in s:
        s = s.split("T", 1)[0]
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None

def add_days(start: date, days: int) -> date:
    return start + timedelta(days=days)
