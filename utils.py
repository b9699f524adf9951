"""
Project: OrderFlow
Description:
Display helpers shared by the API responses and the templates.
"""

from datetime import date, datetime


def format_duration(ms):
    if ms is None:
        return "-"
    total_seconds = int(ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    if minutes == 0:
        return f"{seconds}s"
    return f"{minutes}m {seconds}s"


def format_time(value):
    if isinstance(value, str):
        value = value.strip()
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_money(value):
    return f"${float(value or 0):.2f}"


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat((value or "").strip())


def init_app(app):
    app.add_template_filter(format_duration, "duration")
    app.add_template_filter(format_time, "time")
    app.add_template_filter(format_money, "money")
