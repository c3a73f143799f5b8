"""Output formatting utilities for the dashboard tables and KPI cards.

Provides reusable functions for:
- Formatting amounts in Peruvian soles (abbreviated and full)
- Percentages and plain counts
- Semaforo (traffic-light) classification of execution percentages
- Dates and datetimes in dd/mm/yyyy display form
- Truncating long descriptions for table cells

These are the formatters plugged into Column descriptors
(see dashboard/table.py); they never raise on missing values.
"""

import math
from datetime import date, datetime
from typing import Optional, Union

_DASH = "—"

Number = Union[int, float]


def _is_missing(value) -> bool:
    if value is None:
        return True
    try:
        return not math.isfinite(float(value))
    except (TypeError, ValueError):
        return True


def format_monto(value: Optional[Number], abbreviated: bool = True) -> str:
    """Format an amount in soles for display.

    Args:
        value: Amount in soles (can be None)
        abbreviated: Compact millions (M) / thousands (K) notation (default: True)

    Returns:
        Formatted string like "S/ 1.23M", "S/ 45K" or "S/ 950"

    Examples:
        format_monto(1234567) -> "S/ 1.23M"
        format_monto(45200) -> "S/ 45K"
        format_monto(1234567, abbreviated=False) -> "S/ 1,234,567"
        format_monto(None) -> "S/ —"
    """
    if _is_missing(value):
        return f"S/ {_DASH}"
    value = float(value)
    if abbreviated:
        if abs(value) >= 1_000_000:
            return f"S/ {value / 1_000_000:.2f}M"
        if abs(value) >= 1_000:
            return f"S/ {value / 1_000:.0f}K"
    return f"S/ {value:,.0f}"


def format_monto_completo(value: Optional[Number]) -> str:
    """Format an amount as full soles with 2 decimals ("S/ 1,234,567.89")."""
    if _is_missing(value):
        return f"S/ {_DASH}"
    return f"S/ {float(value):,.2f}"


def format_percent(value: Optional[Number], precision: int = 1) -> str:
    """Format a percentage for display.

    Args:
        value: Percentage value (0.0 to 100.0)
        precision: Decimal places (default: 1)

    Returns:
        Formatted string like "42.5%"

    Examples:
        format_percent(42.5) -> "42.5%"
        format_percent(None) -> "—"
    """
    if _is_missing(value):
        return _DASH
    return f"{float(value):.{precision}f}%"


def format_number(value: Optional[Number]) -> str:
    """Format a plain number with thousands separators ("1,234,567")."""
    if _is_missing(value):
        return _DASH
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{float(value):,}"


def semaforo_color(pct: Optional[Number]) -> str:
    """Classify an execution percentage.

    verde >= 90, amarillo >= 70, rojo otherwise (missing values are rojo).
    """
    if _is_missing(pct):
        return "rojo"
    if pct >= 90:
        return "verde"
    if pct >= 70:
        return "amarillo"
    return "rojo"


def _parse_date(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def format_fecha(value: Union[str, date, datetime, None]) -> str:
    """Format an ISO date as "dd/mm/yyyy"; unparseable strings pass through."""
    try:
        parsed = _parse_date(value)
    except ValueError:
        return str(value)
    if parsed is None:
        return _DASH
    return parsed.strftime("%d/%m/%Y")


def format_fecha_hora(value: Union[str, date, datetime, None]) -> str:
    """Format an ISO datetime as "dd/mm/yyyy HH:MM"."""
    try:
        parsed = _parse_date(value)
    except ValueError:
        return str(value)
    if parsed is None:
        return _DASH
    return parsed.strftime("%d/%m/%Y %H:%M")


def truncate_text(text: Optional[str], max_length: int = 60, suffix: str = "...") -> str:
    """Truncate text to a maximum length, adding suffix if truncated.

    Args:
        text: Text to truncate
        max_length: Maximum length (including suffix)
        suffix: String to append if truncated

    Returns:
        Truncated text
    """
    if not text:
        return _DASH
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
