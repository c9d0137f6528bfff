"""
Jinja2 templates and custom filters.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi.templating import Jinja2Templates

from .cnpj import format_cnpj
from .config import settings
from .pagination import ELLIPSIS

BASE_PATH = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_PATH / "templates"))


def format_date(value: Optional[datetime]) -> str:
    """
    Format a timestamp as ``DD/MM/YYYY`` for the customer table.

    Args:
        value: Datetime or None

    Returns:
        Formatted date, or empty string if None
    """
    if not value:
        return ""
    return value.strftime("%d/%m/%Y")


templates.env.filters["cnpj"] = format_cnpj
templates.env.filters["date"] = format_date
templates.env.globals["app_name"] = settings.APP_NAME
templates.env.globals["ELLIPSIS"] = ELLIPSIS
