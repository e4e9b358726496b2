from .dates import DateWindow, parse_date
from .formatting import format_indian_currency

__all__ = ['DateWindow', 'parse_date', 'format_indian_currency']
