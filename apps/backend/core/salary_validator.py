"""
Salary range validation.

Salaries are only accepted as plausible annual ranges with an explicit ISO
currency code. Anything ambiguous is reported as invalid: showing no salary is
better than showing a wrong one.
"""

import re
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

MIN_ANNUAL = 10_000
MAX_ANNUAL = 2_000_000

CURRENCY_RE = re.compile(r'^[A-Z]{3}$')

UNIT_PATTERNS = {
    'hour': re.compile(r'\b(per\s*hour|hourly|an\s+hour)\b|/\s*(hr|hour|h)\b', re.IGNORECASE),
    'month': re.compile(r'\b(per\s*month|monthly|a\s+month)\b|/\s*(mo|month)\b', re.IGNORECASE),
    'year': re.compile(r'\b(per\s*(year|annum)|annual(ly)?|yearly|a\s+year|p\.?a\.?)\b|/\s*(yr|year)\b', re.IGNORECASE),
}

DECIMAL_COMMA_RE = re.compile(r'^\d+,\d{1,2}$')
EURO_GROUPING_RE = re.compile(r'^\d{1,3}(\.\d{3})+(,\d{1,2})?$')


@dataclass
class SalaryValidation:
    valid: bool
    min: Optional[float] = None
    max: Optional[float] = None
    currency: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_decimalish(text: str) -> Optional[float]:
    if DECIMAL_COMMA_RE.match(text):
        text = text.replace(',', '.')
    elif EURO_GROUPING_RE.match(text):
        text = text.replace('.', '').replace(',', '.')
    else:
        text = text.replace(',', '')
    try:
        return float(text)
    except ValueError:
        return None


def coerce_number(value: Any) -> Optional[float]:
    """
    Parse a salary bound.

    Accepts numbers and strings like "120000", "120,000", "120k", "2.5k",
    "1.234,5" and "12,5".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = re.sub(r'[^\d.,kK]', '', str(value))
    if not text:
        return None

    multiplier = 1
    if text[-1] in 'kK':
        multiplier = 1000
        text = text[:-1]
    text = text.replace('k', '').replace('K', '')
    if not text:
        return None

    number = _parse_decimalish(text)
    if number is None:
        return None
    return number * multiplier


def infer_unit(context_text: Optional[str]) -> Optional[str]:
    if not context_text:
        return None
    for unit in ('hour', 'month', 'year'):
        if UNIT_PATTERNS[unit].search(context_text):
            return unit
    return None


def _invalid(reason: str) -> SalaryValidation:
    return SalaryValidation(valid=False, reason=reason)


def normalize(
    min_value: Any,
    max_value: Any,
    currency: Optional[str],
    context_text: Optional[str] = None
) -> SalaryValidation:
    """
    Validate and normalize a salary range.

    Rules apply in order: missing bounds, currency, inverted range,
    non-annual unit in context text, plausible annual bounds.
    """
    low = coerce_number(min_value)
    high = coerce_number(max_value)

    if low is None and high is None:
        return _invalid("missing_salary")

    code = (currency or '').strip().upper()
    if not CURRENCY_RE.match(code):
        return _invalid("missing_currency")

    if low is not None and high is not None and high < low:
        return _invalid("inverted_range")

    unit = infer_unit(context_text)
    if unit and unit != 'year':
        return _invalid("non_annual_unit")

    if low is not None and not (MIN_ANNUAL <= low <= MAX_ANNUAL):
        return _invalid("min_out_of_bounds")
    if high is not None and not (MIN_ANNUAL <= high <= MAX_ANNUAL):
        return _invalid("max_out_of_bounds")

    return SalaryValidation(valid=True, min=low, max=high, currency=code)
