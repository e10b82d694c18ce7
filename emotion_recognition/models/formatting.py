"""Number formatting shared by feature tables and benchmark reports"""

import math


def format_number(value) -> str:
    """Render a scalar the way the CSV files expect it.

    Integral values print without a fractional part, everything else as the
    shortest round-trip decimal; undefined values print as ``NaN``.

    Examples:
        >>> format_number(100.0)
        '100'
        >>> format_number(0.25)
        '0.25'
        >>> format_number(float("nan"))
        'NaN'
    """
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer():
        return str(int(value))
    return repr(value)
