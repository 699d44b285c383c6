"""
Value coercion between Python and the driver.

Outbound, `bind_value` maps a Python value to what the driver binds:

- bool binds as bool, int as int; integers outside signed 64-bit range bind
  as Decimal
- float binds as float; NaN and infinities bind as NULL
- datetime, date, pandas Timestamp and numpy datetime64 bind as a naive
  wall-clock datetime; NaT binds as NULL
- NumPy scalars bind as the matching Python scalar
- output markers contribute their input value read as the declared type
  (NULL for pure OUT)
- anything else is passed to the driver unchanged

Inbound, the ``to_*`` readers never raise for NULL or unconvertible
values. Numeric and boolean readers return zero values; other readers
return None.
"""
import datetime
import decimal
import logging
import math
from collections.abc import Callable, Iterable
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd
from sqlhandle import parameters
from sqlhandle.sql import render_placeholders

logger = logging.getLogger(__name__)

MIN_INT64 = -2 ** 63
MAX_INT64 = 2 ** 63 - 1

TRUE_STRINGS = {'true', 't', 'yes', 'y', 'on', '1'}

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer,)


def _is_nat(value: Any) -> bool:
    return value is pd.NaT or (isinstance(value, np.datetime64) and np.isnat(value))


def _wall_clock(value: datetime.datetime) -> datetime.datetime:
    """Drop timezone info, keeping the wall-clock reading."""
    return value.replace(tzinfo=None) if value.tzinfo is not None else value


def _convert_numpy_value(value: Any) -> Any:
    """Convert NumPy value to Python type."""
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, NUMPY_FLOAT_TYPES + NUMPY_INT_TYPES):
        return value.item()
    if isinstance(value, np.datetime64):
        return pd.Timestamp(value).to_pydatetime()
    return value


def bind_value(value: Any) -> Any:
    """Map one argument to the value handed to the driver."""
    if value is None or _is_nat(value):
        return None

    if isinstance(value, parameters.InOutParameter):
        if value.type_tag is object or to_object(value.in_value) is None:
            return bind_value(value.in_value)
        return bind_value(coerce(value.in_value, value.type_tag))
    if isinstance(value, parameters.OutParameter):
        return None

    if isinstance(value, (np.generic,)):
        value = _convert_numpy_value(value)
        if value is None:
            return None

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if MIN_INT64 <= value <= MAX_INT64:
            return value
        return decimal.Decimal(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return value
    if isinstance(value, pd.Timestamp):
        return _wall_clock(value.to_pydatetime())
    if isinstance(value, datetime.datetime):
        return _wall_clock(value)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())

    return value


def bind_args(args: Iterable[Any]) -> tuple[list, list[int]]:
    """Bind an argument list.

    Returns
        (driver parameters, zero-based positions of output markers)
    """
    params, out_positions = [], []
    for position, arg in enumerate(args):
        if isinstance(arg, parameters.OutParameter):
            out_positions.append(position)
        params.append(bind_value(arg))
    return params, out_positions


def to_object(value: Any) -> Any:
    if value is None or _is_nat(value):
        return None
    if isinstance(value, np.generic):
        return _convert_numpy_value(value)
    return value


def to_str(value: Any) -> str | None:
    value = to_object(value)
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode('utf-8', errors='replace')
    return str(value)


def to_int(value: Any) -> int:
    value = to_object(value)
    if value is None:
        return 0
    try:
        if isinstance(value, (int, decimal.Decimal)):
            return int(value)
        if isinstance(value, float):
            return 0 if math.isnan(value) or math.isinf(value) else int(value)
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            text = value.strip()
            try:
                return int(text)
            except ValueError:
                return to_int(float(text))
    except (TypeError, ValueError, ArithmeticError):
        logger.debug(f'Cannot read {value!r} as int')
    return 0


def to_float(value: Any) -> float:
    value = to_object(value)
    if value is None:
        return 0.0
    try:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        return float(value)
    except (TypeError, ValueError, ArithmeticError):
        logger.debug(f'Cannot read {value!r} as float')
    return 0.0


def to_decimal(value: Any) -> decimal.Decimal:
    value = to_object(value)
    if value is None:
        return decimal.Decimal(0)
    try:
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return decimal.Decimal(0)
            return decimal.Decimal(str(value))
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            value = value.strip()
        return decimal.Decimal(value)
    except (TypeError, ValueError, ArithmeticError):
        logger.debug(f'Cannot read {value!r} as decimal')
    return decimal.Decimal(0)


def to_bool(value: Any) -> bool:
    value = to_object(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, decimal.Decimal)):
        return value != 0
    if isinstance(value, (bytes, bytearray)):
        value = value.decode(errors='replace')
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


def to_datetime(value: Any) -> datetime.datetime | None:
    value = to_object(value)
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    if isinstance(value, (bytes, bytearray)):
        value = value.decode(errors='replace')
    if isinstance(value, str):
        try:
            return dateutil.parser.parse(value)
        except (ValueError, OverflowError):
            logger.debug(f'Cannot read {value!r} as datetime')
    return None


def to_date(value: Any) -> datetime.date | None:
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return value
    result = to_datetime(value)
    return result.date() if result is not None else None


def to_bytes(value: Any) -> bytes | None:
    value = to_object(value)
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode()
    return None


CONVERTERS: dict[type, Callable[[Any], Any]] = {
    str: to_str,
    int: to_int,
    float: to_float,
    decimal.Decimal: to_decimal,
    bool: to_bool,
    datetime.datetime: to_datetime,
    datetime.date: to_date,
    bytes: to_bytes,
    object: to_object,
}


def coerce(value: Any, type_tag: type = object) -> Any:
    """Read ``value`` as ``type_tag`` under the same null policy."""
    return CONVERTERS.get(type_tag, to_object)(value)


def render_value(value: Any) -> str:
    """Render a bound value as a SQL literal for diagnostics."""
    if isinstance(value, parameters.InOutParameter):
        value = value.in_value
    elif isinstance(value, parameters.OutParameter):
        return '?'
    value = to_object(value)
    if value is None:
        return 'null'
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime.datetime):
        return f"'{value:%Y-%m-%d %H:%M:%S}'"
    if isinstance(value, datetime.date):
        return f"'{value:%Y-%m-%d} 00:00:00'"
    return str(value)


def format_query(sql: str | None, args: Iterable[Any] = ()) -> str:
    """Render SQL with arguments substituted, for logging only.

    Placeholders inside quoted literals are left alone; surplus placeholders
    stay as ``?``. The result is never executed.
    """
    return render_placeholders(sql, args, render_value)
