"""
Output-parameter markers for procedure calls.

Place a marker in a handle's argument list where the procedure declares an
OUT (or INOUT) parameter. After execution the marker holds the value the
driver reported and reads it back through the same typed readers as a
result row.
"""
from typing import Any

from sqlhandle import coercion

__all__ = ['OutParameter', 'InOutParameter']


class OutParameter:
    """Marker for an output argument of declared type ``type_tag``.

    ``type_tag`` is a Python type (``int``, ``str``, ``datetime.datetime``,
    ...) that `value` coerces to; the default ``object`` means as reported.
    """

    def __init__(self, type_tag: type = object):
        self.type_tag = type_tag
        self._out_value = None
        self._received = False

    @property
    def out_value(self) -> Any:
        """Raw value reported by the driver, None before execution."""
        return self._out_value

    @property
    def received(self) -> bool:
        return self._received

    @property
    def value(self) -> Any:
        """Output value coerced to the declared type."""
        return coercion.coerce(self._out_value, self.type_tag)

    def receive(self, value: Any) -> None:
        self._out_value = value
        self._received = True

    def reset(self) -> None:
        self._out_value = None
        self._received = False

    def get_object(self):
        return coercion.to_object(self._out_value)

    def get_string(self):
        return coercion.to_str(self._out_value)

    def get_int(self):
        return coercion.to_int(self._out_value)

    def get_float(self):
        return coercion.to_float(self._out_value)

    def get_decimal(self):
        return coercion.to_decimal(self._out_value)

    def get_bool(self):
        return coercion.to_bool(self._out_value)

    def get_datetime(self):
        return coercion.to_datetime(self._out_value)

    def get_date(self):
        return coercion.to_date(self._out_value)

    def get_bytes(self):
        return coercion.to_bytes(self._out_value)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type_tag.__name__}, out={self._out_value!r})'


class InOutParameter(OutParameter):
    """Marker for an argument bound as input and read back as output."""

    def __init__(self, type_tag: type = object, in_value: Any = None):
        super().__init__(type_tag)
        self.in_value = in_value

    def __repr__(self) -> str:
        return (f'{self.__class__.__name__}({self.type_tag.__name__}, '
                f'in={self.in_value!r}, out={self._out_value!r})')
