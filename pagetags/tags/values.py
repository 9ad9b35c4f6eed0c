"""
Runtime values for the tag system.

Templates compute with a closed set of value kinds. Host data is converted
into these kinds once, at the context boundary (see `to_value`), so the
engine never has to inspect arbitrary host objects:

- BOOLEAN   bool
- INTEGER   int (64-bit signed range)
- FLOAT     float
- STRING    str
- LIST      tuple of values
- MAPPING   read-only mapping of str -> value
- PAIR      Pair(first, second), produced by enumerate/iter
- RECORD    object implementing FieldAccess
- NULL      None
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple
from uuid import UUID

from pagetags.tags.errors import TypeMismatch


INTEGER_MIN = -(2 ** 63)
INTEGER_MAX = 2 ** 63 - 1


class ValueKind(Enum):
    """Kinds of template values."""
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    FLOAT = 'float'
    STRING = 'string'
    LIST = 'list'
    MAPPING = 'mapping'
    PAIR = 'pair'
    RECORD = 'record'
    NULL = 'null'


class Pair(NamedTuple):
    """Two values, as produced by `list.enumerate` and `mapping.iter`."""
    first: Any
    second: Any


class FieldAccess(ABC):
    """
    Capability for host objects that templates may reach into.

    `record.field` in a template calls `template_field('field')`. The
    returned object goes through `to_value`, so plain host data is fine.
    """

    @abstractmethod
    def template_field(self, name: str) -> Any:
        """
        Return the value of a field.

        Raises:
            KeyError: If the record has no field with this name
        """
        pass


def kind_of(value: Any) -> ValueKind:
    """Return the kind of an already converted value."""
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Pair):
        return ValueKind.PAIR
    if isinstance(value, tuple):
        return ValueKind.LIST
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if isinstance(value, FieldAccess):
        return ValueKind.RECORD
    raise TypeMismatch('template value', type(value).__name__)


def kind_name(value: Any) -> str:
    """Human readable kind of a value, for error messages."""
    try:
        return kind_of(value).value
    except TypeMismatch:
        return type(value).__name__


def check_integer(value: int, context: str) -> int:
    """Reject integers outside the signed 64-bit range."""
    if not INTEGER_MIN <= value <= INTEGER_MAX:
        raise TypeMismatch('64-bit integer', str(value), context)
    return value


def to_value(obj: Any) -> Any:
    """
    Convert host data into a template value.

    Lists become tuples and dicts become read-only mappings, recursively.
    Objects with a `to_template_value()` method are converted through it.

    Raises:
        TypeMismatch: If the object has no template representation
    """
    if obj is None or isinstance(obj, (bool, float, str)):
        return obj

    if isinstance(obj, int):
        return check_integer(obj, 'context conversion')

    if isinstance(obj, Pair):
        return Pair(to_value(obj.first), to_value(obj.second))

    if isinstance(obj, FieldAccess):
        return obj

    if isinstance(obj, Mapping):
        return MappingProxyType({str(key): to_value(value) for key, value in obj.items()})

    if isinstance(obj, (list, tuple)):
        return tuple(to_value(item) for item in obj)

    if isinstance(obj, Decimal):
        return float(obj)

    if isinstance(obj, (datetime, date)):
        return obj.isoformat()

    if isinstance(obj, UUID):
        return str(obj)

    if hasattr(obj, 'to_template_value'):
        return to_value(obj.to_template_value())

    raise TypeMismatch('template value', type(obj).__name__, 'context conversion')


def format_float(value: float) -> str:
    """Decimal text form of a float: 25.0 -> '25', 54.5 -> '54.5'."""
    if math.isnan(value):
        return 'NaN'
    if math.isinf(value):
        return 'inf' if value > 0 else '-inf'
    if value.is_integer():
        return str(int(value))
    return repr(value)


def display(value: Any) -> str:
    """
    Text form of a value, used by `to_string` and by output tags.

    Raises:
        TypeMismatch: For records, which have no text form
    """
    kind = kind_of(value)

    if kind == ValueKind.NULL:
        return ''
    if kind == ValueKind.BOOLEAN:
        return 'true' if value else 'false'
    if kind == ValueKind.INTEGER:
        return str(value)
    if kind == ValueKind.FLOAT:
        return format_float(value)
    if kind == ValueKind.STRING:
        return value
    if kind == ValueKind.LIST:
        return '[' + ', '.join(display(item) for item in value) + ']'
    if kind == ValueKind.PAIR:
        return f'({display(value.first)}, {display(value.second)})'
    if kind == ValueKind.MAPPING:
        items = ', '.join(f'{key}: {display(item)}' for key, item in value.items())
        return '{' + items + '}'

    raise TypeMismatch('displayable value', kind.value)


def is_truthy(value: Any) -> bool:
    """
    Truthiness used by `if`, `&&`, `||` and `!`.

    Booleans are themselves; nil is false; numbers are true when non-zero;
    strings, lists and mappings when non-empty; pairs and records are
    always true.
    """
    kind = kind_of(value)

    if kind == ValueKind.BOOLEAN:
        return value
    if kind == ValueKind.NULL:
        return False
    if kind in (ValueKind.INTEGER, ValueKind.FLOAT):
        return value != 0
    if kind in (ValueKind.STRING, ValueKind.LIST, ValueKind.MAPPING):
        return len(value) > 0
    return True
