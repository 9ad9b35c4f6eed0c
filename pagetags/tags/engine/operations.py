"""
Built-in operations for the tag system.

Operations are methods called on a value with member syntax:
<%= name.upcase %>
<%= price.round %>
<% for pair in items.enumerate %>

Each operation is registered for the value kinds it accepts. Lookup is by
(kind, name) only; an Integer is never silently treated as a Float.
"""

from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple
import math

from pagetags.tags.errors import (
    TemplateError,
    UndefinedOperation,
    MissingKey,
    TypeMismatch,
    IndexOutOfBounds
)
from pagetags.tags.values import ValueKind, Pair, kind_of, to_value, display, check_integer


class Operation(ABC):
    """
    Base class for all operations.

    Subclasses must implement:
    - name: The operation name (e.g., 'upcase')
    - kinds: Value kinds the operation is defined for
    - execute(): The operation logic
    """

    name: str = ""
    aliases: List[str] = []
    kinds: Tuple[ValueKind, ...] = ()
    arity: int = 0

    @abstractmethod
    def execute(self, value: Any, args: Sequence[Any]) -> Any:
        """
        Apply the operation.

        Args:
            value: The receiver
            args: Evaluated arguments, already checked against `arity`

        Returns:
            A new value
        """
        pass

    def validate_args(self, args: Sequence[Any]):
        """Validate argument count."""
        if len(args) != self.arity:
            raise TypeMismatch(
                f"{self.arity} argument(s)",
                f"{len(args)}",
                f"call to '{self.name}'"
            )

    def __repr__(self):
        return f"<Operation: {self.name}>"


class OperationRegistry:
    """
    Registry of operations keyed by (value kind, name).

    Also implements the rest of member access: mapping keys, record fields
    and positional indexes.
    """

    def __init__(self):
        self._operations: Dict[Tuple[ValueKind, str], Operation] = {}

    def register(self, operation: Operation):
        """Register an operation under its name and aliases for each of its kinds."""
        for kind in operation.kinds:
            self._operations[(kind, operation.name)] = operation

            for alias in getattr(operation, 'aliases', []):
                self._operations[(kind, alias)] = operation

    def get(self, kind: ValueKind, name: str) -> Optional[Operation]:
        """Get an operation by kind and name."""
        return self._operations.get((kind, name))

    def has(self, kind: ValueKind, name: str) -> bool:
        """Check if an operation exists."""
        return (kind, name) in self._operations

    def list_operations(self, kind: ValueKind) -> List[str]:
        """List operation names (aliases included) for a kind."""
        return sorted(name for (op_kind, name) in self._operations if op_kind == kind)

    def call(self, value: Any, name: str, args: Sequence[Any] = ()) -> Any:
        """
        Call an operation on a value.

        Raises:
            UndefinedOperation: If the value's kind has no such operation
            TypeMismatch: On a wrong argument count or an unusable value
        """
        kind = kind_of(value)
        operation = self.get(kind, name)
        if not operation:
            raise UndefinedOperation(kind.value, name)

        operation.validate_args(args)

        try:
            result = operation.execute(value, args)
        except TemplateError:
            raise
        except (ValueError, ArithmeticError) as e:
            raise TypeMismatch(f"value accepted by '{name}'", display(value), str(e)) from e

        if isinstance(result, int) and not isinstance(result, bool):
            check_integer(result, f"result of '{name}'")
        return result

    def member(self, value: Any, name: str, args: Sequence[Any] = ()) -> Any:
        """
        Resolve `value.name` or `value.name(args)`.

        Registered operations win over mapping keys of the same name.
        """
        kind = kind_of(value)

        if self.has(kind, name):
            return self.call(value, name, args)

        if not args:
            if kind == ValueKind.MAPPING:
                if name not in value:
                    raise MissingKey(name, 'mapping')
                return value[name]

            if kind == ValueKind.RECORD:
                try:
                    field_value = value.template_field(name)
                except KeyError:
                    raise MissingKey(name, type(value).__name__) from None
                return to_value(field_value)

        raise UndefinedOperation(kind.value, name)

    def index(self, value: Any, index: int) -> Any:
        """
        Resolve `value.N` on a list or pair.

        Raises:
            IndexOutOfBounds: If N is outside the list or pair
            UndefinedOperation: For kinds without positional access
        """
        kind = kind_of(value)

        if kind not in (ValueKind.LIST, ValueKind.PAIR):
            raise UndefinedOperation(kind.value, str(index))

        if index < 0 or index >= len(value):
            raise IndexOutOfBounds(index, len(value))

        return value[index]


# ============================================================================
# Number Operations
# ============================================================================

class AbsOperation(Operation):
    """
    Magnitude of a number.

    Usage: <%= (-25).abs %>
    """
    name = "abs"
    kinds = (ValueKind.INTEGER, ValueKind.FLOAT)

    def execute(self, value: Any, args: Sequence[Any]) -> Any:
        return abs(value)


class ToStringOperation(Operation):
    """
    Text form of a value, as output tags print it.

    Usage: <%= 54.5.to_string %>
    """
    name = "to_string"
    aliases = ["to_s"]
    kinds = (ValueKind.INTEGER, ValueKind.FLOAT, ValueKind.STRING, ValueKind.BOOLEAN)

    def execute(self, value: Any, args: Sequence[Any]) -> str:
        return display(value)


class ToFloatOperation(Operation):
    """Widen an integer to a float."""
    name = "to_f"
    aliases = ["to_float"]
    kinds = (ValueKind.INTEGER,)

    def execute(self, value: Any, args: Sequence[Any]) -> float:
        return float(value)


class ToIntegerOperation(Operation):
    """Truncate a float towards zero."""
    name = "to_i"
    aliases = ["to_integer"]
    kinds = (ValueKind.FLOAT,)

    def execute(self, value: Any, args: Sequence[Any]) -> int:
        return int(value)


class TimesOperation(Operation):
    """
    List of integers 0..n-1.

    Usage: <% for i in 3.times %><%= i %><% end %>  ->  012
    """
    name = "times"
    kinds = (ValueKind.INTEGER,)

    def execute(self, value: Any, args: Sequence[Any]) -> tuple:
        if value < 0:
            raise TypeMismatch("non-negative integer", str(value), "call to 'times'")
        return tuple(range(value))


class CeilOperation(Operation):
    """Round a float up to an integer."""
    name = "ceil"
    kinds = (ValueKind.FLOAT,)

    def execute(self, value: Any, args: Sequence[Any]) -> int:
        return math.ceil(value)


class FloorOperation(Operation):
    """Round a float down to an integer."""
    name = "floor"
    kinds = (ValueKind.FLOAT,)

    def execute(self, value: Any, args: Sequence[Any]) -> int:
        return math.floor(value)


class RoundOperation(Operation):
    """
    Round a float to the nearest integer, halves away from zero.

    Usage: <%= 2.5.round %>  ->  3
    """
    name = "round"
    kinds = (ValueKind.FLOAT,)

    def execute(self, value: Any, args: Sequence[Any]) -> int:
        if not math.isfinite(value):
            raise ValueError(f"cannot round {display(value)}")
        return int(Decimal(value).to_integral_value(rounding=ROUND_HALF_UP))


# ============================================================================
# String Operations
# ============================================================================

class UpcaseOperation(Operation):
    """
    Convert a string to uppercase.

    Usage: <%= name.upcase %>
    """
    name = "upcase"
    aliases = ["to_uppercase"]
    kinds = (ValueKind.STRING,)

    def execute(self, value: Any, args: Sequence[Any]) -> str:
        return value.upper()


class DowncaseOperation(Operation):
    """
    Convert a string to lowercase.

    Usage: <%= name.downcase %>
    """
    name = "downcase"
    aliases = ["to_lowercase"]
    kinds = (ValueKind.STRING,)

    def execute(self, value: Any, args: Sequence[Any]) -> str:
        return value.lower()


class TrimOperation(Operation):
    """Strip leading and trailing whitespace and newlines."""
    name = "trim"
    kinds = (ValueKind.STRING,)

    def execute(self, value: Any, args: Sequence[Any]) -> str:
        return value.strip()


class LengthOperation(Operation):
    """Number of characters, items or keys."""
    name = "len"
    aliases = ["length"]
    kinds = (ValueKind.STRING, ValueKind.LIST, ValueKind.MAPPING)

    def execute(self, value: Any, args: Sequence[Any]) -> int:
        return len(value)


# ============================================================================
# List Operations
# ============================================================================

class EnumerateOperation(Operation):
    """
    Pair every item with its 0-based index.

    Usage:
        <% for entry in items.enumerate %>
        <%= entry.0 %>: <%= entry.1 %>
        <% end %>
    """
    name = "enumerate"
    kinds = (ValueKind.LIST,)

    def execute(self, value: Any, args: Sequence[Any]) -> tuple:
        return tuple(Pair(index, item) for index, item in enumerate(value))


class ReverseOperation(Operation):
    """Items from last to first."""
    name = "reverse"
    aliases = ["rev"]
    kinds = (ValueKind.LIST,)

    def execute(self, value: Any, args: Sequence[Any]) -> tuple:
        return tuple(reversed(value))


# ============================================================================
# Mapping Operations
# ============================================================================

class KeysOperation(Operation):
    """Keys in iteration order."""
    name = "keys"
    kinds = (ValueKind.MAPPING,)

    def execute(self, value: Any, args: Sequence[Any]) -> tuple:
        return tuple(value.keys())


class ValuesOperation(Operation):
    """Values, in the same order as `keys`."""
    name = "values"
    kinds = (ValueKind.MAPPING,)

    def execute(self, value: Any, args: Sequence[Any]) -> tuple:
        return tuple(value.values())


class IterOperation(Operation):
    """
    Pair(key, value) for every entry.

    Usage:
        <% for entry in settings.iter %>
        <%= entry.0 %>=<%= entry.1 %>
        <% end %>
    """
    name = "iter"
    kinds = (ValueKind.MAPPING,)

    def execute(self, value: Any, args: Sequence[Any]) -> tuple:
        return tuple(Pair(key, item) for key, item in value.items())


# ============================================================================
# Default Registry
# ============================================================================

def create_default_operation_registry() -> OperationRegistry:
    """Create a registry with all default operations."""
    registry = OperationRegistry()

    # Number operations
    registry.register(AbsOperation())
    registry.register(ToStringOperation())
    registry.register(ToFloatOperation())
    registry.register(ToIntegerOperation())
    registry.register(TimesOperation())
    registry.register(CeilOperation())
    registry.register(FloorOperation())
    registry.register(RoundOperation())

    # String operations
    registry.register(UpcaseOperation())
    registry.register(DowncaseOperation())
    registry.register(TrimOperation())
    registry.register(LengthOperation())

    # List operations
    registry.register(EnumerateOperation())
    registry.register(ReverseOperation())

    # Mapping operations
    registry.register(KeysOperation())
    registry.register(ValuesOperation())
    registry.register(IterOperation())

    return registry


# Default instance
default_operation_registry = create_default_operation_registry()
