"""
Errors raised by the tag system.

Parse-time errors (ParseError and its subclasses, TemplateIOError) mean the
template itself is unusable and must never be cached. Render-time errors
(RenderError subclasses) depend on the data being rendered; the compiled
template stays valid.
"""

from typing import Any, Optional


class TemplateError(Exception):
    """Base class for all template errors."""
    pass


class ParseError(TemplateError):
    """Malformed tag, unmatched block terminator or invalid expression."""
    def __init__(self, reason: str, position: int = 0, line: int = 1, column: int = 1):
        self.reason = reason
        self.position = position
        self.line = line
        self.column = column
        # Set by Template.load once the source file is known
        self.path: Optional[str] = None
        super().__init__(f"{reason} at line {line}, column {column}")

    def __str__(self):
        message = super().__str__()
        if self.path:
            return f"{message} in {self.path}"
        return message


class NestingTooDeep(ParseError):
    """Blocks or sub-expressions nested beyond the supported depth."""
    def __init__(self, limit: int, position: int = 0, line: int = 1, column: int = 1):
        self.limit = limit
        super().__init__(f"Nesting deeper than {limit} levels", position, line, column)


class TemplateIOError(TemplateError):
    """Template source could not be read."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read template '{path}': {reason}")


class RenderError(TemplateError):
    """Error while evaluating a compiled template against a context."""
    pass


class UndefinedVariable(RenderError):
    """Name not bound by any loop or by the context."""
    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"Undefined variable: {name}")


class MissingKey(UndefinedVariable):
    """Member access on a mapping or record that has no such key."""
    def __init__(self, name: str, receiver: str = 'mapping'):
        self.receiver = receiver
        super().__init__(name, f"No key '{name}' in {receiver}")


class UndefinedOperation(RenderError):
    """No operation with this name for the receiver kind (or 'global')."""
    def __init__(self, receiver: str, name: str):
        self.receiver = receiver
        self.name = name
        super().__init__(f"Undefined operation '{name}' for {receiver}")


class TypeMismatch(RenderError):
    """A value of the wrong kind was given to an operation or statement."""
    def __init__(self, expected: str, found: str, context: Optional[str] = None):
        self.expected = expected
        self.found = found
        self.context = context
        message = f"Expected {expected}, found {found}"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class IndexOutOfBounds(RenderError):
    """List or pair index outside the valid range."""
    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Index {index} out of bounds for length {length}")


class DivisionByZero(RenderError):
    """Division or modulo by zero."""
    def __init__(self, operator: str):
        self.operator = operator
        super().__init__(f"Division by zero in '{operator}'")


class DecryptionError(RenderError):
    """An encrypted number was malformed or tampered with."""
    def __init__(self, reason: str, value: Any = None):
        self.reason = reason
        self.value = value
        super().__init__(f"Cannot decrypt number: {reason}")
