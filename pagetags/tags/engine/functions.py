"""
Global functions for the tag system.

Global functions are called by name, not on a value:
<%= encrypt_number(user.id) %>
<%= decrypt_number(token) %>
<%- turbo_head() %>

They live in their own namespace: a context variable called
`encrypt_number` does not shadow the function, and `x.encrypt_number`
is an operation lookup, not a call to it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from pagetags.tags.errors import UndefinedOperation, TypeMismatch
from pagetags.tags.values import ValueKind, kind_of
from pagetags.utils.encryption import NumberCipher
from pagetags.utils.static_content import StaticContent


class TagFunction(ABC):
    """Base class for global functions."""

    name: str = ""
    min_args: int = 0
    max_args: int = None  # None means unlimited

    @abstractmethod
    def execute(self, args: Sequence[Any]) -> Any:
        """Execute the function with evaluated arguments."""
        pass

    def validate_args(self, args: Sequence[Any]):
        """Validate argument count."""
        if len(args) < self.min_args:
            raise TypeMismatch(
                f"at least {self.min_args} argument(s)",
                f"{len(args)}",
                f"call to '{self.name}'"
            )
        if self.max_args is not None and len(args) > self.max_args:
            raise TypeMismatch(
                f"at most {self.max_args} argument(s)",
                f"{len(args)}",
                f"call to '{self.name}'"
            )

    def expect_kind(self, value: Any, kind: ValueKind) -> Any:
        """Check the kind of an argument."""
        found = kind_of(value)
        if found != kind:
            raise TypeMismatch(kind.value, found.value, f"argument to '{self.name}'")
        return value


class FunctionRegistry:
    """Registry of available global functions."""

    def __init__(self):
        self._functions: Dict[str, TagFunction] = {}

    def register(self, func: TagFunction):
        """Register a function."""
        self._functions[func.name] = func

    def get(self, name: str) -> Optional[TagFunction]:
        """Get a function by name."""
        return self._functions.get(name)

    def has(self, name: str) -> bool:
        """Check if a function exists."""
        return name in self._functions

    def list_functions(self) -> List[str]:
        """List all registered function names."""
        return sorted(self._functions)

    def execute(self, name: str, args: Sequence[Any]) -> Any:
        """
        Execute a function by name.

        Raises:
            UndefinedOperation: With receiver 'global' if no such function
        """
        func = self.get(name)
        if not func:
            raise UndefinedOperation('global', name)

        func.validate_args(args)
        return func.execute(args)


# ============================================================================
# Number Obfuscation
# ============================================================================

class EncryptNumberFunction(TagFunction):
    """
    Encrypt an integer id for use in URLs.

    Usage:
        <a href="/users/<%= encrypt_number(user.id) %>">
    """
    name = "encrypt_number"
    min_args = 1
    max_args = 1

    def __init__(self, cipher: NumberCipher):
        self.cipher = cipher

    def execute(self, args: Sequence[Any]) -> str:
        number = self.expect_kind(args[0], ValueKind.INTEGER)
        return self.cipher.encrypt_number(number)


class DecryptNumberFunction(TagFunction):
    """
    Decrypt a token made by encrypt_number.

    Raises DecryptionError on malformed or tampered tokens.
    """
    name = "decrypt_number"
    min_args = 1
    max_args = 1

    def __init__(self, cipher: NumberCipher):
        self.cipher = cipher

    def execute(self, args: Sequence[Any]) -> int:
        token = self.expect_kind(args[0], ValueKind.STRING)
        return self.cipher.decrypt_number(token)


# ============================================================================
# Static Snippets
# ============================================================================

class TurboHeadFunction(TagFunction):
    """
    Script tags for the page head.

    Usage: <%- turbo_head() %>
    """
    name = "turbo_head"
    min_args = 0
    max_args = 0

    def __init__(self, static_content: StaticContent):
        self.static_content = static_content

    def execute(self, args: Sequence[Any]) -> str:
        return self.static_content.turbo_head()


# ============================================================================
# Default Registry
# ============================================================================

def create_default_function_registry(
    cipher: Optional[NumberCipher] = None,
    static_content: Optional[StaticContent] = None
) -> FunctionRegistry:
    """
    Create a registry with all default functions.

    Args:
        cipher: Number cipher (default: keyed from Config)
        static_content: Snippet source (default: from Config)
    """
    cipher = cipher or NumberCipher()
    static_content = static_content or StaticContent()

    registry = FunctionRegistry()

    registry.register(EncryptNumberFunction(cipher))
    registry.register(DecryptNumberFunction(cipher))
    registry.register(TurboHeadFunction(static_content))

    return registry


# Default instance
default_function_registry = create_default_function_registry()
