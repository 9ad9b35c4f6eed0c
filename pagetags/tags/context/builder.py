"""
Context Builder for the tag system.

Builds the read-only context a template is rendered against.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict

from pagetags.tags.errors import TypeMismatch
from pagetags.tags.values import to_value


class ContextBuilder:
    """
    Builds evaluation context from host data.

    The context is a read-only mapping of top-level names to template
    values. It can be built from:
    - A dict of variables
    - Any object with a `to_template_context()` method returning a dict
    - Keyword arguments, which override keys of the above

    Example:
        builder = ContextBuilder()
        context = builder.build({'user': user_record}, title='Profile')
    """

    def build(self, data: Any = None, **variables) -> Mapping:
        """
        Build a context.

        Args:
            data: Dict of variables or an object with to_template_context()
            **variables: Extra variables

        Returns:
            Read-only mapping of converted values

        Raises:
            TypeMismatch: If data is not a mapping, or a value has no
                template representation
        """
        bindings: Dict[str, Any] = {}

        if data is not None:
            if hasattr(data, 'to_template_context'):
                data = data.to_template_context()

            if not isinstance(data, Mapping):
                raise TypeMismatch('mapping', type(data).__name__, 'template context')

            bindings.update(data)

        bindings.update(variables)

        return MappingProxyType({str(key): to_value(value) for key, value in bindings.items()})


# Default instance
default_context_builder = ContextBuilder()
