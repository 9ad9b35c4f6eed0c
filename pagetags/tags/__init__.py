"""
Template Tag System for PageTags

This module provides an ERB-style template language with:
- Output tags: <%= value %> (HTML-escaped) and <%- value %> (raw)
- Member operations: <%= price.round %>, <%= name.upcase %>
- Conditionals: <% if a %>...<% elsif b %>...<% else %>...<% end %>
- Loops: <% for item in items %>...<% end %>
- Global functions: <%= encrypt_number(user.id) %>

Usage:
    from pagetags.tags import Template

    template = Template.from_source('<% for n in 3.times %><%= n %><% end %>')
    result = template.render()  # '012'
"""

from pagetags.tags.errors import (
    TemplateError,
    ParseError,
    NestingTooDeep,
    TemplateIOError,
    RenderError,
    UndefinedVariable,
    MissingKey,
    UndefinedOperation,
    TypeMismatch,
    IndexOutOfBounds,
    DivisionByZero,
    DecryptionError
)
from pagetags.tags.values import ValueKind, Pair, FieldAccess
from pagetags.tags.parser import TagParser
from pagetags.tags.engine import TagEvaluator
from pagetags.tags.context import ContextBuilder, RecordFields, ModelRecord
from pagetags.tags.template import Template
from pagetags.tags.cache import TemplateCache

__all__ = [
    'Template',
    'TemplateCache',
    'TagParser',
    'TagEvaluator',
    'ContextBuilder',
    'RecordFields',
    'ModelRecord',
    'ValueKind',
    'Pair',
    'FieldAccess',
    'TemplateError',
    'ParseError',
    'NestingTooDeep',
    'TemplateIOError',
    'RenderError',
    'UndefinedVariable',
    'MissingKey',
    'UndefinedOperation',
    'TypeMismatch',
    'IndexOutOfBounds',
    'DivisionByZero',
    'DecryptionError'
]
