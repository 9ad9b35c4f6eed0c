"""
PageTags: ERB-style templates compiled once and rendered many times.
"""

from pagetags.tags import Template, TemplateCache, TemplateError, ParseError, RenderError
from pagetags.extension import PageTags

__all__ = [
    'Template',
    'TemplateCache',
    'TemplateError',
    'ParseError',
    'RenderError',
    'PageTags'
]
