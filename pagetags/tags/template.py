"""
Compiled templates.

A Template pairs a parsed document with where it came from. It is never
modified after creation, so one instance can be rendered by any number of
threads at once.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union
import logging

from pagetags.tags.errors import ParseError, TemplateIOError
from pagetags.tags.parser import TagParser
from pagetags.tags.parser.ast import DocumentNode
from pagetags.tags.context import default_context_builder
from pagetags.tags.engine import default_evaluator

logger = logging.getLogger(__name__)

INLINE_ORIGIN = '<inline>'


def resolve_path(path: Union[str, Path], root: Union[str, Path, None] = None) -> Path:
    """
    Canonical form of a template path.

    Relative paths are resolved against `root`, or the current working
    directory when no root is given.
    """
    path = Path(path)
    if root is not None and not path.is_absolute():
        path = Path(root) / path
    return path.resolve()


@dataclass(frozen=True)
class Template:
    """
    A compiled template.

    Usage:
        template = Template.from_source('Hello <%= name.upcase %>!')
        template.render(name='world')  # 'Hello WORLD!'
    """

    document: DocumentNode
    origin: str = INLINE_ORIGIN

    @classmethod
    def from_source(cls, text: str, origin: str = INLINE_ORIGIN) -> 'Template':
        """
        Compile template text.

        Raises:
            ParseError: If the text is not a valid template
        """
        return cls(document=TagParser().parse(text), origin=origin)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Template':
        """
        Read and compile a template file.

        Args:
            path: Template path, relative paths resolve against the cwd

        Raises:
            TemplateIOError: If the file cannot be read or is not UTF-8
            ParseError: If the file is not a valid template
        """
        resolved = resolve_path(path)

        try:
            text = resolved.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            raise TemplateIOError(str(resolved), f"not valid UTF-8 ({e.reason})") from e
        except OSError as e:
            raise TemplateIOError(str(resolved), e.strerror or str(e)) from e

        try:
            template = cls.from_source(text, origin=str(resolved))
        except ParseError as e:
            e.path = str(resolved)
            raise

        logger.debug(f"Compiled template {resolved}")
        return template

    def render(self, context: Any = None, evaluator=None, **variables) -> str:
        """
        Render the template.

        Args:
            context: Dict of variables or an object with to_template_context()
            evaluator: TagEvaluator to use (default: the shared one)
            **variables: Extra variables, overriding keys of context

        Raises:
            RenderError: If evaluation fails; no partial output is returned
        """
        bindings = default_context_builder.build(context, **variables)
        return (evaluator or default_evaluator).render(self.document, bindings)


def compile_path(path: Union[str, Path]) -> Template:
    """Default cache compiler: read and compile the file at path."""
    return Template.load(path)
