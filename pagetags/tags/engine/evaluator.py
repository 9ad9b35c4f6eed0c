"""
Tag Evaluator for the tag system.

Renders a parsed document against a context.
"""

from collections import ChainMap
from collections.abc import Mapping
from typing import Any, List, Sequence

from markupsafe import escape

from pagetags.tags.errors import RenderError, TypeMismatch, NestingTooDeep
from pagetags.tags.parser.ast import (
    TagNode,
    DocumentNode,
    TextNode,
    OutputNode,
    ConditionalNode,
    LoopNode
)
from pagetags.tags.values import ValueKind, kind_of, display, is_truthy
from pagetags.tags.engine.expressions import ExpressionEvaluator


class TagEvaluator:
    """
    Evaluates a parsed document into final output.

    Handles:
    - Text copied as-is
    - Output tags, HTML-escaped unless raw
    - Conditional processing
    - Loop expansion

    The evaluator keeps nothing between calls: output goes to a buffer owned
    by each render() call and loop variables live in a ChainMap layered over
    the caller's context, so the context is never modified and the same
    evaluator can render on many threads at once.
    """

    # Safety limit for hand-built documents; parsed ones stay well below it
    MAX_DEPTH = 128

    def __init__(self, operation_registry=None, function_registry=None):
        self.expressions = ExpressionEvaluator(operation_registry, function_registry)

    def render(self, document: DocumentNode, context: Mapping) -> str:
        """
        Render a document.

        Args:
            document: The compiled document
            context: Top-level variable bindings

        Returns:
            The rendered text

        Raises:
            RenderError: On the first failing expression; nothing partial is returned
        """
        parts: List[str] = []
        self._render_nodes(document.children, ChainMap(context), parts, 0)
        return ''.join(parts)

    def evaluate(self, node: TagNode, context: Mapping) -> Any:
        """Evaluate a single expression node against a context."""
        return self.expressions.evaluate(node, ChainMap(context))

    def _render_nodes(self, nodes: Sequence[TagNode], scope: ChainMap, parts: List[str], depth: int):
        for node in nodes:
            if isinstance(node, TextNode):
                parts.append(node.content)

            elif isinstance(node, OutputNode):
                parts.append(self._render_output(node, scope))

            elif isinstance(node, ConditionalNode):
                self._check_depth(node, depth)
                self._render_conditional(node, scope, parts, depth + 1)

            elif isinstance(node, LoopNode):
                self._check_depth(node, depth)
                self._render_loop(node, scope, parts, depth + 1)

            else:
                raise RenderError(f"Unknown node type: {type(node).__name__}")

    def _render_output(self, node: OutputNode, scope: ChainMap) -> str:
        """Evaluate an output tag and convert the value to text."""
        text = display(self.expressions.evaluate(node.expression, scope))
        if node.escape:
            return str(escape(text))
        return text

    def _render_conditional(self, node: ConditionalNode, scope: ChainMap, parts: List[str], depth: int):
        """Render the first branch whose condition holds, else the else body."""
        for branch in node.branches:
            if is_truthy(self.expressions.evaluate(branch.condition, scope)):
                self._render_nodes(branch.body, scope, parts, depth)
                return

        if node.else_body is not None:
            self._render_nodes(node.else_body, scope, parts, depth)

    def _render_loop(self, node: LoopNode, scope: ChainMap, parts: List[str], depth: int):
        """Render the body once per list item with the item bound by name."""
        collection = self.expressions.evaluate(node.collection, scope)

        kind = kind_of(collection)
        if kind != ValueKind.LIST:
            raise TypeMismatch(ValueKind.LIST.value, kind.value, f"for {node.item_name} in ...")

        for item in collection:
            self._render_nodes(node.body, scope.new_child({node.item_name: item}), parts, depth)

    def _check_depth(self, node: TagNode, depth: int):
        if depth >= self.MAX_DEPTH:
            raise NestingTooDeep(self.MAX_DEPTH, node.position)


# Default instance
default_evaluator = TagEvaluator()
