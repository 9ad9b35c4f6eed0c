"""
Abstract Syntax Tree (AST) nodes for the tag system.

The AST represents the parsed structure of a template. Nodes are frozen and
bodies are tuples, so a compiled template can be shared between threads
without copying.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
from enum import Enum


class ComparisonOp(Enum):
    """Comparison operators."""
    EQ = '=='
    NE = '!='
    GT = '>'
    GTE = '>='
    LT = '<'
    LTE = '<='


class LogicalOp(Enum):
    """Logical operators for combining conditions."""
    AND = '&&'
    OR = '||'


class MathOp(Enum):
    """Mathematical operators."""
    ADD = '+'
    SUB = '-'
    MUL = '*'
    DIV = '/'
    MOD = '%'


@dataclass(frozen=True)
class TagNode:
    """Base class for all AST nodes."""
    position: int = 0


# Expressions

@dataclass(frozen=True)
class NumberNode(TagNode):
    """A numeric literal."""
    value: Union[int, float] = 0


@dataclass(frozen=True)
class StringNode(TagNode):
    """A string literal."""
    value: str = ""


@dataclass(frozen=True)
class BooleanNode(TagNode):
    """`true` or `false`."""
    value: bool = False


@dataclass(frozen=True)
class NullNode(TagNode):
    """`nil`."""
    pass


@dataclass(frozen=True)
class ListNode(TagNode):
    """
    A list literal.

    Example: [1, 2, name]
    """
    items: Tuple[TagNode, ...] = ()


@dataclass(frozen=True)
class VariableNode(TagNode):
    """
    A bare name, resolved against loop bindings then the context.

    Example: user
    """
    name: str = ""


@dataclass(frozen=True)
class MemberNode(TagNode):
    """
    A named member of a value: an operation or a mapping/record key.

    Example: name.upcase, user.email, list.enumerate, text.trim()

    Attributes:
        target: Expression the member is looked up on
        name: Member name
        arguments: Call arguments, if written with parentheses
    """
    target: TagNode = None
    name: str = ""
    arguments: Tuple[TagNode, ...] = ()


@dataclass(frozen=True)
class IndexNode(TagNode):
    """
    Positional access with an integer member.

    Example: list.5, pair.0
    """
    target: TagNode = None
    index: int = 0


@dataclass(frozen=True)
class FunctionCallNode(TagNode):
    """
    A call to a global function.

    Example: encrypt_number(user.id)
    """
    name: str = ""
    arguments: Tuple[TagNode, ...] = ()


@dataclass(frozen=True)
class BinaryOpNode(TagNode):
    """
    A binary operation (math, comparison or logic).

    Example: amount * 2, status == "active", a && b
    """
    left: TagNode = None
    operator: Union[MathOp, ComparisonOp, LogicalOp] = None
    right: TagNode = None


@dataclass(frozen=True)
class UnaryOpNode(TagNode):
    """
    A unary operation.

    Example: !active, -amount
    """
    operator: str = ""
    operand: TagNode = None


# Statements

@dataclass(frozen=True)
class TextNode(TagNode):
    """
    Literal text content (not a tag).

    Example: "Hello, " in "Hello, <%= name %>"
    """
    content: str = ""


@dataclass(frozen=True)
class OutputNode(TagNode):
    """
    An output tag.

    Example: <%= user.name %> (escape=True), <%- body %> (escape=False)
    """
    expression: TagNode = None
    escape: bool = True


@dataclass(frozen=True)
class Branch:
    """One `if`/`elsif` condition with its body."""
    condition: TagNode
    body: Tuple[TagNode, ...] = ()


@dataclass(frozen=True)
class ConditionalNode(TagNode):
    """
    A conditional block.

    Example:
        <% if amount > 1000 %>
        You get a discount!
        <% elsif amount > 100 %>
        Almost there.
        <% else %>
        No discount available.
        <% end %>
    """
    branches: Tuple[Branch, ...] = ()
    else_body: Optional[Tuple[TagNode, ...]] = None


@dataclass(frozen=True)
class LoopNode(TagNode):
    """
    A loop block.

    Example:
        <% for item in order.items %>
        - <%= item.name %>
        <% end %>
    """
    item_name: str = ""
    collection: TagNode = None
    body: Tuple[TagNode, ...] = ()


@dataclass(frozen=True)
class DocumentNode(TagNode):
    """
    Root node containing all parsed content.

    A document is a sequence of text and tag nodes.
    """
    children: Tuple[TagNode, ...] = ()


# Type alias for any expression node
ExpressionNode = Union[
    NumberNode,
    StringNode,
    BooleanNode,
    NullNode,
    ListNode,
    VariableNode,
    MemberNode,
    IndexNode,
    FunctionCallNode,
    BinaryOpNode,
    UnaryOpNode
]

# Type alias for any statement node
StatementNode = Union[TextNode, OutputNode, ConditionalNode, LoopNode]
