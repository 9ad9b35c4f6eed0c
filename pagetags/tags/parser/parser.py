"""
Parser for the Tag System

Converts tokens from the lexers into an Abstract Syntax Tree (AST).

Supports:
- Literal text
- Output: <%= user.name %>, <%- raw_html %>
- Conditionals: <% if cond %>...<% elsif cond %>...<% else %>...<% end %>
- Loops: <% for item in items %>...<% end %>
- Expressions: literals, names, member access (`a.b`, `a.b(x)`, `a.0`),
  global calls (`f(x)`), arithmetic, comparison and logic operators
"""

from dataclasses import dataclass, field
from typing import List, Optional

from pagetags.tags.errors import ParseError, NestingTooDeep
from pagetags.tags.values import INTEGER_MIN, INTEGER_MAX
from pagetags.tags.parser.lexer import TemplateLexer, CodeLexer, Token, TokenType, TagKind
from pagetags.tags.parser.ast import (
    TagNode,
    DocumentNode,
    TextNode,
    OutputNode,
    Branch,
    ConditionalNode,
    LoopNode,
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
    UnaryOpNode,
    MathOp,
    ComparisonOp,
    LogicalOp
)


@dataclass
class _OpenBlock:
    """An `if` or `for` whose `end` has not been seen yet."""
    keyword: str
    token: Token
    body: List[TagNode] = field(default_factory=list)
    # if
    condition: Optional[TagNode] = None
    branches: List[Branch] = field(default_factory=list)
    in_else: bool = False
    # for
    item_name: str = ""
    collection: Optional[TagNode] = None

    def close(self) -> TagNode:
        """Build the finished node."""
        if self.keyword == 'for':
            return LoopNode(
                item_name=self.item_name,
                collection=self.collection,
                body=tuple(self.body),
                position=self.token.position
            )

        if self.in_else:
            return ConditionalNode(
                branches=tuple(self.branches),
                else_body=tuple(self.body),
                position=self.token.position
            )

        return ConditionalNode(
            branches=tuple(self.branches) + (Branch(self.condition, tuple(self.body)),),
            position=self.token.position
        )


class TagParser:
    """
    Parser for template syntax.

    Statements are matched with a stack: `if` and `for` push, `end` pops
    whatever is on top. Expressions are parsed by recursive descent.
    """

    # Open if/for blocks
    MAX_NESTING_DEPTH = 128
    # Height of one expression tree, counting operators, member access and calls
    MAX_EXPRESSION_DEPTH = 64

    MATH_OPS = {
        TokenType.PLUS: MathOp.ADD,
        TokenType.MINUS: MathOp.SUB,
        TokenType.MULTIPLY: MathOp.MUL,
        TokenType.DIVIDE: MathOp.DIV,
        TokenType.MODULO: MathOp.MOD,
    }

    EQUALITY_OPS = {
        TokenType.EQUALS_EQUALS: ComparisonOp.EQ,
        TokenType.NOT_EQUALS: ComparisonOp.NE,
    }

    RELATIONAL_OPS = {
        TokenType.GT: ComparisonOp.GT,
        TokenType.GTE: ComparisonOp.GTE,
        TokenType.LT: ComparisonOp.LT,
        TokenType.LTE: ComparisonOp.LTE,
    }

    def __init__(self):
        self.tokens: List[Token] = []
        self.pos = 0
        self._depth = 0
        self._heights = {}
        self._tag_count = 0

    def parse(self, text: str) -> DocumentNode:
        """
        Parse a template into a DocumentNode AST.

        Args:
            text: Template source

        Returns:
            DocumentNode containing the parsed structure

        Raises:
            ParseError: On malformed tags, unmatched blocks or invalid expressions
        """
        template_tokens = TemplateLexer(text).tokenize()
        self._tag_count = 0

        root: List[TagNode] = []
        stack: List[_OpenBlock] = []
        index = 0

        while template_tokens[index].type != TokenType.EOF:
            token = template_tokens[index]

            if token.type == TokenType.TEXT:
                body = stack[-1].body if stack else root
                body.append(TextNode(content=token.value, position=token.position))
                index += 1
                continue

            # TAG_OPEN, CODE, TAG_CLOSE
            code = template_tokens[index + 1]
            index += 3
            self._tag_count += 1
            self._start_tag(code)

            if token.tag_kind == TagKind.CODE:
                self._parse_statement(stack, root)
            else:
                body = stack[-1].body if stack else root
                expression = self._parse_expression()
                self._expect_end_of_tag()
                body.append(OutputNode(
                    expression=expression,
                    escape=token.tag_kind == TagKind.ECHO_ESCAPED,
                    position=token.position
                ))

        if stack:
            block = stack[-1]
            raise ParseError(
                f"Unclosed '{block.keyword}' block",
                block.token.position,
                block.token.line,
                block.token.column
            )

        return DocumentNode(children=tuple(root))

    def extract_tags(self, text: str) -> List[str]:
        """
        Extract all tag strings from a template without parsing them.

        Args:
            text: Template source

        Returns:
            List of tag strings (including delimiters)
        """
        tags = []
        opening = None

        for token in TemplateLexer(text).tokenize():
            if token.type == TokenType.TAG_OPEN:
                opening = token.value
            elif token.type == TokenType.CODE:
                tags.append(f"{opening}{token.value}{TemplateLexer.CLOSE}")

        return tags

    def validate(self, text: str) -> dict:
        """
        Validate a template.

        Returns:
            Dict with 'valid', 'errors', 'warnings'
        """
        errors = []
        warnings = []

        try:
            self.parse(text)
            valid = True
        except ParseError as e:
            valid = False
            errors.append(str(e))

        return {
            'valid': valid,
            'errors': errors,
            'warnings': warnings
        }

    def get_tag_count(self) -> int:
        """Get count of tags found during last parse."""
        return self._tag_count

    # Statements

    def _start_tag(self, code: Token):
        """Tokenize the code of one tag and point the parser at it."""
        self.tokens = CodeLexer(code.value, code.position, code.line, code.column).tokenize()
        self.pos = 0
        self._depth = 0
        self._heights = {}

    def _parse_statement(self, stack: List[_OpenBlock], root: List[TagNode]):
        """Parse the statement in a <% %> tag and update the block stack."""
        token = self._current()

        if token.type == TokenType.IF:
            self._advance()
            condition = self._parse_expression()
            self._expect_end_of_tag()
            self._push(stack, _OpenBlock(keyword='if', token=token, condition=condition))
            return

        if token.type == TokenType.FOR:
            self._advance()
            item_token = self._expect(TokenType.IDENTIFIER)
            self._expect(TokenType.IN)
            collection = self._parse_expression()
            self._expect_end_of_tag()
            self._push(stack, _OpenBlock(
                keyword='for',
                token=token,
                item_name=item_token.value,
                collection=collection
            ))
            return

        if token.type == TokenType.ELSIF:
            self._advance()
            block = self._innermost_if(stack, token)
            condition = self._parse_expression()
            self._expect_end_of_tag()
            block.branches.append(Branch(block.condition, tuple(block.body)))
            block.condition = condition
            block.body = []
            return

        if token.type == TokenType.ELSE:
            self._advance()
            self._expect_end_of_tag()
            block = self._innermost_if(stack, token)
            block.branches.append(Branch(block.condition, tuple(block.body)))
            block.condition = None
            block.body = []
            block.in_else = True
            return

        if token.type == TokenType.END:
            self._advance()
            self._expect_end_of_tag()
            if not stack:
                raise self._error("Unexpected 'end' with no open block", token)
            node = stack.pop().close()
            body = stack[-1].body if stack else root
            body.append(node)
            return

        if token.type == TokenType.EOF:
            raise self._error("Empty tag", token)

        raise self._error(
            f"Expected statement (if, elsif, else, for, end), got {token.value!r}",
            token
        )

    def _push(self, stack: List[_OpenBlock], block: _OpenBlock):
        """Open a block, enforcing the nesting limit."""
        if len(stack) >= self.MAX_NESTING_DEPTH:
            token = block.token
            raise NestingTooDeep(self.MAX_NESTING_DEPTH, token.position, token.line, token.column)
        stack.append(block)

    def _innermost_if(self, stack: List[_OpenBlock], token: Token) -> _OpenBlock:
        """Return the open `if` an `elsif`/`else` belongs to."""
        if not stack:
            raise self._error(f"Unexpected '{token.value}' outside of 'if'", token)

        block = stack[-1]
        if block.keyword != 'if':
            raise self._error(
                f"Unexpected '{token.value}' inside '{block.keyword}' block",
                token
            )
        if block.in_else:
            raise self._error(f"Unexpected '{token.value}' after 'else'", token)

        return block

    # Expressions

    def _parse_expression(self) -> TagNode:
        """Parse a full expression."""
        return self._parse_logical_or()

    def _parse_logical_or(self) -> TagNode:
        """Parse OR expressions."""
        left = self._parse_logical_and()

        while self._check(TokenType.OR):
            token = self._advance()
            right = self._parse_logical_and()
            left = self._grow(
                BinaryOpNode(left=left, operator=LogicalOp.OR, right=right, position=token.position),
                token, left, right
            )

        return left

    def _parse_logical_and(self) -> TagNode:
        """Parse AND expressions."""
        left = self._parse_equality()

        while self._check(TokenType.AND):
            token = self._advance()
            right = self._parse_equality()
            left = self._grow(
                BinaryOpNode(left=left, operator=LogicalOp.AND, right=right, position=token.position),
                token, left, right
            )

        return left

    def _parse_equality(self) -> TagNode:
        """Parse == and != ."""
        left = self._parse_relational()

        while self._current().type in self.EQUALITY_OPS:
            token = self._advance()
            right = self._parse_relational()
            left = self._grow(
                BinaryOpNode(left=left, operator=self.EQUALITY_OPS[token.type], right=right, position=token.position),
                token, left, right
            )

        return left

    def _parse_relational(self) -> TagNode:
        """Parse <, <=, >, >= ."""
        left = self._parse_additive()

        while self._current().type in self.RELATIONAL_OPS:
            token = self._advance()
            right = self._parse_additive()
            left = self._grow(
                BinaryOpNode(left=left, operator=self.RELATIONAL_OPS[token.type], right=right, position=token.position),
                token, left, right
            )

        return left

    def _parse_additive(self) -> TagNode:
        """Parse addition and subtraction."""
        left = self._parse_multiplicative()

        while self._current().type in (TokenType.PLUS, TokenType.MINUS):
            token = self._advance()
            right = self._parse_multiplicative()
            left = self._grow(
                BinaryOpNode(left=left, operator=self.MATH_OPS[token.type], right=right, position=token.position),
                token, left, right
            )

        return left

    def _parse_multiplicative(self) -> TagNode:
        """Parse multiplication, division, modulo."""
        left = self._parse_unary()

        while self._current().type in (TokenType.MULTIPLY, TokenType.DIVIDE, TokenType.MODULO):
            token = self._advance()
            right = self._parse_unary()
            left = self._grow(
                BinaryOpNode(left=left, operator=self.MATH_OPS[token.type], right=right, position=token.position),
                token, left, right
            )

        return left

    def _parse_unary(self) -> TagNode:
        """Parse unary operators (-, +, !)."""
        token = self._current()
        self._depth += 1
        if self._depth > self.MAX_EXPRESSION_DEPTH:
            raise NestingTooDeep(self.MAX_EXPRESSION_DEPTH, token.position, token.line, token.column)

        try:
            if token.type in (TokenType.MINUS, TokenType.PLUS, TokenType.NOT):
                self._advance()
                operand = self._parse_unary()
                return self._grow(
                    UnaryOpNode(operator=token.value, operand=operand, position=token.position),
                    token, operand
                )

            return self._parse_postfix(self._parse_primary())
        finally:
            self._depth -= 1

    def _parse_postfix(self, node: TagNode) -> TagNode:
        """Parse member access chains: a.b, a.b(x, y), a.0"""
        while self._check(TokenType.DOT):
            self._advance()
            token = self._current()

            if token.type == TokenType.INTEGER:
                self._advance()
                node = self._grow(IndexNode(target=node, index=int(token.value), position=token.position), token, node)

            elif token.type == TokenType.IDENTIFIER:
                self._advance()
                arguments = ()
                if self._check(TokenType.LPAREN):
                    arguments = self._parse_arguments()
                node = self._grow(
                    MemberNode(target=node, name=token.value, arguments=arguments, position=token.position),
                    token, node, *arguments
                )

            else:
                raise self._error(f"Expected member name or index after '.', got {token.value!r}", token)

        return node

    def _parse_primary(self) -> TagNode:
        """Parse primary expressions (literals, names, calls, parentheses, lists)."""
        token = self._current()

        if token.type == TokenType.INTEGER:
            self._advance()
            value = int(token.value)
            if not INTEGER_MIN <= value <= INTEGER_MAX:
                raise self._error(f"Integer literal out of range: {token.value}", token)
            return NumberNode(value=value, position=token.position)

        if token.type == TokenType.FLOAT:
            self._advance()
            return NumberNode(value=float(token.value), position=token.position)

        if token.type == TokenType.STRING:
            self._advance()
            return StringNode(value=token.value, position=token.position)

        if token.type in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return BooleanNode(value=token.type == TokenType.TRUE, position=token.position)

        if token.type == TokenType.NIL:
            self._advance()
            return NullNode(position=token.position)

        # Identifier (variable or global function call)
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._check(TokenType.LPAREN):
                arguments = self._parse_arguments()
                return self._grow(
                    FunctionCallNode(name=token.value, arguments=arguments, position=token.position),
                    token, *arguments
                )
            return VariableNode(name=token.value, position=token.position)

        # Parenthesized expression
        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN)
            return expr

        if token.type == TokenType.LBRACKET:
            self._advance()
            items = self._parse_sequence(TokenType.RBRACKET)
            return self._grow(ListNode(items=items, position=token.position), token, *items)

        if token.type == TokenType.EOF:
            raise self._error("Expected expression, got end of tag", token)

        raise self._error(f"Unexpected token in expression: {token.value!r}", token)

    def _parse_arguments(self) -> tuple:
        """Parse a call's argument list: (arg1, arg2, ...)"""
        self._expect(TokenType.LPAREN)
        return self._parse_sequence(TokenType.RPAREN)

    def _parse_sequence(self, closing: TokenType) -> tuple:
        """Parse comma separated expressions up to and including `closing`."""
        items = []

        if not self._check(closing):
            items.append(self._parse_expression())

            while self._check(TokenType.COMMA):
                self._advance()
                if self._check(closing):
                    break
                items.append(self._parse_expression())

        self._expect(closing)
        return tuple(items)

    # Helper methods

    def _current(self) -> Token:
        """Get current token."""
        if self.pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        """Advance and return previous token."""
        token = self._current()
        if not self._is_at_end():
            self.pos += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        """Check if current token is of given type."""
        return self._current().type == token_type

    def _expect(self, token_type: TokenType) -> Token:
        """Expect current token to be of given type, advance, and return it."""
        token = self._current()
        if token.type != token_type:
            found = 'end of tag' if token.type == TokenType.EOF else repr(token.value)
            raise self._error(f"Expected {token_type.name}, got {found}", token)
        return self._advance()

    def _expect_end_of_tag(self):
        """The whole tag must have been consumed."""
        token = self._current()
        if token.type != TokenType.EOF:
            raise self._error(f"Unexpected {token.value!r} at end of tag", token)

    def _is_at_end(self) -> bool:
        """Check if we've reached end of tokens."""
        return self._current().type == TokenType.EOF

    def _grow(self, node: TagNode, token: Token, *children: TagNode) -> TagNode:
        """Record the height of a new expression node and enforce the depth limit."""
        height = 1 + max((self._heights.get(id(child), 1) for child in children), default=0)
        if height > self.MAX_EXPRESSION_DEPTH:
            raise NestingTooDeep(self.MAX_EXPRESSION_DEPTH, token.position, token.line, token.column)
        self._heights[id(node)] = height
        return node

    def _error(self, message: str, token: Token) -> ParseError:
        """Build a ParseError located at `token`."""
        return ParseError(message, token.position, token.line, token.column)
