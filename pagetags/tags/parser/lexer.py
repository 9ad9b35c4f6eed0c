"""
Lexers for the tag system.

Tokenizes template source in two passes:

- TemplateLexer splits source into literal text and tags:
  TEXT, TAG_OPEN, CODE, TAG_CLOSE, EOF
- CodeLexer tokenizes the CODE between a tag's delimiters into
  literals, identifiers, keywords and operators

Supported tags:
- Statements: <% if x %>, <% for item in items %>, <% end %>
- Escaped output: <%= expression %>
- Raw output: <%- expression %>
"""

from enum import Enum
from dataclasses import dataclass
from typing import List, Optional

from pagetags.tags.errors import ParseError


class TagKind(Enum):
    """Kinds of tag, by opening delimiter."""
    CODE = '<%'
    ECHO_ESCAPED = '<%='
    ECHO_RAW = '<%-'


class TokenType(Enum):
    """Token types for both lexers."""
    # Template level
    TEXT = 'TEXT'
    TAG_OPEN = 'TAG_OPEN'       # <%, <%=, <%-
    CODE = 'CODE'               # raw content between delimiters
    TAG_CLOSE = 'TAG_CLOSE'     # %>

    # Literals
    INTEGER = 'INTEGER'
    FLOAT = 'FLOAT'
    STRING = 'STRING'
    IDENTIFIER = 'IDENTIFIER'

    # Delimiters
    DOT = 'DOT'                 # .
    COMMA = 'COMMA'             # ,
    LPAREN = 'LPAREN'           # (
    RPAREN = 'RPAREN'           # )
    LBRACKET = 'LBRACKET'       # [
    RBRACKET = 'RBRACKET'       # ]

    # Comparison and logic
    EQUALS_EQUALS = 'EQUALS_EQUALS'  # ==
    NOT_EQUALS = 'NOT_EQUALS'   # !=
    GT = 'GT'                   # >
    GTE = 'GTE'                 # >=
    LT = 'LT'                   # <
    LTE = 'LTE'                 # <=
    AND = 'AND'                 # &&
    OR = 'OR'                   # ||
    NOT = 'NOT'                 # !

    # Math operators
    PLUS = 'PLUS'               # +
    MINUS = 'MINUS'             # -
    MULTIPLY = 'MULTIPLY'       # *
    DIVIDE = 'DIVIDE'           # /
    MODULO = 'MODULO'           # %

    # Keywords
    IF = 'IF'
    ELSIF = 'ELSIF'
    ELSE = 'ELSE'
    FOR = 'FOR'
    IN = 'IN'
    END = 'END'
    TRUE = 'TRUE'
    FALSE = 'FALSE'
    NIL = 'NIL'

    # End of input
    EOF = 'EOF'


@dataclass(frozen=True)
class Token:
    """A token produced by one of the lexers."""
    type: TokenType
    value: str
    position: int
    line: int = 1
    column: int = 1
    tag_kind: Optional[TagKind] = None

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


class _Scanner:
    """Character cursor with line/column tracking."""

    def __init__(self, text: str, position: int = 0, line: int = 1, column: int = 1):
        self.text = text
        self.pos = 0
        self.offset = position
        self.line = line
        self.column = column

    def _current(self) -> str:
        """Get current character."""
        if self.pos >= len(self.text):
            return ''
        return self.text[self.pos]

    def _peek(self, count: int = 1) -> str:
        """Peek ahead without advancing."""
        return self.text[self.pos:self.pos + count]

    def _advance(self) -> str:
        """Advance position and return current character."""
        if self.pos >= len(self.text):
            return ''

        char = self.text[self.pos]
        self.pos += 1

        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1

        return char

    def _position(self) -> int:
        """Absolute offset of the cursor in the template source."""
        return self.offset + self.pos


class TemplateLexer(_Scanner):
    """
    Splits template source into text and tags.

    Delimiters do not nest. Quoted strings inside a tag may contain `%>`.
    """

    OPEN = '<%'
    CLOSE = '%>'

    def __init__(self, text: str):
        super().__init__(text)
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """
        Tokenize the entire template.

        Returns:
            List of tokens ending with EOF

        Raises:
            ParseError: If a tag is not closed before end of input
        """
        self.tokens = []
        self.pos = 0
        self.line = 1
        self.column = 1

        while self.pos < len(self.text):
            self._tokenize_text()
            if self._peek(2) == self.OPEN:
                self._tokenize_tag()

        self.tokens.append(Token(TokenType.EOF, '', self._position(), self.line, self.column))
        return self.tokens

    def _tokenize_text(self):
        """Collect text until we hit <% or end of input."""
        start_pos = self.pos
        start_line = self.line
        start_col = self.column

        while self.pos < len(self.text) and self._peek(2) != self.OPEN:
            self._advance()

        if self.pos > start_pos:
            self.tokens.append(Token(
                TokenType.TEXT,
                self.text[start_pos:self.pos],
                start_pos,
                start_line,
                start_col
            ))

    def _tokenize_tag(self):
        """Tokenize one tag: opening delimiter, raw code and closing delimiter."""
        open_pos = self.pos
        open_line = self.line
        open_col = self.column

        self._advance()  # <
        self._advance()  # %

        kind = TagKind.CODE
        if self._current() == '=':
            kind = TagKind.ECHO_ESCAPED
            self._advance()
        elif self._current() == '-':
            kind = TagKind.ECHO_RAW
            self._advance()

        self.tokens.append(Token(
            TokenType.TAG_OPEN,
            kind.value,
            open_pos,
            open_line,
            open_col,
            tag_kind=kind
        ))

        code_pos = self.pos
        code_line = self.line
        code_col = self.column
        quote = None

        while True:
            if self.pos >= len(self.text):
                raise ParseError("Unclosed tag", open_pos, open_line, open_col)

            char = self._current()

            if quote:
                if char == '\\':
                    self._advance()
                elif char == quote:
                    quote = None
                self._advance()
                continue

            if self._peek(2) == self.CLOSE:
                break

            if char in ('"', "'"):
                quote = char
            self._advance()

        self.tokens.append(Token(
            TokenType.CODE,
            self.text[code_pos:self.pos],
            code_pos,
            code_line,
            code_col,
            tag_kind=kind
        ))

        close_pos = self.pos
        close_line = self.line
        close_col = self.column
        self._advance()  # %
        self._advance()  # >
        self.tokens.append(Token(TokenType.TAG_CLOSE, self.CLOSE, close_pos, close_line, close_col))


class CodeLexer(_Scanner):
    """
    Lexer for the code inside a tag.

    Positions are reported relative to the whole template, so errors point
    at the right place in the source file.
    """

    KEYWORDS = {
        'if': TokenType.IF,
        'elsif': TokenType.ELSIF,
        'else': TokenType.ELSE,
        'for': TokenType.FOR,
        'in': TokenType.IN,
        'end': TokenType.END,
        'true': TokenType.TRUE,
        'false': TokenType.FALSE,
        'nil': TokenType.NIL,
    }

    TWO_CHAR_OPERATORS = {
        '==': TokenType.EQUALS_EQUALS,
        '!=': TokenType.NOT_EQUALS,
        '>=': TokenType.GTE,
        '<=': TokenType.LTE,
        '&&': TokenType.AND,
        '||': TokenType.OR,
    }

    SINGLE_CHAR_TOKENS = {
        '.': TokenType.DOT,
        ',': TokenType.COMMA,
        '(': TokenType.LPAREN,
        ')': TokenType.RPAREN,
        '[': TokenType.LBRACKET,
        ']': TokenType.RBRACKET,
        '>': TokenType.GT,
        '<': TokenType.LT,
        '!': TokenType.NOT,
        '+': TokenType.PLUS,
        '-': TokenType.MINUS,
        '*': TokenType.MULTIPLY,
        '/': TokenType.DIVIDE,
        '%': TokenType.MODULO,
    }

    def __init__(self, code: str, position: int = 0, line: int = 1, column: int = 1):
        super().__init__(code, position, line, column)
        self.tokens: List[Token] = []

    def tokenize(self) -> List[Token]:
        """
        Tokenize the code.

        Returns:
            List of tokens ending with EOF

        Raises:
            ParseError: On unexpected characters or unterminated strings
        """
        self.tokens = []

        while True:
            self._skip_whitespace()
            if self.pos >= len(self.text):
                break
            self._tokenize_next()

        self.tokens.append(Token(TokenType.EOF, '', self._position(), self.line, self.column))
        return self.tokens

    def _tokenize_next(self):
        """Tokenize a single token at the cursor."""
        char = self._current()
        pair = self._peek(2)

        # Two-character operators (must check before single char)
        if pair in self.TWO_CHAR_OPERATORS:
            self._emit(self.TWO_CHAR_OPERATORS[pair], pair)

        elif char in self.SINGLE_CHAR_TOKENS:
            self._emit(self.SINGLE_CHAR_TOKENS[char], char)

        # String literals
        elif char == '"' or char == "'":
            self._read_string(char)

        # Numbers
        elif char.isdigit():
            self._read_number()

        # Identifiers and keywords
        elif char.isalpha() or char == '_':
            self._read_identifier()

        else:
            raise ParseError(f"Unexpected character: {char!r}", self._position(), self.line, self.column)

    def _emit(self, token_type: TokenType, text: str):
        """Consume `text` and append a token for it."""
        start_pos = self._position()
        start_line = self.line
        start_col = self.column

        for _ in text:
            self._advance()

        self.tokens.append(Token(token_type, text, start_pos, start_line, start_col))

    def _read_string(self, quote_char: str):
        """Read a string literal."""
        start_pos = self._position()
        start_line = self.line
        start_col = self.column

        self._advance()  # Opening quote
        chars = []

        while self.pos < len(self.text):
            char = self._current()

            if char == quote_char:
                self._advance()  # Closing quote
                self.tokens.append(Token(
                    TokenType.STRING,
                    ''.join(chars),
                    start_pos,
                    start_line,
                    start_col
                ))
                return

            if char == '\\' and self.pos + 1 < len(self.text):
                # Escape sequence
                self._advance()
                next_char = self._advance()
                if next_char == 'n':
                    chars.append('\n')
                elif next_char == 't':
                    chars.append('\t')
                elif next_char == 'r':
                    chars.append('\r')
                else:
                    chars.append(next_char)
            else:
                chars.append(self._advance())

        raise ParseError("Unterminated string", start_pos, start_line, start_col)

    def _read_number(self):
        """
        Read a number literal (int or float).

        Right after a dot only digits are read, so `list.1` is an index and
        `pair.0.1` chains two indexes.
        """
        start_pos = self._position()
        start_line = self.line
        start_col = self.column
        chars = []
        has_dot = False
        after_dot = bool(self.tokens) and self.tokens[-1].type == TokenType.DOT

        while self.pos < len(self.text):
            char = self._current()

            if char.isdigit():
                chars.append(self._advance())
            elif char == '.' and not has_dot and not after_dot:
                # Check if next char is also a digit (to distinguish from dot access)
                if self.pos + 1 < len(self.text) and self.text[self.pos + 1].isdigit():
                    has_dot = True
                    chars.append(self._advance())
                else:
                    break
            else:
                break

        self.tokens.append(Token(
            TokenType.FLOAT if has_dot else TokenType.INTEGER,
            ''.join(chars),
            start_pos,
            start_line,
            start_col
        ))

    def _read_identifier(self):
        """Read an identifier or keyword."""
        start_pos = self._position()
        start_line = self.line
        start_col = self.column
        chars = []

        while self.pos < len(self.text):
            char = self._current()
            if char.isalnum() or char == '_':
                chars.append(self._advance())
            else:
                break

        value = ''.join(chars)

        # Keywords are plain names after a dot: `hash.end` is a member
        token_type = TokenType.IDENTIFIER
        if not (self.tokens and self.tokens[-1].type == TokenType.DOT):
            token_type = self.KEYWORDS.get(value, TokenType.IDENTIFIER)

        self.tokens.append(Token(
            token_type,
            value,
            start_pos,
            start_line,
            start_col
        ))

    def _skip_whitespace(self):
        """Skip whitespace characters inside tags."""
        while self.pos < len(self.text) and self.text[self.pos] in ' \t\n\r':
            self._advance()
