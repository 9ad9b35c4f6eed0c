"""
Tag Parser Module

Provides lexing and parsing of template syntax into an Abstract Syntax Tree (AST).
"""

from pagetags.tags.parser.lexer import TemplateLexer, CodeLexer, Token, TokenType, TagKind
from pagetags.tags.parser.ast import (
    TagNode,
    DocumentNode,
    TextNode,
    OutputNode,
    ConditionalNode,
    LoopNode,
    Branch
)
from pagetags.tags.parser.parser import TagParser

__all__ = [
    'TemplateLexer',
    'CodeLexer',
    'Token',
    'TokenType',
    'TagKind',
    'TagParser',
    'TagNode',
    'DocumentNode',
    'TextNode',
    'OutputNode',
    'ConditionalNode',
    'LoopNode',
    'Branch'
]
