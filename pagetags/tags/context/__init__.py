"""
Context Module for Tag System

Provides context building and record field access for host data.
"""

from pagetags.tags.context.builder import ContextBuilder, default_context_builder
from pagetags.tags.context.records import RecordFields, ModelRecord

__all__ = [
    'ContextBuilder',
    'default_context_builder',
    'RecordFields',
    'ModelRecord'
]
