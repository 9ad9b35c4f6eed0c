"""
Tag Engine Module

Provides evaluation of parsed AST nodes.
"""

from pagetags.tags.engine.evaluator import TagEvaluator, default_evaluator
from pagetags.tags.engine.expressions import ExpressionEvaluator
from pagetags.tags.engine.operations import (
    Operation,
    OperationRegistry,
    create_default_operation_registry,
    default_operation_registry
)
from pagetags.tags.engine.functions import (
    TagFunction,
    FunctionRegistry,
    create_default_function_registry,
    default_function_registry
)

__all__ = [
    'TagEvaluator',
    'default_evaluator',
    'ExpressionEvaluator',
    'Operation',
    'OperationRegistry',
    'create_default_operation_registry',
    'default_operation_registry',
    'TagFunction',
    'FunctionRegistry',
    'create_default_function_registry',
    'default_function_registry'
]
