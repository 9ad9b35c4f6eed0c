"""
Expression Evaluator for the tag system.

Evaluates expression nodes against a scope without using eval(). Every
operator and member access is checked against the value kinds it accepts.
"""

from collections.abc import Mapping
from typing import Any
import math

from pagetags.tags.errors import (
    RenderError,
    UndefinedVariable,
    TypeMismatch,
    DivisionByZero,
    NestingTooDeep
)
from pagetags.tags.parser.ast import (
    TagNode,
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
from pagetags.tags.values import ValueKind, kind_of, is_truthy, check_integer
from pagetags.tags.engine.operations import default_operation_registry
from pagetags.tags.engine.functions import default_function_registry


NUMERIC_KINDS = (ValueKind.INTEGER, ValueKind.FLOAT)


class ExpressionEvaluator:
    """
    Evaluates expressions.

    Supports:
    - Arithmetic: +, -, *, / and % on numbers; string and list
      concatenation and repetition; string removal with -
    - Comparisons: ==, !=, >, <, >=, <=
    - Logical: &&, ||, !
    - Member access: value.operation, mapping.key, list.0
    - Global functions: encrypt_number(), ...

    Holds no per-render state, so one instance serves concurrent renders.
    """

    # Maximum recursion depth for safety
    MAX_DEPTH = 128

    def __init__(self, operation_registry=None, function_registry=None):
        self.operation_registry = operation_registry or default_operation_registry
        self.function_registry = function_registry or default_function_registry

    def evaluate(self, node: TagNode, scope: Mapping, depth: int = 0) -> Any:
        """
        Evaluate an expression node.

        Args:
            node: The AST node to evaluate
            scope: Loop bindings layered over the context
            depth: Current nesting depth

        Returns:
            The resulting value
        """
        if depth > self.MAX_DEPTH:
            raise NestingTooDeep(self.MAX_DEPTH, node.position)

        if isinstance(node, (NumberNode, StringNode, BooleanNode)):
            return node.value

        if isinstance(node, NullNode):
            return None

        if isinstance(node, VariableNode):
            return self._evaluate_variable(node, scope)

        if isinstance(node, MemberNode):
            target = self.evaluate(node.target, scope, depth + 1)
            args = [self.evaluate(arg, scope, depth + 1) for arg in node.arguments]
            return self.operation_registry.member(target, node.name, args)

        if isinstance(node, IndexNode):
            target = self.evaluate(node.target, scope, depth + 1)
            return self.operation_registry.index(target, node.index)

        if isinstance(node, FunctionCallNode):
            args = [self.evaluate(arg, scope, depth + 1) for arg in node.arguments]
            return self.function_registry.execute(node.name, args)

        if isinstance(node, BinaryOpNode):
            return self._evaluate_binary_op(node, scope, depth)

        if isinstance(node, UnaryOpNode):
            return self._evaluate_unary_op(node, scope, depth)

        if isinstance(node, ListNode):
            return tuple(self.evaluate(item, scope, depth + 1) for item in node.items)

        raise RenderError(f"Unknown expression node: {type(node).__name__}")

    def _evaluate_variable(self, node: VariableNode, scope: Mapping) -> Any:
        """Innermost loop binding first, then outer bindings, then the context."""
        if node.name not in scope:
            raise UndefinedVariable(node.name)
        return scope[node.name]

    def _evaluate_binary_op(self, node: BinaryOpNode, scope: Mapping, depth: int) -> Any:
        """Evaluate a binary operation."""
        op = node.operator

        # Short-circuit evaluation
        if op == LogicalOp.AND:
            if not is_truthy(self.evaluate(node.left, scope, depth + 1)):
                return False
            return is_truthy(self.evaluate(node.right, scope, depth + 1))

        if op == LogicalOp.OR:
            if is_truthy(self.evaluate(node.left, scope, depth + 1)):
                return True
            return is_truthy(self.evaluate(node.right, scope, depth + 1))

        left = self.evaluate(node.left, scope, depth + 1)
        right = self.evaluate(node.right, scope, depth + 1)

        if isinstance(op, MathOp):
            return self._apply_math_op(op, left, right)

        if isinstance(op, ComparisonOp):
            return self._apply_comparison_op(op, left, right)

        raise RenderError(f"Unknown operator: {op}")

    def _apply_math_op(self, op: MathOp, left: Any, right: Any) -> Any:
        """Apply a mathematical operation."""
        left_kind = kind_of(left)
        right_kind = kind_of(right)

        if left_kind in NUMERIC_KINDS and right_kind in NUMERIC_KINDS:
            if left_kind == ValueKind.INTEGER and right_kind == ValueKind.INTEGER:
                return check_integer(self._apply_integer_op(op, left, right), f"operator '{op.value}'")
            return self._apply_float_op(op, float(left), float(right))

        sequence_kinds = (ValueKind.STRING, ValueKind.LIST)

        if op == MathOp.ADD and left_kind == right_kind and left_kind in sequence_kinds:
            return left + right

        if op == MathOp.SUB and left_kind == right_kind == ValueKind.STRING:
            return left.replace(right, '') if right else left

        if op == MathOp.MUL:
            if left_kind in sequence_kinds and right_kind == ValueKind.INTEGER:
                return left * max(right, 0)
            if left_kind == ValueKind.INTEGER and right_kind in sequence_kinds:
                return right * max(left, 0)

        raise TypeMismatch(
            "numbers",
            f"{left_kind.value} {op.value} {right_kind.value}",
            f"operator '{op.value}'"
        )

    def _apply_integer_op(self, op: MathOp, left: int, right: int) -> int:
        """Integer arithmetic; / truncates towards zero and % takes the dividend's sign."""
        if op == MathOp.ADD:
            return left + right
        if op == MathOp.SUB:
            return left - right
        if op == MathOp.MUL:
            return left * right

        if right == 0:
            raise DivisionByZero(op.value)

        quotient = abs(left) // abs(right)
        if (left < 0) != (right < 0):
            quotient = -quotient

        if op == MathOp.DIV:
            return quotient
        return left - right * quotient

    def _apply_float_op(self, op: MathOp, left: float, right: float) -> float:
        """Float arithmetic."""
        if op == MathOp.ADD:
            return left + right
        if op == MathOp.SUB:
            return left - right
        if op == MathOp.MUL:
            return left * right

        if right == 0:
            raise DivisionByZero(op.value)

        if op == MathOp.DIV:
            return left / right
        return math.fmod(left, right)

    def _apply_comparison_op(self, op: ComparisonOp, left: Any, right: Any) -> bool:
        """Apply a comparison operation."""
        if op == ComparisonOp.EQ:
            return self._values_equal(left, right)

        if op == ComparisonOp.NE:
            return not self._values_equal(left, right)

        left_kind = kind_of(left)
        right_kind = kind_of(right)
        comparable = (
            (left_kind in NUMERIC_KINDS and right_kind in NUMERIC_KINDS)
            or left_kind == right_kind == ValueKind.STRING
        )
        if not comparable:
            raise TypeMismatch(
                "two numbers or two strings",
                f"{left_kind.value} and {right_kind.value}",
                f"operator '{op.value}'"
            )

        if op == ComparisonOp.GT:
            return left > right
        if op == ComparisonOp.GTE:
            return left >= right
        if op == ComparisonOp.LT:
            return left < right
        return left <= right

    def _values_equal(self, left: Any, right: Any) -> bool:
        """Equality by kind, element by element; integers and floats compare numerically."""
        left_kind = kind_of(left)
        right_kind = kind_of(right)

        if left_kind in NUMERIC_KINDS and right_kind in NUMERIC_KINDS:
            return left == right

        # True == 1 in Python, but not in templates
        if left_kind != right_kind:
            return False

        if left_kind in (ValueKind.LIST, ValueKind.PAIR):
            return len(left) == len(right) and all(
                self._values_equal(a, b) for a, b in zip(left, right)
            )

        if left_kind == ValueKind.MAPPING:
            return left.keys() == right.keys() and all(
                self._values_equal(left[key], right[key]) for key in left
            )

        return left == right

    def _evaluate_unary_op(self, node: UnaryOpNode, scope: Mapping, depth: int) -> Any:
        """Evaluate a unary operation."""
        operand = self.evaluate(node.operand, scope, depth + 1)

        if node.operator == '!':
            return not is_truthy(operand)

        kind = kind_of(operand)
        if kind not in NUMERIC_KINDS:
            raise TypeMismatch("number", kind.value, f"unary '{node.operator}'")

        if node.operator == '-':
            if kind == ValueKind.INTEGER:
                return check_integer(-operand, "unary '-'")
            return -operand
        return operand
