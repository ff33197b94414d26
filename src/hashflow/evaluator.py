"""Evaluator for hashflow conditions and operands.

Walks expression nodes and computes their values against a context,
the render's defined variables and a pipe registry.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from hashflow.accessor import access_deep_value
from hashflow.comparators import compare
from hashflow.errors import EvaluationError, TemplateSyntaxError
from hashflow.parser import (
    And,
    ASTNode,
    Comparison,
    IfBlock,
    Literal,
    Not,
    Operand,
    Or,
    PipeCall,
    VariableRef,
    parse,
)
from hashflow.pipes import PipeRegistry


@dataclass
class EvaluationContext:
    """Context for expression evaluation.

    Attributes:
        variables: Caller context, plus loop bindings inside a #for body
        defined_vars: Variables bound by #var during the current render
        pipes: Registry used to resolve pipe names
    """

    variables: Mapping[str, Any]
    defined_vars: Mapping[str, Any] = field(default_factory=dict)
    pipes: PipeRegistry = field(default_factory=PipeRegistry)


class Evaluator:
    """Evaluates condition and operand nodes against a context.

    Usage:
        ctx = EvaluationContext(variables={"age": 20})
        evaluator = Evaluator(ctx)
        result = evaluator.evaluate(condition)
    """

    def __init__(self, context: EvaluationContext):
        self.context = context

    def evaluate(self, node: ASTNode) -> Any:
        """Evaluate an expression node and return the result."""
        method_name = f"_eval_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node)

    # -------------------------------------------------------------------------
    # Node type evaluators
    # -------------------------------------------------------------------------

    def _eval_or(self, node: Or) -> bool:
        return self.evaluate(node.left) or self.evaluate(node.right)

    def _eval_and(self, node: And) -> bool:
        return self.evaluate(node.left) and self.evaluate(node.right)

    def _eval_not(self, node: Not) -> bool:
        return not self.evaluate(node.operand)

    def _eval_comparison(self, node: Comparison) -> bool:
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        return compare(left, node.operator, right)

    def _eval_operand(self, node: Operand) -> Any:
        value = self.evaluate(node.source)
        for pipe in node.pipes:
            value = self._apply_pipe(pipe, value)
        return value

    def _eval_literal(self, node: Literal) -> Any:
        return node.value

    def _eval_variableref(self, node: VariableRef) -> Any:
        """Resolve a variable path, defined variables first."""
        if node.root in self.context.defined_vars:
            return access_deep_value(self.context.defined_vars, node.keys)
        return access_deep_value(self.context.variables, node.keys)

    def _apply_pipe(self, call: PipeCall, value: Any) -> Any:
        pipe = self.context.pipes.resolve(call.name)
        try:
            return pipe(value, *call.args)
        except EvaluationError:
            raise
        except Exception as e:
            raise EvaluationError(
                f"Pipe '{call.name}' failed at line {call.line}: {e}"
            ) from e


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def evaluate_condition(
    condition: str,
    variables: Mapping[str, Any],
    pipes: PipeRegistry | None = None,
) -> bool:
    """Evaluate a standalone condition string.

    Example:
        evaluate_condition(":age >= 18 && :name <> blank", {"age": 20, "name": "x"})
        # True

    Raises:
        TemplateSyntaxError: If the condition is malformed
    """
    if "\n" in condition:
        raise TemplateSyntaxError("A condition must be a single line")
    template = parse(f"#if {condition}\n#fi")
    block = template.body[0]
    if not isinstance(block, IfBlock) or len(template.body) != 1:
        raise TemplateSyntaxError(f"Invalid condition '{condition}'")
    ctx = EvaluationContext(variables=variables, pipes=pipes or PipeRegistry())
    return bool(Evaluator(ctx).evaluate(block.condition))
