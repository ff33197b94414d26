"""Interpreter for hashflow block trees.

Renders a parsed template against a context. All per-render state lives
in an ``EvaluationState`` threaded through the walk, so one Interpreter
(and one compiled template) can serve concurrent renders.
"""

from collections import ChainMap
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, NamedTuple

from hashflow.accessor import as_iterable
from hashflow.comparators import equals
from hashflow.errors import (
    CheckViolationError,
    DuplicateBindingError,
    EvaluationError,
    GuardViolationError,
    TemplateSyntaxError,
)
from hashflow.evaluator import EvaluationContext, Evaluator
from hashflow.formatter import BodyFormatter, identity_body
from hashflow.parser import (
    ASTNode,
    CheckStatement,
    ChooseBlock,
    ForBlock,
    GuardBlock,
    IfBlock,
    SwitchBlock,
    Template,
    Text,
    VarStatement,
)
from hashflow.pipes import PipeRegistry

DEFAULT_GUARD_MESSAGE = "guard condition failed"

TextHook = Callable[[str], str]


class ForVarKey(NamedTuple):
    """Key of one loop binding in ``for_generated_vars``.

    ``str(key)`` gives the flat form ``name_forIndex_itemIndex``.
    """

    name: str
    for_index: int
    item_index: int

    def __str__(self) -> str:
        return f"{self.name}_{self.for_index}_{self.item_index}"


@dataclass
class EvaluationState:
    """Mutable state of a single render call.

    Attributes:
        defined_vars: Variables bound by #var outside of loop bodies
        for_generated_vars: Every loop binding, per loop execution and item
        for_counter: Number of #for executions started so far
    """

    defined_vars: dict[str, Any] = field(default_factory=dict)
    for_generated_vars: dict[ForVarKey, Any] = field(default_factory=dict)
    for_counter: int = 0

    def next_for_index(self) -> int:
        index = self.for_counter
        self.for_counter += 1
        return index


@dataclass(frozen=True)
class RenderResult:
    """Output of one render call."""

    text: str
    defined_vars: dict[str, Any]
    for_generated_vars: dict[ForVarKey, Any]

    def flat_for_vars(self) -> dict[str, Any]:
        """``for_generated_vars`` keyed by ``name_forIndex_itemIndex``."""
        return {str(k): v for k, v in self.for_generated_vars.items()}


@dataclass
class LoopFrame:
    """Bindings of the innermost #for iteration; #var lines bind here."""

    variables: dict[str, Any]
    for_index: int
    item_index: int


@dataclass
class Scope:
    """Where a block renders: visible variables, render state, text hook."""

    variables: Mapping[str, Any]
    state: EvaluationState
    text_hook: TextHook | None = None
    loop: LoopFrame | None = None


class Interpreter:
    """Renders block trees.

    Usage:
        interpreter = Interpreter(PipeRegistry())
        result = interpreter.render(parse(source), {"age": 20})
        print(result.text)
    """

    def __init__(
        self,
        pipes: PipeRegistry,
        body_formatter: BodyFormatter = identity_body,
        default_delimiter: str = ", ",
    ):
        self.pipes = pipes
        self.body_formatter = body_formatter
        self.default_delimiter = default_delimiter

    def render(self, template: Template, context: Mapping[str, Any]) -> RenderResult:
        """Render a template with a fresh EvaluationState."""
        state = EvaluationState()
        text = self.render_body(template.body, Scope(context, state))
        return RenderResult(text, dict(state.defined_vars), dict(state.for_generated_vars))

    def render_body(self, nodes: list[ASTNode], scope: Scope) -> str:
        """Render a block list.

        Text lines are always kept; blank directive output is dropped.
        """
        fragments: list[str] = []
        for node in nodes:
            if isinstance(node, Text):
                text = node.text
                if scope.text_hook is not None:
                    text = scope.text_hook(text)
                fragments.append(text)
                continue

            fragment = self._render(node, scope)
            if fragment and fragment.strip():
                fragments.append(fragment)
        return "\n".join(fragments)

    def _render(self, node: ASTNode, scope: Scope) -> str | None:
        method_name = f"_render_{type(node).__name__.lower()}"
        method = getattr(self, method_name, None)

        if method is None:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

        return method(node, scope)

    def _evaluate(self, node: ASTNode, scope: Scope) -> Any:
        ctx = EvaluationContext(
            variables=scope.variables,
            defined_vars=scope.state.defined_vars,
            pipes=self.pipes,
        )
        return Evaluator(ctx).evaluate(node)

    # -------------------------------------------------------------------------
    # Directive renderers
    # -------------------------------------------------------------------------

    def _render_ifblock(self, node: IfBlock, scope: Scope) -> str:
        if self._evaluate(node.condition, scope):
            return self.render_body(node.then_body, scope)
        return self.render_body(node.else_body, scope)

    def _render_switchblock(self, node: SwitchBlock, scope: Scope) -> str:
        subject = self._evaluate(node.subject, scope)
        for case in node.cases:
            for value in case.values:
                if equals(subject, self._evaluate(value, scope)):
                    return self.render_body(case.body, scope)
        if node.default is not None:
            return self.render_body(node.default, scope)
        return ""

    def _render_chooseblock(self, node: ChooseBlock, scope: Scope) -> str:
        for branch in node.branches:
            if self._evaluate(branch.condition, scope):
                return self.render_body(branch.body, scope)
        if node.default is not None:
            return self.render_body(node.default, scope)
        return ""

    def _render_guardblock(self, node: GuardBlock, scope: Scope) -> str:
        if not self._evaluate(node.condition, scope):
            raise GuardViolationError(node.message or DEFAULT_GUARD_MESSAGE)
        return self.render_body(node.body, scope)

    def _render_checkstatement(self, node: CheckStatement, scope: Scope) -> None:
        if self._evaluate(node.condition, scope):
            raise CheckViolationError(node.message)

    def _render_varstatement(self, node: VarStatement, scope: Scope) -> None:
        """Bind into the enclosing loop iteration, else into DefinedVars."""
        loop = scope.loop
        defined_vars = scope.state.defined_vars
        if loop is not None and node.name in loop.variables:
            raise DuplicateBindingError(
                node.name,
                f"Variable '{node.name}' at line {node.line} is already defined in the loop",
            )
        if node.name in scope.variables:
            raise DuplicateBindingError(
                node.name, f"Variable '{node.name}' at line {node.line} is already in the context"
            )
        if node.name in defined_vars:
            raise DuplicateBindingError(
                node.name, f"Variable '{node.name}' at line {node.line} is already defined"
            )

        value = self._evaluate(node.value, scope)
        if loop is None:
            defined_vars[node.name] = value
            return
        loop.variables[node.name] = value
        scope.state.for_generated_vars[ForVarKey(node.name, loop.for_index, loop.item_index)] = value

    def _render_forblock(self, node: ForBlock, scope: Scope) -> str:
        state = scope.state
        if node.index is not None and node.item == node.index:
            raise TemplateSyntaxError(
                f"Loop item and index must not share the name '{node.item}'",
                node.line,
                node.column,
            )
        for name in (node.item, node.index):
            if name is not None and (name in scope.variables or name in state.defined_vars):
                raise DuplicateBindingError(
                    name, f"Loop variable '{name}' at line {node.line} is already defined"
                )

        source = self._evaluate(node.source, scope)
        for_index = state.next_for_index()

        results: list[str] = []
        for item_index, item in enumerate(as_iterable(source)):
            loop_vars: dict[str, Any] = {node.item: item}
            if node.index is not None:
                loop_vars[node.index] = item_index
            for name, value in loop_vars.items():
                state.for_generated_vars[ForVarKey(name, for_index, item_index)] = value

            child = Scope(
                ChainMap(loop_vars, scope.variables),
                state,
                self._loop_text_hook(for_index, item_index, loop_vars, scope.text_hook),
                LoopFrame(loop_vars, for_index, item_index),
            )
            text = self.render_body(node.body, child).strip()
            if text:
                results.append(text)

        if not results:
            return ""
        delimiter = self.default_delimiter if node.delimiter is None else node.delimiter
        return node.open + delimiter.join(results) + node.close

    def _loop_text_hook(
        self,
        for_index: int,
        item_index: int,
        loop_vars: Mapping[str, Any],
        outer: TextHook | None,
    ) -> TextHook:
        """Format body text with this loop's bindings, after any enclosing loop."""

        def hook(text: str) -> str:
            if outer is not None:
                text = outer(text)
            return self.body_formatter(for_index, item_index, text, loop_vars)

        return hook
