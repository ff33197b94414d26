"""Context-free checks over a parsed template.

The verifier never evaluates a condition and needs no context. Grammar
errors surface while parsing; the walk here adds the structural checks
that hold for any context and collects an inventory of the template.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from hashflow.errors import TemplateSyntaxError
from hashflow.parser import (
    ASTNode,
    CheckStatement,
    ChooseBlock,
    Comparison,
    ForBlock,
    GuardBlock,
    IfBlock,
    Literal,
    Not,
    Operand,
    Or,
    SwitchBlock,
    Template,
    Text,
    VariableRef,
    VarStatement,
)

DIRECTIVE_NAMES = {
    IfBlock: "if",
    SwitchBlock: "switch",
    ChooseBlock: "choose",
    ForBlock: "for",
    GuardBlock: "guard",
    CheckStatement: "check",
    VarStatement: "var",
}


@dataclass
class VerificationReport:
    """Inventory of a verified template.

    Attributes:
        directives: Count of each directive kind (``if``, ``for``, ...)
        variables: Root names of every ``:variable`` reference
        pipes: Names of every pipe used
        defined: Names bound by ``#var`` or loop headers
        text_lines: Number of plain text lines
    """

    directives: Counter = field(default_factory=Counter)
    variables: set[str] = field(default_factory=set)
    pipes: set[str] = field(default_factory=set)
    defined: set[str] = field(default_factory=set)
    text_lines: int = 0

    @property
    def free_variables(self) -> set[str]:
        """Referenced names the caller's context is expected to provide."""
        return self.variables - self.defined

    def to_dict(self) -> dict[str, Any]:
        return {
            "directives": dict(sorted(self.directives.items())),
            "variables": sorted(self.variables),
            "freeVariables": sorted(self.free_variables),
            "pipes": sorted(self.pipes),
            "textLines": self.text_lines,
        }


class Verifier:
    """Walks a block tree and raises TemplateSyntaxError on violations.

    Usage:
        report = Verifier().verify(parse(source))
    """

    def verify(self, template: Template) -> VerificationReport:
        report = VerificationReport()
        self._visit_all(template.body, report)
        return report

    def _visit_all(self, nodes: list[ASTNode], report: VerificationReport) -> None:
        for node in nodes:
            self._visit(node, report)

    def _visit(self, node: ASTNode | None, report: VerificationReport) -> None:
        if node is None:
            return
        kind = DIRECTIVE_NAMES.get(type(node))
        if kind is not None:
            report.directives[kind] += 1
        method = getattr(self, f"_visit_{type(node).__name__.lower()}")
        method(node, report)

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _visit_text(self, node: Text, report: VerificationReport) -> None:
        report.text_lines += 1

    def _visit_ifblock(self, node: IfBlock, report: VerificationReport) -> None:
        self._visit(node.condition, report)
        self._visit_all(node.then_body, report)
        self._visit_all(node.else_body, report)

    def _visit_switchblock(self, node: SwitchBlock, report: VerificationReport) -> None:
        self._visit(node.subject, report)
        for case in node.cases:
            for value in case.values:
                self._visit(value, report)
            self._visit_all(case.body, report)
        self._visit_all(node.default or [], report)

    def _visit_chooseblock(self, node: ChooseBlock, report: VerificationReport) -> None:
        for branch in node.branches:
            self._visit(branch.condition, report)
            self._visit_all(branch.body, report)
        self._visit_all(node.default or [], report)

    def _visit_forblock(self, node: ForBlock, report: VerificationReport) -> None:
        if node.index is not None and node.item == node.index:
            raise TemplateSyntaxError(
                f"Loop item and index must not share the name '{node.item}'",
                node.line,
                node.column,
            )
        report.defined.add(node.item)
        if node.index is not None:
            report.defined.add(node.index)
        self._visit(node.source, report)
        self._visit_all(node.body, report)

    def _visit_guardblock(self, node: GuardBlock, report: VerificationReport) -> None:
        self._visit(node.condition, report)
        self._visit_all(node.body, report)

    def _visit_checkstatement(self, node: CheckStatement, report: VerificationReport) -> None:
        self._visit(node.condition, report)

    def _visit_varstatement(self, node: VarStatement, report: VerificationReport) -> None:
        report.defined.add(node.name)
        self._visit(node.value, report)

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def _visit_or(self, node: Or, report: VerificationReport) -> None:
        self._visit(node.left, report)
        self._visit(node.right, report)

    _visit_and = _visit_or

    def _visit_not(self, node: Not, report: VerificationReport) -> None:
        self._visit(node.operand, report)

    def _visit_comparison(self, node: Comparison, report: VerificationReport) -> None:
        self._visit(node.left, report)
        self._visit(node.right, report)

    def _visit_operand(self, node: Operand, report: VerificationReport) -> None:
        self._visit(node.source, report)
        for pipe in node.pipes:
            if not pipe.name.isidentifier():
                raise TemplateSyntaxError(
                    f"Invalid pipe name '{pipe.name}'", pipe.line, pipe.column
                )
            report.pipes.add(pipe.name)

    def _visit_literal(self, node: Literal, report: VerificationReport) -> None:
        pass

    def _visit_variableref(self, node: VariableRef, report: VerificationReport) -> None:
        report.variables.add(node.root)
