"""Script engine facade.

Compiles a template once (lex, parse, verify) and renders it any number
of times against different contexts.

Example:
    engine = ScriptEngine("#if :age >= 18\\nadult\\n#else\\nminor\\n#fi")
    engine.evaluate({"age": 20})  # "adult"
    engine.evaluate({"age": 10})  # "minor"
"""

import logging
from typing import Any, Mapping

from hashflow.config import EngineConfig
from hashflow.formatter import BodyFormatter, identity_body, interpolate_body
from hashflow.interpreter import Interpreter, RenderResult
from hashflow.parser import Parser, Template
from hashflow.pipes import PipeLike, PipeRegistry
from hashflow.verifier import VerificationReport, Verifier

logger = logging.getLogger(__name__)


class ScriptEngine:
    """A compiled template.

    Args:
        template: Template source
        pipes: Custom pipes (name -> callable or PipeDefinition), or a registry
        config: Engine options; defaults to ``EngineConfig()``
        body_formatter: Loop body formatter; overrides ``config.interpolate``

    Raises:
        TemplateSyntaxError: If the template is malformed
    """

    def __init__(
        self,
        template: str,
        pipes: Mapping[str, PipeLike] | PipeRegistry | None = None,
        config: EngineConfig | None = None,
        body_formatter: BodyFormatter | None = None,
    ):
        self.source = template
        self.config = config or EngineConfig()

        if isinstance(pipes, PipeRegistry):
            self.pipes = pipes
        else:
            self.pipes = PipeRegistry(pipes)

        if body_formatter is None:
            body_formatter = interpolate_body if self.config.interpolate else identity_body

        self.template: Template = Parser(template, self.config.line_prefix).parse()
        self.report: VerificationReport = Verifier().verify(self.template)
        self.interpreter = Interpreter(
            self.pipes,
            body_formatter=body_formatter,
            default_delimiter=self.config.default_delimiter,
        )
        logger.debug(
            "Compiled template with %d directive(s): %s",
            sum(self.report.directives.values()),
            dict(self.report.directives),
        )

    def register_pipe(self, name: str, pipe: PipeLike) -> None:
        """Register a custom pipe for this engine."""
        self.pipes.register(name, pipe)

    def render(self, context: Mapping[str, Any] | None = None) -> RenderResult:
        """Render against a context, returning text and the bound variables."""
        result = self.interpreter.render(self.template, context or {})
        logger.debug(
            "Rendered %d character(s), %d defined var(s), %d loop binding(s)",
            len(result.text),
            len(result.defined_vars),
            len(result.for_generated_vars),
        )
        return result

    def evaluate(self, context: Mapping[str, Any] | None = None) -> str:
        """Render against a context and return the text."""
        return self.render(context).text

    def verify(self) -> VerificationReport:
        """Return the verification report produced at compile time."""
        return self.report


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def render(
    template: str,
    context: Mapping[str, Any] | None = None,
    pipes: Mapping[str, PipeLike] | None = None,
    config: EngineConfig | None = None,
    body_formatter: BodyFormatter | None = None,
) -> str:
    """Compile and render a template in one call.

    Example:
        render("#for x of :nums delimiter ','\\n${x}\\n#done",
               {"nums": [1, 2, 3]},
               body_formatter=interpolate_body)
        # "1,2,3"
    """
    engine = ScriptEngine(template, pipes=pipes, config=config, body_formatter=body_formatter)
    return engine.evaluate(context)


def verify(template: str, line_prefix: str | None = None) -> VerificationReport:
    """Check a template's grammar without any context.

    Raises:
        TemplateSyntaxError: If the template is malformed
    """
    return Verifier().verify(Parser(template, line_prefix).parse())
