"""Error types raised by the hashflow engine.

Every error aborts the current render or verify call. Callers catch
``ScriptError`` to treat any failure as "this template instance failed".
"""


class ScriptError(Exception):
    """Base class for all hashflow errors."""


class TemplateSyntaxError(ScriptError):
    """Grammar violation found while lexing or parsing a template.

    Attributes:
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    def __init__(self, message: str, line: int = 1, column: int = 1):
        self.line = line
        self.column = column
        self.reason = message
        super().__init__(f"{message} at line {line}, column {column}")


class EvaluationError(ScriptError):
    """Error raised while rendering a template against a context."""


class GuardViolationError(EvaluationError):
    """A ``#guard`` condition evaluated false."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CheckViolationError(EvaluationError):
    """A ``#check`` condition evaluated true."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PipeNotFoundError(EvaluationError):
    """A pipe name is absent from both the custom and builtin registries."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot find pipe '{name}'")


class OperandTypeError(EvaluationError):
    """An operator was applied to operands of the wrong type."""


class DuplicateBindingError(EvaluationError):
    """A ``#var`` or ``#for`` binding collides with an existing name."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)
