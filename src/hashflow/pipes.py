"""Pipe registry for hashflow expressions.

Pipes transform an operand value inside a condition, e.g.
``:name | trim | length > 0`` or ``:status | in('a', 'b') == true``.

There are two layers:
- Builtin pipes, registered once at class level and shared by every engine
- Custom pipes, registered per ``PipeRegistry`` instance

A custom pipe registered under a builtin name shadows the builtin for
that registry only.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from hashflow.errors import PipeNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class PipeParameter:
    """Definition of a pipe argument.

    The piped value itself is not a parameter; parameters describe the
    arguments in parentheses after the pipe name.

    Attributes:
        name: Parameter name
        type: Expected type ("string", "number", "any", ...)
        description: Human-readable description
        variadic: If True, this parameter accepts any number of values
    """

    name: str
    type: str
    description: str
    variadic: bool = False


@dataclass
class PipeDefinition:
    """Complete definition of a pipe.

    Attributes:
        name: Pipe name as used in expressions
        description: Human-readable description
        parameters: Argument definitions (excluding the piped value)
        examples: Example expressions using this pipe
        implementation: Callable invoked as ``implementation(value, *args)``
    """

    name: str
    description: str
    parameters: list[PipeParameter] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    implementation: Callable[..., Any] | None = None

    @property
    def variadic(self) -> bool:
        return any(p.variadic for p in self.parameters)

    def __call__(self, value: Any, *args: Any) -> Any:
        """Apply the pipe to a value.

        Raises:
            ValueError: If a fixed-arity pipe gets the wrong number of arguments
        """
        if self.implementation is None:
            raise ValueError(f"Pipe '{self.name}' has no implementation")
        if not self.variadic and len(args) != len(self.parameters):
            raise ValueError(
                f"Pipe '{self.name}' takes {len(self.parameters)} argument(s), "
                f"got {len(args)}"
            )
        return self.implementation(value, *args)

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "variadic": p.variadic,
                }
                for p in self.parameters
            ],
            "examples": self.examples,
        }


PipeLike = Callable[..., Any] | PipeDefinition


def as_definition(name: str, pipe: PipeLike) -> PipeDefinition:
    """Wrap a plain callable ``fn(value, *args)`` as a PipeDefinition."""
    if isinstance(pipe, PipeDefinition):
        return pipe
    if not callable(pipe):
        raise TypeError(f"Pipe '{name}' must be callable, got {type(pipe).__name__}")
    return PipeDefinition(
        name=name,
        description=(pipe.__doc__ or "").strip().split("\n")[0],
        parameters=[PipeParameter("args", "any", "Pipe arguments", variadic=True)],
        implementation=pipe,
    )


class PipeRegistry:
    """Registry for expression pipes.

    Example:
        registry = PipeRegistry({"double": lambda v: v * 2})
        registry.resolve("double")(21)   # 42
        registry.resolve("upper")("abc")  # "ABC" (builtin)
    """

    _builtins: dict[str, PipeDefinition] = {}

    def __init__(self, custom: Mapping[str, PipeLike] | None = None):
        self._custom: dict[str, PipeDefinition] = {}
        for name, pipe in (custom or {}).items():
            self.register(name, pipe)

    # -------------------------------------------------------------------------
    # Builtin layer
    # -------------------------------------------------------------------------

    @classmethod
    def register_builtin(cls, pipe_def: PipeDefinition) -> None:
        """Register a builtin pipe shared by every registry."""
        cls._builtins[pipe_def.name] = pipe_def

    @classmethod
    def get(cls, name: str) -> PipeDefinition:
        """Get a builtin pipe by name.

        Raises:
            PipeNotFoundError: If no builtin has this name
        """
        if name not in cls._builtins:
            raise PipeNotFoundError(name)
        return cls._builtins[name]

    @classmethod
    def is_builtin(cls, name: str) -> bool:
        return name in cls._builtins

    @classmethod
    def list_all(cls) -> list[PipeDefinition]:
        """List builtin pipes sorted by name."""
        return sorted(cls._builtins.values(), key=lambda p: p.name)

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Export the builtin layer for documentation."""
        return {"pipes": {p.name: p.to_dict() for p in cls.list_all()}}

    @classmethod
    def clear(cls) -> None:
        """Clear all builtin registrations. Primarily for testing."""
        cls._builtins.clear()

    # -------------------------------------------------------------------------
    # Custom layer
    # -------------------------------------------------------------------------

    def register(self, name: str, pipe: PipeLike) -> None:
        """Register a custom pipe for this registry only."""
        if self.is_builtin(name):
            logger.debug("Custom pipe '%s' shadows the builtin pipe", name)
        self._custom[name] = as_definition(name, pipe)

    def custom_names(self) -> list[str]:
        return sorted(self._custom)

    def resolve(self, name: str) -> PipeDefinition:
        """Find a pipe, custom layer first.

        Raises:
            PipeNotFoundError: If the name is in neither layer
        """
        if name in self._custom:
            return self._custom[name]
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._custom or self.is_builtin(name)
