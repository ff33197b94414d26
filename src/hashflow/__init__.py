"""hashflow: an embeddable #-directive templating engine.

This package provides:
- ScriptEngine: compile a template once, render it many times
- Lexer / Parser: template text to block tree
- Interpreter / Verifier: the two walks over the block tree
- PipeRegistry: builtin and custom value transforms
- StringFormatter: ${...} interpolation for #for bodies
"""

from hashflow.builtins import KeyValue, register_builtin_pipes
from hashflow.comparators import compare, equals, is_blank, is_numeric
from hashflow.config import EngineConfig
from hashflow.engine import ScriptEngine, render, verify
from hashflow.errors import (
    CheckViolationError,
    DuplicateBindingError,
    EvaluationError,
    GuardViolationError,
    OperandTypeError,
    PipeNotFoundError,
    ScriptError,
    TemplateSyntaxError,
)
from hashflow.evaluator import EvaluationContext, Evaluator, evaluate_condition
from hashflow.formatter import StringFormatter, identity_body, interpolate_body
from hashflow.interpreter import EvaluationState, ForVarKey, Interpreter, RenderResult
from hashflow.lexer import Lexer, Token, TokenType, tokenize
from hashflow.parser import Parser, Template, parse
from hashflow.pipes import PipeDefinition, PipeParameter, PipeRegistry
from hashflow.verifier import VerificationReport, Verifier

register_builtin_pipes()

__version__ = "0.1.0"

__all__ = [
    # Engine
    "ScriptEngine",
    "render",
    "verify",
    "EngineConfig",
    "RenderResult",
    # Errors
    "ScriptError",
    "TemplateSyntaxError",
    "EvaluationError",
    "GuardViolationError",
    "CheckViolationError",
    "PipeNotFoundError",
    "OperandTypeError",
    "DuplicateBindingError",
    # Lexer / Parser
    "Lexer",
    "Token",
    "TokenType",
    "tokenize",
    "Parser",
    "Template",
    "parse",
    # Walks
    "Interpreter",
    "EvaluationState",
    "ForVarKey",
    "Verifier",
    "VerificationReport",
    "Evaluator",
    "EvaluationContext",
    "evaluate_condition",
    # Comparators
    "compare",
    "equals",
    "is_blank",
    "is_numeric",
    # Pipes
    "PipeDefinition",
    "PipeParameter",
    "PipeRegistry",
    "KeyValue",
    "register_builtin_pipes",
    # Formatting
    "StringFormatter",
    "identity_body",
    "interpolate_body",
]
