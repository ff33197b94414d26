"""Parser for hashflow templates.

Converts the token stream into a block tree once per template. The
interpreter and the verifier both walk this tree.

Block grammar:
    body      := (Text | if | switch | choose | for | guard | check | var)*
    if        := #if cond NL body [#else NL body] #fi NL
    switch    := #switch operand NL (case | default)* #end NL
    case      := #case operand (, operand)* NL body #break NL
    choose    := #choose NL (when | default)* #end NL
    when      := #when cond NL body #break NL
    default   := #default NL body #break NL
    for       := #for name [, name] of operand clause* NL body #done NL
    clause    := (delimiter | open | close) STRING
    guard     := #guard cond NL body #throw [STRING] NL
    check     := #check cond throw STRING NL
    var       := #var name = operand NL

Condition precedence (lowest to highest):
1. || (or)
2. && (and)
3. comparison (operand OP operand)
4. ! (not)
5. ( ... ) (group)
"""

from dataclasses import dataclass, field
from typing import Any

from hashflow.errors import TemplateSyntaxError
from hashflow.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass
class ASTNode:
    """Base class for AST nodes."""
    pass


@dataclass
class Literal(ASTNode):
    """A literal value (string, number, boolean, null)."""
    value: Any


@dataclass
class VariableRef(ASTNode):
    """A ``:name.path[0]`` reference; ``keys`` holds every path segment."""
    keys: tuple[str, ...]

    @property
    def root(self) -> str:
        return self.keys[0]

    @property
    def path(self) -> str:
        return ".".join(self.keys)


@dataclass
class PipeCall(ASTNode):
    """A pipe invocation with literal arguments (e.g., ``| nvl(0)``)."""
    name: str
    args: tuple[Any, ...] = ()
    line: int = 0
    column: int = 0


@dataclass
class Operand(ASTNode):
    """A value source followed by a pipe chain."""
    source: Literal | VariableRef
    pipes: tuple[PipeCall, ...] = ()


@dataclass
class Comparison(ASTNode):
    """Binary comparison (e.g., ``:age >= 18``)."""
    left: Operand
    operator: str
    right: Operand


@dataclass
class Not(ASTNode):
    operand: ASTNode


@dataclass
class And(ASTNode):
    left: ASTNode
    right: ASTNode


@dataclass
class Or(ASTNode):
    left: ASTNode
    right: ASTNode


@dataclass
class Text(ASTNode):
    """One plain text line, kept verbatim."""
    text: str
    line: int = 0


@dataclass
class IfBlock(ASTNode):
    condition: ASTNode
    then_body: list[ASTNode]
    else_body: list[ASTNode] = field(default_factory=list)
    line: int = 0


@dataclass
class Case(ASTNode):
    values: list[Operand]
    body: list[ASTNode]
    line: int = 0


@dataclass
class SwitchBlock(ASTNode):
    subject: Operand
    cases: list[Case] = field(default_factory=list)
    default: list[ASTNode] | None = None
    line: int = 0


@dataclass
class When(ASTNode):
    condition: ASTNode
    body: list[ASTNode]
    line: int = 0


@dataclass
class ChooseBlock(ASTNode):
    branches: list[When] = field(default_factory=list)
    default: list[ASTNode] | None = None
    line: int = 0


@dataclass
class ForBlock(ASTNode):
    """``#for item[, index] of source`` loop.

    ``delimiter`` is None when the template gives none, so the engine
    default applies.
    """
    item: str
    index: str | None
    source: Operand
    body: list[ASTNode]
    delimiter: str | None = None
    open: str = ""
    close: str = ""
    line: int = 0
    column: int = 0


@dataclass
class GuardBlock(ASTNode):
    condition: ASTNode
    body: list[ASTNode]
    message: str | None = None
    line: int = 0


@dataclass
class CheckStatement(ASTNode):
    condition: ASTNode
    message: str
    line: int = 0


@dataclass
class VarStatement(ASTNode):
    name: str
    value: Operand
    line: int = 0


@dataclass
class Template(ASTNode):
    """Root of a parsed template."""
    body: list[ASTNode]
    source: str = ""


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------

# Closing and branch keywords, mapped to the directive that owns them
CLOSERS = {
    TokenType.END_IF: "#if",
    TokenType.ELSE: "#if",
    TokenType.END: "#switch or #choose",
    TokenType.CASE: "#switch",
    TokenType.WHEN: "#choose",
    TokenType.DEFAULT: "#switch or #choose",
    TokenType.BREAK: "#switch or #choose",
    TokenType.END_FOR: "#for",
    TokenType.END_GUARD: "#guard",
}

# Keyword tokens that read as plain words in value and name positions
WORD_TOKENS = (
    TokenType.IDENTIFIER,
    TokenType.FOR_OF,
    TokenType.FOR_DELIMITER,
    TokenType.FOR_OPEN,
    TokenType.FOR_CLOSE,
    TokenType.CHECK_THROW,
)

RESERVED_LITERALS = {"null": None, "blank": "", "true": True, "false": False}


class Parser:
    """Recursive descent parser for hashflow templates.

    Usage:
        parser = Parser("#if :age >= 18\\nadult\\n#fi")
        template = parser.parse()
    """

    def __init__(self, source: str, line_prefix: str | None = None):
        self.source = source
        self.lexer = Lexer(source, line_prefix)
        self.tokens = self.lexer.tokenize()
        self.position = 0

    def parse(self) -> Template:
        """Parse the template and return the tree root."""
        body = self._parse_body(frozenset(), None)
        return Template(body, self.source)

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        return self.tokens[min(self.position, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        if token.type != TokenType.EOF:
            self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise self._error(f"{message}, found {self._current().describe()}")

    def _end_of_line(self) -> None:
        self._consume(TokenType.NEWLINE, "Expected end of line")

    def _error(self, message: str, token: Token | None = None) -> TemplateSyntaxError:
        token = token or self._current()
        return TemplateSyntaxError(message, token.line, token.column)

    # -------------------------------------------------------------------------
    # Blocks
    # -------------------------------------------------------------------------

    def _parse_body(self, terminators: frozenset[TokenType], opener: Token | None) -> list[ASTNode]:
        """Parse nodes until one of the terminator tokens (left unconsumed)."""
        nodes: list[ASTNode] = []

        while not self._match(*terminators):
            token = self._current()

            if token.type == TokenType.EOF:
                if opener is None:
                    return nodes
                raise self._error(
                    f"Unclosed '{opener.value}' opened at line {opener.line}"
                )
            if token.type == TokenType.PLAIN_TEXT:
                self._advance()
                nodes.append(Text(token.value, token.line))
            elif token.type == TokenType.IF:
                nodes.append(self._parse_if())
            elif token.type == TokenType.SWITCH:
                nodes.append(self._parse_switch())
            elif token.type == TokenType.CHOOSE:
                nodes.append(self._parse_choose())
            elif token.type == TokenType.FOR:
                nodes.append(self._parse_for())
            elif token.type == TokenType.GUARD:
                nodes.append(self._parse_guard())
            elif token.type == TokenType.CHECK:
                nodes.append(self._parse_check())
            elif token.type == TokenType.DEFINE_VAR:
                nodes.append(self._parse_var())
            elif token.type in CLOSERS and opener is not None:
                raise self._error(
                    f"Unexpected '{token.value}' inside '{opener.value}' "
                    f"opened at line {opener.line}"
                )
            elif token.type in CLOSERS:
                raise self._error(
                    f"Unexpected '{token.value}' without a matching {CLOSERS[token.type]}"
                )
            else:
                raise self._error(f"Unknown directive {token.describe()}")

        return nodes

    def _parse_if(self) -> IfBlock:
        opener = self._advance()
        condition = self._parse_condition()
        self._end_of_line()

        then_body = self._parse_body(frozenset({TokenType.ELSE, TokenType.END_IF}), opener)
        else_body: list[ASTNode] = []
        if self._match(TokenType.ELSE):
            self._advance()
            self._end_of_line()
            else_body = self._parse_body(frozenset({TokenType.END_IF}), opener)

        self._advance()
        self._end_of_line()
        return IfBlock(condition, then_body, else_body, opener.line)

    def _parse_switch(self) -> SwitchBlock:
        opener = self._advance()
        block = SwitchBlock(self._parse_operand(), line=opener.line)
        self._end_of_line()

        while not self._match(TokenType.END):
            if self._match(TokenType.CASE):
                case_token = self._advance()
                values = [self._parse_operand()]
                while self._match(TokenType.COMMA):
                    self._advance()
                    values.append(self._parse_operand())
                self._end_of_line()
                block.cases.append(Case(values, self._parse_branch(case_token), case_token.line))
            elif self._match(TokenType.DEFAULT):
                block.default = self._parse_default(block.default)
            else:
                self._skip_blank_line("'#case', '#default' or '#end'", opener)

        self._advance()
        self._end_of_line()
        return block

    def _parse_choose(self) -> ChooseBlock:
        opener = self._advance()
        self._end_of_line()
        block = ChooseBlock(line=opener.line)

        while not self._match(TokenType.END):
            if self._match(TokenType.WHEN):
                when_token = self._advance()
                condition = self._parse_condition()
                self._end_of_line()
                block.branches.append(
                    When(condition, self._parse_branch(when_token), when_token.line)
                )
            elif self._match(TokenType.DEFAULT):
                block.default = self._parse_default(block.default)
            else:
                self._skip_blank_line("'#when', '#default' or '#end'", opener)

        self._advance()
        self._end_of_line()
        return block

    def _parse_default(self, existing: list[ASTNode] | None) -> list[ASTNode]:
        token = self._current()
        if existing is not None:
            raise self._error("Duplicate '#default' branch")
        self._advance()
        self._end_of_line()
        return self._parse_branch(token)

    def _parse_branch(self, opener: Token) -> list[ASTNode]:
        """Parse a case/when/default body up to and including its #break."""
        body = self._parse_body(frozenset({TokenType.BREAK}), opener)
        self._advance()
        self._end_of_line()
        return body

    def _skip_blank_line(self, expected: str, opener: Token) -> None:
        """Blank lines may separate branches; anything else is an error."""
        token = self._current()
        if token.type == TokenType.PLAIN_TEXT and not token.value.strip():
            self._advance()
            return
        if token.type == TokenType.EOF:
            raise self._error(f"Unclosed '{opener.value}' opened at line {opener.line}")
        raise self._error(f"Expected {expected}, found {token.describe()}")

    def _parse_for(self) -> ForBlock:
        opener = self._advance()
        item = self._parse_name("loop item name")
        index = None
        if self._match(TokenType.COMMA):
            self._advance()
            index = self._parse_name("loop index name")
        self._consume(TokenType.FOR_OF, "Expected 'of'")
        source = self._parse_operand()

        clauses: dict[str, str] = {}
        while self._match(TokenType.FOR_DELIMITER, TokenType.FOR_OPEN, TokenType.FOR_CLOSE):
            keyword = self._advance()
            name = str(keyword.value).lower()
            if name in clauses:
                raise self._error(f"Duplicate '{name}' clause", keyword)
            clauses[name] = str(
                self._consume(TokenType.STRING, f"Expected a quoted string after '{name}'").value
            )
        self._end_of_line()

        body = self._parse_body(frozenset({TokenType.END_FOR}), opener)
        self._advance()
        self._end_of_line()
        return ForBlock(
            item=item,
            index=index,
            source=source,
            body=body,
            delimiter=clauses.get("delimiter"),
            open=clauses.get("open", ""),
            close=clauses.get("close", ""),
            line=opener.line,
            column=opener.column,
        )

    def _parse_guard(self) -> GuardBlock:
        opener = self._advance()
        condition = self._parse_condition()
        self._end_of_line()
        body = self._parse_body(frozenset({TokenType.END_GUARD}), opener)
        self._advance()

        message = None
        if self._match(TokenType.STRING):
            message = str(self._advance().value)
        self._consume(TokenType.NEWLINE, "Expected a quoted message or end of line")
        return GuardBlock(condition, body, message, opener.line)

    def _parse_check(self) -> CheckStatement:
        opener = self._advance()
        condition = self._parse_condition()
        self._consume(TokenType.CHECK_THROW, "Expected 'throw'")
        message = self._consume(TokenType.STRING, "Expected a quoted message after 'throw'")
        self._end_of_line()
        return CheckStatement(condition, str(message.value), opener.line)

    def _parse_var(self) -> VarStatement:
        opener = self._advance()
        name = self._parse_name("variable name")
        token = self._current()
        if token.type != TokenType.OPERATOR or token.value != "=":
            raise self._error(f"Expected '=', found {token.describe()}")
        self._advance()
        value = self._parse_operand()
        self._end_of_line()
        return VarStatement(name, value, opener.line)

    def _parse_name(self, what: str) -> str:
        return str(self._consume(TokenType.IDENTIFIER, f"Expected {what}").value)

    # -------------------------------------------------------------------------
    # Conditions (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_condition(self) -> ASTNode:
        return self._parse_or()

    def _parse_or(self) -> ASTNode:
        """Parse OR expression (lowest precedence)."""
        left = self._parse_and()

        while self._match(TokenType.LOGIC_OR):
            self._advance()
            right = self._parse_and()
            left = Or(left, right)

        return left

    def _parse_and(self) -> ASTNode:
        """Parse AND expression."""
        left = self._parse_unary()

        while self._match(TokenType.LOGIC_AND):
            self._advance()
            right = self._parse_unary()
            left = And(left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse a group, a negation or a comparison."""
        if self._match(TokenType.LPAREN):
            self._advance()
            condition = self._parse_or()
            self._consume(TokenType.RPAREN, "Expected ')'")
            return condition

        if self._match(TokenType.LOGIC_NOT):
            self._advance()
            return Not(self._parse_unary())

        return self._parse_comparison()

    def _parse_comparison(self) -> Comparison:
        left = self._parse_operand()
        operator = self._consume(TokenType.OPERATOR, "Expected a comparison operator")
        right = self._parse_operand()
        return Comparison(left, str(operator.value), right)

    # -------------------------------------------------------------------------
    # Operands
    # -------------------------------------------------------------------------

    def _parse_operand(self) -> Operand:
        if self._match(TokenType.COLON):
            self._advance()
            source: Literal | VariableRef = self._parse_variable()
        else:
            source = Literal(self._parse_literal())

        pipes: list[PipeCall] = []
        while self._match(TokenType.PIPE_SYMBOL):
            self._advance()
            pipes.append(self._parse_pipe())
        return Operand(source, tuple(pipes))

    def _parse_variable(self) -> VariableRef:
        """Parse ``name(.segment | [n])*`` after the colon sigil."""
        if not self._match(*WORD_TOKENS):
            raise self._error(f"Expected a variable name after ':', found {self._current().describe()}")
        keys = [str(self._advance().value)]

        while True:
            if self._match(TokenType.DOT):
                self._advance()
                if self._match(TokenType.NUMBER, *WORD_TOKENS):
                    keys.append(str(self._advance().value))
                else:
                    raise self._error(
                        f"Expected a key or index after '.', found {self._current().describe()}"
                    )
            elif self._match(TokenType.LBRACKET):
                self._advance()
                token = self._current()
                if token.type != TokenType.NUMBER or not isinstance(token.value, int) or token.value < 0:
                    raise self._error(f"Index must be a non-negative integer, found {token.describe()}")
                self._advance()
                keys.append(str(token.value))
                self._consume(TokenType.RBRACKET, "Expected ']'")
            else:
                return VariableRef(tuple(keys))

    def _parse_literal(self) -> Any:
        token = self._current()

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            word = str(token.value)
            return RESERVED_LITERALS.get(word.lower(), word)

        if token.type in (TokenType.STRING, TokenType.NUMBER, TokenType.UNKNOWN, *WORD_TOKENS):
            self._advance()
            return token.value

        raise self._error(
            f"Expected a value (string, number, identifier or :variable), "
            f"found {token.describe()}"
        )

    def _parse_pipe(self) -> PipeCall:
        token = self._consume(TokenType.IDENTIFIER, "Expected a pipe name after '|'")
        args: list[Any] = []

        if self._match(TokenType.LPAREN):
            self._advance()
            while not self._match(TokenType.RPAREN):
                if self._match(TokenType.COLON):
                    raise self._error("Pipe arguments must be literals")
                args.append(self._parse_literal())
                if not self._match(TokenType.COMMA):
                    break
                self._advance()
                if self._match(TokenType.RPAREN):
                    raise self._error("Unexpected ',' before ')'")
            self._consume(TokenType.RPAREN, "Expected ')'")

        return PipeCall(str(token.value), tuple(args), token.line, token.column)


# -----------------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------------


def parse(source: str, line_prefix: str | None = None) -> Template:
    """Parse a template string into a block tree."""
    return Parser(source, line_prefix).parse()
