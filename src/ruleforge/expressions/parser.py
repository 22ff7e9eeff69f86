"""Parser for the RuleForge expression language.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Operator Precedence (lowest to highest):
1. OR
2. AND
3. = !=
4. < <= > >= LIKE MATCHES CONTAINS BEFORE AFTER
5. + -
6. * /
7. ^ (right-associative)
8. NOT, unary -
9. literals, variables, function calls, ( ... )

Statements sit above the expression grammar:

    script     := statement (";" statement)* ";"?
    statement  := assignment | ifStmt | whileStmt | logStmt | block | expression
    assignment := identifier "=" expression
    ifStmt     := IF expression THEN statement [ELSE statement]
    whileStmt  := WHILE expression DO statement
    logStmt    := LOG expression
    block      := BEGIN script END
"""

from ruleforge.config import EngineConfig
from ruleforge.expressions.errors import ErrorKind, ParseError
from ruleforge.expressions.lexer import Lexer, Token, TokenType
from ruleforge.expressions.nodes import (
    ASTNode,
    Assignment,
    BinaryOp,
    Call,
    Conditional,
    Literal,
    Log,
    Loop,
    Sequence,
    UnaryOp,
    VariableRef,
)

EQUALITY_OPERATORS = frozenset({"=", "!="})
RELATIONAL_OPERATORS = frozenset({"<", "<=", ">", ">="})
RELATIONAL_KEYWORDS = frozenset({"LIKE", "MATCHES", "CONTAINS", "BEFORE", "AFTER"})


class Parser:
    """Recursive descent parser for the expression language.

    Usage:
        parser = Parser('status = "active" AND count > 0')
        ast = parser.parse_expression()

        script = Parser("x = 1; WHILE x < 10 DO x = x * 2").parse()
    """

    def __init__(
        self,
        source: str = "",
        config: EngineConfig | None = None,
        tokens: list[Token] | None = None,
    ):
        self.source = source
        self.config = config or EngineConfig()
        self.tokens = list(tokens) if tokens is not None else Lexer(source).tokenize()
        self.position = 0
        self._nesting = 0

    def parse(self) -> ASTNode:
        """Parse a script and return the AST root.

        A script holding a single statement returns that statement;
        several statements are wrapped in a Sequence.
        """
        self._require_input()
        statements = self._parse_statements()
        self._expect_end()

        if len(statements) == 1:
            return statements[0]
        return Sequence(tuple(statements), position=statements[0].position)

    def parse_expression(self) -> ASTNode:
        """Parse a single expression (no statements) and return the AST root."""
        self._require_input()
        ast = self._parse_expression()
        self._expect_end()
        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[self.position]

    def _peek(self, offset: int = 0) -> Token:
        """Peek at a token without consuming it."""
        pos = self.position + offset
        if pos >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[pos]

    def _is_at_end(self) -> bool:
        """Check if we've consumed all tokens."""
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _match_keyword(self, *keywords: str) -> bool:
        token = self._current()
        return token.type == TokenType.KEYWORD and token.value in keywords

    def _match_operator(self, *operators: str) -> bool:
        token = self._current()
        return token.type == TokenType.OPERATOR and token.value in operators

    def _consume_keyword(self, keyword: str, message: str) -> Token:
        if self._match_keyword(keyword):
            return self._advance()
        raise ParseError(message, self._current(), ErrorKind.MALFORMED_STATEMENT)

    def _consume_rparen(self, message: str) -> Token:
        if self._match(TokenType.RPAREN):
            return self._advance()
        raise ParseError(message, self._current(), ErrorKind.MISSING_PAREN)

    def _require_input(self) -> None:
        if not self.tokens or self.tokens[0].type == TokenType.EOF:
            raise ParseError(
                "Empty expression",
                Token(TokenType.EOF, None, 0),
                ErrorKind.EMPTY_EXPRESSION,
            )

    def _expect_end(self) -> None:
        if not self._is_at_end():
            token = self._current()
            raise ParseError(
                f"Unexpected token '{_describe(token)}'",
                token,
                ErrorKind.TRAILING_INPUT,
            )

    def _enter(self) -> None:
        self._nesting += 1
        if self._nesting > self.config.max_nesting:
            raise ParseError(
                f"Expression nested deeper than {self.config.max_nesting} levels",
                self._current(),
                ErrorKind.NESTING_TOO_DEEP,
            )

    def _leave(self) -> None:
        self._nesting -= 1

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _parse_statements(self, terminator: str | None = None) -> list[ASTNode]:
        """Parse statements separated by ';', allowing a trailing ';'."""
        statements = [self._parse_statement()]

        while self._match(TokenType.SEMICOLON):
            self._advance()
            if self._is_at_end():
                break
            if terminator is not None and self._match_keyword(terminator):
                break
            statements.append(self._parse_statement())

        return statements

    def _parse_statement(self) -> ASTNode:
        self._enter()
        try:
            token = self._current()

            if self._match_keyword("IF"):
                return self._parse_if()
            if self._match_keyword("WHILE"):
                return self._parse_while()
            if self._match_keyword("LOG"):
                self._advance()
                return Log(self._parse_expression(), position=token.position)
            if self._match_keyword("BEGIN"):
                return self._parse_block()

            if (
                token.type == TokenType.IDENTIFIER
                and self._peek(1).type == TokenType.OPERATOR
                and self._peek(1).value == "="
            ):
                self._advance()
                self._advance()
                value = self._parse_expression()
                return Assignment(str(token.value), value, position=token.position)

            return self._parse_expression()
        finally:
            self._leave()

    def _parse_if(self) -> Conditional:
        start = self._advance()
        condition = self._parse_expression()
        self._consume_keyword("THEN", "Expected THEN after IF condition")
        then_branch = self._parse_statement()

        else_branch = None
        if self._match_keyword("ELSE"):
            self._advance()
            else_branch = self._parse_statement()

        return Conditional(condition, then_branch, else_branch, position=start.position)

    def _parse_while(self) -> Loop:
        start = self._advance()
        condition = self._parse_expression()
        self._consume_keyword("DO", "Expected DO after WHILE condition")
        body = self._parse_statement()
        return Loop(condition, body, position=start.position)

    def _parse_block(self) -> Sequence:
        start = self._advance()

        if self._match_keyword("END"):
            self._advance()
            return Sequence((), position=start.position)

        statements = self._parse_statements(terminator="END")
        self._consume_keyword("END", "Expected END to close BEGIN block")
        return Sequence(tuple(statements), position=start.position)

    # -------------------------------------------------------------------------
    # Expressions (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_expression(self) -> ASTNode:
        self._enter()
        try:
            return self._parse_or()
        finally:
            self._leave()

    def _parse_or(self) -> ASTNode:
        """Parse OR expression (lowest precedence)."""
        left = self._parse_and()

        while self._match_keyword("OR"):
            op_token = self._advance()
            right = self._parse_and()
            left = BinaryOp("OR", left, right, position=op_token.position)

        return left

    def _parse_and(self) -> ASTNode:
        """Parse AND expression."""
        left = self._parse_equality()

        while self._match_keyword("AND"):
            op_token = self._advance()
            right = self._parse_equality()
            left = BinaryOp("AND", left, right, position=op_token.position)

        return left

    def _parse_equality(self) -> ASTNode:
        """Parse equality expression (=, !=)."""
        left = self._parse_relational()

        while self._match_operator(*EQUALITY_OPERATORS):
            op_token = self._advance()
            right = self._parse_relational()
            left = BinaryOp(str(op_token.value), left, right, position=op_token.position)

        return left

    def _parse_relational(self) -> ASTNode:
        """Parse relational expression (<, <=, >, >=, LIKE, MATCHES, CONTAINS, BEFORE, AFTER)."""
        left = self._parse_additive()

        while self._match_operator(*RELATIONAL_OPERATORS) or self._match_keyword(
            *RELATIONAL_KEYWORDS
        ):
            op_token = self._advance()
            right = self._parse_additive()
            left = BinaryOp(str(op_token.value), left, right, position=op_token.position)

        return left

    def _parse_additive(self) -> ASTNode:
        """Parse additive expression (+, -)."""
        left = self._parse_multiplicative()

        while self._match_operator("+", "-"):
            op_token = self._advance()
            right = self._parse_multiplicative()
            left = BinaryOp(str(op_token.value), left, right, position=op_token.position)

        return left

    def _parse_multiplicative(self) -> ASTNode:
        """Parse multiplicative expression (*, /)."""
        left = self._parse_power()

        while self._match_operator("*", "/"):
            op_token = self._advance()
            right = self._parse_power()
            left = BinaryOp(str(op_token.value), left, right, position=op_token.position)

        return left

    def _parse_power(self) -> ASTNode:
        """Parse exponentiation, which associates to the right."""
        base = self._parse_unary()

        if self._match_operator("^"):
            op_token = self._advance()
            self._enter()
            try:
                exponent = self._parse_power()
            finally:
                self._leave()
            return BinaryOp("^", base, exponent, position=op_token.position)

        return base

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (NOT, -)."""
        if self._match_keyword("NOT") or self._match_operator("-"):
            op_token = self._advance()
            operator = "NOT" if op_token.type == TokenType.KEYWORD else "-"
            self._enter()
            try:
                operand = self._parse_unary()
            finally:
                self._leave()
            return UnaryOp(operator, operand, position=op_token.position)

        return self._parse_primary()

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, variables, calls, grouped expressions)."""
        token = self._current()

        if token.type in (TokenType.NUMBER, TokenType.STRING):
            self._advance()
            return Literal(token.value, position=token.position)

        if token.type == TokenType.KEYWORD and token.value in ("TRUE", "FALSE", "NULL"):
            self._advance()
            value = {"TRUE": True, "FALSE": False, "NULL": None}[str(token.value)]
            return Literal(value, position=token.position)

        # Variable reference or function name
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.LPAREN):
                return self._parse_function_call(token)
            return VariableRef(str(token.value), position=token.position)

        # Grouped expression
        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._consume_rparen("Expected ')'")
            return expr

        if token.type == TokenType.EOF:
            raise ParseError("Unexpected end of input", token)

        raise ParseError(f"Unexpected token '{_describe(token)}'", token)

    def _parse_function_call(self, name_token: Token) -> Call:
        """Parse a function call (arguments in parentheses)."""
        self._advance()

        arguments: list[ASTNode] = []

        if not self._match(TokenType.RPAREN):
            arguments.append(self._parse_expression())

            while self._match(TokenType.COMMA):
                self._advance()
                arguments.append(self._parse_expression())

        self._consume_rparen("Expected ')' after arguments")

        return Call(str(name_token.value), tuple(arguments), position=name_token.position)


def _describe(token: Token) -> str:
    if token.lexeme:
        return token.lexeme
    if token.type == TokenType.EOF:
        return "end of input"
    return str(token.value)


def parse(source: str, config: EngineConfig | None = None) -> ASTNode:
    """Parse a script (statements or a bare expression).

    Args:
        source: The script text
        config: Optional limits; defaults apply when omitted

    Returns:
        The AST root node
    """
    return Parser(source, config).parse()


def parse_expression(source: str, config: EngineConfig | None = None) -> ASTNode:
    """Parse a single expression; '=' is always an equality test here."""
    return Parser(source, config).parse_expression()
