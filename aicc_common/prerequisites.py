"""
Best-effort model of the AICC prerequisite expression attached to a unit.

``A001 & (A002 | *A003)`` references three units; the ``*`` marks A003 as
optional. Parsing never raises: a malformed expression keeps its tokens but
has no AST.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .normalize import is_blank


class TokenType(str, Enum):
    IDENTIFIER = "identifier"
    OPERATOR = "operator"
    LEFT_PAREN = "left_paren"
    RIGHT_PAREN = "right_paren"


class NodeType(str, Enum):
    IDENTIFIER = "IDENTIFIER"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"


PRECEDENCE: Dict[str, int] = {"NOT": 3, "AND": 2, "OR": 1}
OPERATOR_CHARS: Dict[str, str] = {",": "AND", ";": "AND", "&": "AND", "|": "OR", "!": "NOT", "~": "NOT"}
OPERATOR_WORDS = frozenset({"AND", "OR", "NOT"})


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    optional: bool = False
    unary: bool = False


@dataclass(frozen=True)
class PrerequisiteNode:
    type: NodeType
    value: Optional[str] = None
    children: Tuple["PrerequisiteNode", ...] = ()

    @classmethod
    def leaf(cls, value: str) -> "PrerequisiteNode":
        return cls(NodeType.IDENTIFIER, value)


@dataclass(frozen=True)
class PrerequisiteExpression:
    raw_expression: str
    mandatory: bool
    referenced_au_ids: Tuple[str, ...] = ()
    optional_au_ids: Tuple[str, ...] = ()
    tokens: Tuple[Token, ...] = ()
    postfix_tokens: Tuple[Token, ...] = ()
    ast: Optional[PrerequisiteNode] = None

    @classmethod
    def minimal(cls, raw_expression: str) -> "PrerequisiteExpression":
        return cls(raw_expression, mandatory="*" not in raw_expression)


def _operator(op: str) -> Token:
    return Token(TokenType.OPERATOR, op, unary=op == "NOT")


def _strip_identifier(raw: str) -> str:
    cleaned = raw.strip()
    if cleaned.startswith("*"):
        cleaned = cleaned[1:]
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
        cleaned = cleaned[1:-1]
    return cleaned.strip()


def _flush(tokens: List[Token], buffer: List[str], optional_pending: bool) -> None:
    raw = "".join(buffer).strip()
    buffer.clear()
    if not raw:
        return
    upper = raw.upper()
    if upper in OPERATOR_WORDS:
        tokens.append(_operator(upper))
        return
    identifier = _strip_identifier(raw)
    if identifier:
        tokens.append(Token(TokenType.IDENTIFIER, identifier, optional=optional_pending or raw.startswith("*")))


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    buffer: List[str] = []
    optional_pending = False
    for char in text:
        if char.isspace():
            _flush(tokens, buffer, optional_pending)
            optional_pending = False
        elif char == "*":
            _flush(tokens, buffer, optional_pending)
            optional_pending = True
        elif char in "()":
            _flush(tokens, buffer, optional_pending)
            optional_pending = False
            kind = TokenType.LEFT_PAREN if char == "(" else TokenType.RIGHT_PAREN
            tokens.append(Token(kind, char))
        elif char in OPERATOR_CHARS:
            _flush(tokens, buffer, optional_pending)
            optional_pending = False
            tokens.append(_operator(OPERATOR_CHARS[char]))
        else:
            buffer.append(char)
    _flush(tokens, buffer, optional_pending)
    return tokens


def to_postfix(tokens: List[Token]) -> List[Token]:
    """Shunting-yard conversion; unmatched parentheses are dropped."""

    output: List[Token] = []
    stack: List[Token] = []
    for token in tokens:
        if token.type is TokenType.IDENTIFIER:
            output.append(token)
        elif token.type is TokenType.OPERATOR:
            # NOT is a prefix operator, so it never pops anything.
            while (
                not token.unary
                and stack
                and stack[-1].type is TokenType.OPERATOR
                and PRECEDENCE[stack[-1].value] >= PRECEDENCE[token.value]
            ):
                output.append(stack.pop())
            stack.append(token)
        elif token.type is TokenType.LEFT_PAREN:
            stack.append(token)
        else:
            while stack and stack[-1].type is not TokenType.LEFT_PAREN:
                output.append(stack.pop())
            if stack:
                stack.pop()
    while stack:
        token = stack.pop()
        if token.type is not TokenType.LEFT_PAREN:
            output.append(token)
    return output


def build_ast(postfix: List[Token]) -> Optional[PrerequisiteNode]:
    if not postfix:
        return None
    stack: List[PrerequisiteNode] = []
    for token in postfix:
        if token.type is not TokenType.OPERATOR:
            stack.append(PrerequisiteNode.leaf(token.value))
            continue
        node_type = NodeType(token.value)
        if node_type is NodeType.NOT:
            if not stack:
                return None
            stack.append(PrerequisiteNode(node_type, token.value, (stack.pop(),)))
        else:
            if len(stack) < 2:
                return None
            right = stack.pop()
            left = stack.pop()
            stack.append(PrerequisiteNode(node_type, token.value, (left, right)))
    if len(stack) != 1:
        return None
    return stack[0]


def _collect_identifiers(tokens: List[Token], optional_only: bool) -> Tuple[str, ...]:
    seen: Dict[str, None] = {}
    for token in tokens:
        if token.type is not TokenType.IDENTIFIER:
            continue
        if optional_only and not token.optional:
            continue
        seen.setdefault(token.value, None)
    return tuple(seen)


def parse_prerequisites(raw: str | None) -> Optional[PrerequisiteExpression]:
    if is_blank(raw):
        return None
    text = str(raw).strip()
    tokens = tokenize(text)
    if not tokens:
        return PrerequisiteExpression.minimal(text)

    postfix = to_postfix(tokens)
    optional = _collect_identifiers(tokens, optional_only=True)
    return PrerequisiteExpression(
        raw_expression=text,
        mandatory=not optional,
        referenced_au_ids=_collect_identifiers(tokens, optional_only=False),
        optional_au_ids=optional,
        tokens=tuple(tokens),
        postfix_tokens=tuple(postfix),
        ast=build_ast(postfix),
    )
