from aicc_common.prerequisites import NodeType, TokenType, parse_prerequisites, tokenize


def test_optional_marker_and_references():
    expr = parse_prerequisites("A001 & (A002 | *A003)")

    assert expr.referenced_au_ids == ("A001", "A002", "A003")
    assert expr.optional_au_ids == ("A003",)
    assert expr.mandatory is False


def test_ast_respects_parentheses():
    ast = parse_prerequisites("A001 & (A002 | A003)").ast

    assert ast.type is NodeType.AND
    left, right = ast.children
    assert left.value == "A001"
    assert right.type is NodeType.OR
    assert [child.value for child in right.children] == ["A002", "A003"]


def test_and_binds_tighter_than_or():
    ast = parse_prerequisites("A & B | C").ast

    assert ast.type is NodeType.OR
    assert ast.children[0].type is NodeType.AND
    assert ast.children[1].value == "C"


def test_word_operators_and_unary_not():
    expr = parse_prerequisites("A001 and not A002")

    assert expr.mandatory is True
    assert expr.ast.type is NodeType.AND
    negated = expr.ast.children[1]
    assert negated.type is NodeType.NOT
    assert negated.children[0].value == "A002"


def test_comma_semicolon_mean_and():
    tokens = tokenize("A001,A002;A003")

    operators = [token.value for token in tokens if token.type is TokenType.OPERATOR]
    assert operators == ["AND", "AND"]


def test_quotes_are_stripped_and_duplicates_collapsed():
    expr = parse_prerequisites('"A001" | A001 | *A002')

    assert expr.referenced_au_ids == ("A001", "A002")
    assert expr.optional_au_ids == ("A002",)


def test_malformed_expression_keeps_tokens_without_ast():
    expr = parse_prerequisites("A001 &")

    assert expr.ast is None
    assert expr.referenced_au_ids == ("A001",)
    assert expr.raw_expression == "A001 &"


def test_blank_expression_is_none():
    assert parse_prerequisites("   ") is None
    assert parse_prerequisites(None) is None


def test_whitespace_after_star_cancels_optional_marker():
    expr = parse_prerequisites("A001 & * A003")

    assert expr.referenced_au_ids == ("A001", "A003")
    assert expr.optional_au_ids == ()
    assert expr.mandatory is True
