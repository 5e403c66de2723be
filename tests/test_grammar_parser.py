from __future__ import annotations

"""
Unit tests for the grammar text parser.
"""

import pytest

from exprscan.ebnf import (
    ATOMIC, NORMAL, SILENT, Alt, GrammarError, GrammarParser, Lit, Look, Ref, Regex, Repeat, Seq,
    bundled_grammar_path, load_grammar,
)


def test_rule_bodies_are_built_from_operators():
    rules = GrammarParser(r"""
        a ::= "x" | "y" ;
        b = [ "x" ] { "y" } "z"+ ;
        c ::= ( a | b )? /[0-9]+/* ;
    """).parse()

    assert list(rules) == ["a", "b", "c"]
    assert rules["a"].body == Alt((Lit("x"), Lit("y")))
    assert rules["b"].body == Seq((
        Repeat(Lit("x"), 0, 1),
        Repeat(Lit("y"), 0, None),
        Repeat(Lit("z"), 1, None),
    ))
    assert rules["c"].body == Seq((
        Repeat(Alt((Ref("a"), Ref("b"))), 0, 1),
        Repeat(Regex("[0-9]+"), 0, None),
    ))


def test_rule_markers_and_lookahead():
    rules = GrammarParser(r"""
        @word ::= !"x" &"y" ANY ;
        ~sep ::= "," ;
        plain ::= word sep ;
    """).parse()

    assert rules["word"].kind == ATOMIC
    assert rules["sep"].kind == SILENT
    assert rules["plain"].kind == NORMAL
    assert rules["word"].body == Seq((Look(Lit("x"), False), Look(Lit("y"), True), Ref("ANY")))


def test_string_escapes_and_comments():
    rules = GrammarParser(r"""
        # hash comment
        // line comment
        /* block
           comment */
        a ::= "\n" '\'' "\"" ;
    """).parse()

    assert rules["a"].body == Seq((Lit("\n"), Lit("'"), Lit('"')))


def test_regex_keeps_escaped_slash():
    rules = GrammarParser(r"c ::= /\/\/[^\n]*/ ;").parse()
    assert rules["c"].body == Regex(r"\/\/[^\n]*")


@pytest.mark.parametrize("text, message", [
    ("", "No rules"),
    ("a ::= 'x' ; a ::= 'y' ;", "Duplicate rule"),
    ("a ::= b ;", "undefined rule b"),
    ("a ::= /[/ ;", "Bad regex"),
    ("a ::= 'x' ", r"expected SYM\(;\)"),
    ("a ::= 'x ;", "Unterminated string"),
    ("a ::= $ ;", "Unexpected character"),
])
def test_malformed_grammars_are_rejected(text, message):
    with pytest.raises(GrammarError, match=message):
        GrammarParser(text).parse()


def test_grammar_error_is_a_syntax_error():
    assert issubclass(GrammarError, SyntaxError)


def test_bundled_grammar_loads():
    rules = load_grammar(bundled_grammar_path())

    assert next(iter(rules)) == "file"
    assert {"expr", "expr_inner", "WHITESPACE", "COMMENT"} <= set(rules)
    assert rules["ident"].kind == ATOMIC
    assert rules["block_start"].kind == SILENT
