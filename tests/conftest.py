from __future__ import annotations

"""
Shared fixtures: a small arithmetic grammar, the bundled Verus grammar and
a Verus sample program.
"""

import os
import sys
from pathlib import Path
from typing import Dict

import pytest

_ROOT_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _ROOT_PATH not in sys.path:
    sys.path.insert(0, _ROOT_PATH)

from exprscan.ebnf import EBNFInterpreter, GrammarParser, Rule, load_grammar, bundled_grammar_path  # noqa: E402
from exprscan.tree import ParseTree  # noqa: E402


TOY_GRAMMAR = r"""
program ::= SOI stmt ( ";" stmt )* EOI ;
stmt ::= expr ;
expr ::= term ( "+" term )* ;
term ::= ident | "(" expr ")" ;
@ident ::= /[a-z]+/ ;
WHITESPACE ::= /[ \t\n]+/ ;
"""

VERUS_SAMPLE = """use vstd::prelude::*;

verus! {

spec fn double(x: int) -> int {
    x * 2
}

fn add(a: u32, b: u32) -> (r: u32)
    requires
        a + b < 100,
    ensures
        r == a + b,
{
    let c = a + b;
    c
}

} // verus!
"""

VERUS_SAMPLE_EXPRESSIONS = [
    "100", "2", "a", "a + b", "a + b < 100", "b", "c", "r", "r == a + b", "x", "x * 2",
]


def parse_text(rules: Dict[str, Rule], start: str, text: str, **kwargs) -> ParseTree:
    return EBNFInterpreter(rules, start, text, **kwargs).parse()


@pytest.fixture
def toy_rules() -> Dict[str, Rule]:
    return GrammarParser(TOY_GRAMMAR).parse()


@pytest.fixture(scope="session")
def verus_rules() -> Dict[str, Rule]:
    return load_grammar(bundled_grammar_path())


@pytest.fixture
def toy_grammar_file(tmp_path: Path) -> Path:
    p = tmp_path / "toy.peg"
    p.write_text(TOY_GRAMMAR, encoding="utf-8")
    return p


@pytest.fixture
def verus_sample_file(tmp_path: Path) -> Path:
    p = tmp_path / "sample.rs"
    p.write_text(VERUS_SAMPLE, encoding="utf-8")
    return p
