# -*- coding: utf-8 -*-

# Copyright (c) 2026 Dawid Seredyński

# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at

#     http://www.apache.org/licenses/LICENSE-2.0

# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import re
import time

from .stats import StatsMap
from .tree import ParseTree, TOKEN, TRIVIA


# =========================
# Grammar AST nodes
# =========================

@dataclass(frozen=True)
class Node:
    pass

@dataclass(frozen=True)
class Ref(Node):
    name: str

@dataclass(frozen=True)
class Lit(Node):
    text: str

@dataclass(frozen=True)
class Regex(Node):
    pattern: str

@dataclass(frozen=True)
class Seq(Node):
    parts: Tuple[Node, ...]

@dataclass(frozen=True)
class Alt(Node):
    options: Tuple[Node, ...]

@dataclass(frozen=True)
class Repeat(Node):
    node: Node
    min_times: int
    max_times: Optional[int]  # None => infinity

@dataclass(frozen=True)
class Look(Node):
    node: Node
    positive: bool


NORMAL = 'normal'
ATOMIC = 'atomic'
SILENT = 'silent'

@dataclass(frozen=True)
class Rule:
    name: str
    body: Node
    kind: str = NORMAL


# Rules the engine provides when the grammar does not define them
BUILTINS = ('SOI', 'EOI', 'ANY')

# Rules skipped implicitly between the elements of non-atomic rules
TRIVIA_RULES = ('WHITESPACE', 'COMMENT')


class GrammarError(SyntaxError):
    pass


def describe(node: Node) -> str:
    if isinstance(node, Ref):
        return node.name
    if isinstance(node, Lit):
        return repr(node.text)
    if isinstance(node, Regex):
        return f'/{node.pattern}/'
    if isinstance(node, Look):
        return ('&' if node.positive else '!') + describe(node.node)
    if isinstance(node, Repeat):
        return describe(node.node)
    if isinstance(node, Seq):
        return ' '.join(describe(p) for p in node.parts) or '<empty>'
    if isinstance(node, Alt):
        return '(' + ' | '.join(describe(o) for o in node.options) + ')'
    return '<unknown>'


def referenced_names(node: Node) -> List[str]:
    if isinstance(node, Ref):
        return [node.name]
    if isinstance(node, Seq):
        return [n for p in node.parts for n in referenced_names(p)]
    if isinstance(node, Alt):
        return [n for o in node.options for n in referenced_names(o)]
    if isinstance(node, (Repeat, Look)):
        return referenced_names(node.node)
    return []


# =========================
# Grammar tokenizer
# =========================

@dataclass
class Tok:
    kind: str   # one of ID, STR, REGEX, SYM, EOF
    value: str
    pos: int    # offset in the grammar text


class GrammarLexer:
    """Splits grammar text into tokens. Whitespace and ``#``, ``//`` and
    ``/* */`` comments between tokens are dropped."""

    _SKIP = re.compile(r"(?:\s+|#[^\n]*|//[^\n]*|/\*.*?\*/)*", re.S)
    _PATTERNS = (
        ("SYM", re.compile(r"::=|[=;|()\[\]{}*+?&!@~]")),
        ("REGEX", re.compile(r"/((?:[^/\\]|\\.)*)/", re.S)),
        ("STR", re.compile(r"\"((?:[^\"\\]|\\.)*)\"|'((?:[^'\\]|\\.)*)'", re.S)),
        ("ID", re.compile(r"[A-Za-z_][A-Za-z0-9_]*")),
    )
    _ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}

    def __init__(self, text: str):
        self.text = text
        self.n = len(text)
        self.i = 0

    def _unescape(self, m: re.Match) -> str:
        return self._ESCAPES.get(m.group(1), m.group(1))

    def next(self) -> Tok:
        self.i = self._SKIP.match(self.text, self.i).end()
        if self.text.startswith("/*", self.i):
            raise GrammarError(f"Unterminated block comment starting at pos {self.i}")
        if self.i >= self.n:
            return Tok("EOF", "", self.i)

        start = self.i
        for kind, pattern in self._PATTERNS:
            m = pattern.match(self.text, start)
            if m is None:
                continue
            self.i = m.end()
            if kind == "REGEX":
                # escapes are left for the regex engine
                return Tok(kind, m.group(1), start)
            if kind == "STR":
                body = m.group(1) if m.group(1) is not None else m.group(2)
                return Tok(kind, re.sub(r"\\(.)", self._unescape, body, flags=re.S), start)
            return Tok(kind, m.group(0), start)

        ch = self.text[start]
        if ch == "/":
            raise GrammarError(f"Unterminated regex starting at pos {start}")
        if ch in "\"'":
            raise GrammarError(f"Unterminated string starting at pos {start}")
        raise GrammarError(f"Unexpected character in grammar at pos {start}: {ch!r}")


# =========================
# Grammar parser (EBNF subset with PEG extensions)
# =========================

_MARKERS = {"@": ATOMIC, "~": SILENT}
_QUANTIFIERS = {"?": (0, 1), "*": (0, None), "+": (1, None)}
# opening bracket -> (closing bracket, repeat bounds or None for a plain group)
_GROUPS = {"(": (")", None), "[": ("]", (0, 1)), "{": ("}", (0, None))}
_TERMINALS = {"ID": Ref, "STR": Lit, "REGEX": Regex}


class GrammarParser:
    """Parses grammar text into a rule map.

    Rule definitions take the form ``name ::= expr ;`` (``=`` is accepted too).
    A leading ``@`` marks the rule atomic, a leading ``~`` marks it silent.
    Within expressions: ``|`` ordered choice, juxtaposition for sequences,
    postfix ``? * +``, prefix ``&`` / ``!`` lookahead, ``[ ]`` optional,
    ``{ }`` zero or more, ``"..."`` literals and ``/.../`` regexes.
    """

    def __init__(self, text: str):
        self.lex = GrammarLexer(text)
        self.cur = self.lex.next()

    def _is(self, kind: str, value: Optional[str] = None) -> bool:
        return self.cur.kind == kind and (value is None or self.cur.value == value)

    def _eat(self, kind: str, value: Optional[str] = None) -> Tok:
        if not self._is(kind, value):
            wanted = kind if value is None else f"{kind}({value})"
            raise GrammarError(f"Grammar parse error at pos {self.cur.pos}: "
                               f"expected {wanted}, got {self.cur.kind}({self.cur.value})")
        tok, self.cur = self.cur, self.lex.next()
        return tok

    def _accept(self, kind: str, value: Optional[str] = None) -> Optional[Tok]:
        return self._eat(kind, value) if self._is(kind, value) else None

    def parse(self) -> Dict[str, Rule]:
        rules: Dict[str, Rule] = {}
        while not self._is("EOF"):
            marker = self._accept("SYM", "@") or self._accept("SYM", "~")
            name = self._eat("ID").value
            if self._accept("SYM", "::=") is None:
                self._eat("SYM", "=")
            body = self._parse_expr()
            self._eat("SYM", ";")

            if name in rules:
                raise GrammarError(f"Duplicate rule: {name}")
            rules[name] = Rule(name, body, _MARKERS[marker.value] if marker else NORMAL)

        if not rules:
            raise GrammarError("No rules found in grammar.")
        self._check(rules)
        return rules

    def _check(self, rules: Dict[str, Rule]) -> None:
        for rule in rules.values():
            for name in referenced_names(rule.body):
                if name not in rules and name not in BUILTINS:
                    raise GrammarError(f"Rule {rule.name} references undefined rule {name}")
            for pattern in self._patterns(rule.body):
                try:
                    re.compile(pattern)
                except re.error as e:
                    raise GrammarError(f"Bad regex /{pattern}/ in rule {rule.name}: {e}") from e

    def _patterns(self, node: Node) -> List[str]:
        if isinstance(node, Regex):
            return [node.pattern]
        if isinstance(node, (Seq, Alt)):
            children = node.parts if isinstance(node, Seq) else node.options
            return [p for child in children for p in self._patterns(child)]
        if isinstance(node, (Repeat, Look)):
            return self._patterns(node.node)
        return []

    def _parse_expr(self) -> Node:
        # expr := seq ('|' seq)*
        options = [self._parse_seq()]
        while self._accept("SYM", "|"):
            options.append(self._parse_seq())
        return options[0] if len(options) == 1 else Alt(tuple(options))

    def _at_seq_end(self) -> bool:
        return self._is("EOF") or (self._is("SYM") and self.cur.value in ("|", ")", "]", "}", ";"))

    def _parse_seq(self) -> Node:
        # seq := factor*, where an empty sequence matches the empty string
        parts: List[Node] = []
        while not self._at_seq_end():
            parts.append(self._parse_factor())
        return parts[0] if len(parts) == 1 else Seq(tuple(parts))

    def _parse_factor(self) -> Node:
        # factor := ('&' | '!') factor | atom quantifier?
        if self._is("SYM", "&") or self._is("SYM", "!"):
            return self._parse_lookahead()
        atom = self._parse_atom()
        if self._is("SYM") and self.cur.value in _QUANTIFIERS:
            return Repeat(atom, *_QUANTIFIERS[self._eat("SYM").value])
        return atom

    def _parse_lookahead(self) -> Look:
        positive = self._eat("SYM").value == "&"
        return Look(self._parse_factor(), positive)

    def _parse_atom(self) -> Node:
        # atom := ID | STR | REGEX | '(' expr ')' | '[' expr ']' | '{' expr '}'
        make = _TERMINALS.get(self.cur.kind)
        if make is not None:
            return make(self._eat(self.cur.kind).value)

        if self._is("SYM") and self.cur.value in _GROUPS:
            close, bounds = _GROUPS[self._eat("SYM").value]
            inner = self._parse_expr()
            self._eat("SYM", close)
            return inner if bounds is None else Repeat(inner, *bounds)

        raise GrammarError(f"Grammar parse error at pos {self.cur.pos}: "
                           f"unexpected token {self.cur.kind}({self.cur.value})")


def load_grammar(path: str | Path) -> Dict[str, Rule]:
    text = Path(path).read_text(encoding="utf-8")
    return GrammarParser(text).parse()


def bundled_grammar_path(name: str = 'verus.peg') -> Path:
    return Path(__file__).resolve().parent / 'grammars' / name


# =========================
# Input parser (PEG-style with memoization)
# =========================

def line_col(text: str, pos: int) -> Tuple[int, int]:
    line = text.count("\n", 0, pos) + 1
    col = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, col


def byte_offset(text: str, pos: int) -> int:
    return len(text[:pos].encode("utf-8"))


class ParseError(ValueError):
    """Input does not match the grammar.

    ``position`` is the UTF-8 byte offset of the furthest failure, ``offset``
    the same point as an index into the ``str``; ``line`` and ``column``
    count characters.
    """

    def __init__(self, text: str, position: int, expected):
        self.offset = position
        self.position = byte_offset(text, position)
        self.line, self.column = line_col(text, position)
        self.expected = tuple(sorted(set(expected)))
        snippet = text[position:position+50].splitlines()[0] if text[position:].strip() else ""
        exp = ", ".join(self.expected) or "<nothing>"
        super().__init__(f"Parse error at line {self.line}, col {self.column} (pos {self.position}). "
                         f"Expected: {exp}. Near: {snippet!r}")


class ParseLimitError(ParseError):
    def __init__(self, text: str, position: int, reason: str):
        self.offset = position
        self.position = byte_offset(text, position)
        self.line, self.column = line_col(text, position)
        self.expected = ()
        ValueError.__init__(self, f"Parse limit exceeded at line {self.line}, col {self.column} "
                                  f"(pos {self.position}): {reason}")


# A match is (tag, start, end, children); children is a tuple of matches
Match = Tuple[str, int, int, tuple]

@dataclass(frozen=True)
class ParseOk:
    pos: int
    items: Tuple[Match, ...]

@dataclass(frozen=True)
class ParseFailure:
    farthest: int
    expected: Tuple[str, ...]

Result = Union[ParseOk, ParseFailure]

_EMPTY: Tuple[Match, ...] = ()


class EBNFInterpreter:
    """Matches ``text`` against ``rules`` starting from ``start``.

    Failures are tracked globally: the furthest offset any terminal failed
    at, and what was expected there. A rule that fails at the same offset it
    started from replaces the expectations of its sub-rules with its own
    name, so the report names the outermost construct that could not start.
    """

    def __init__(self, rules: Dict[str, Rule], start: str, text: str, memoize: bool = True,
                 max_depth: Optional[int] = None, stats: Optional[StatsMap] = None):
        if start not in rules:
            raise GrammarError(f"Start rule {start} is not defined")
        if rules[start].kind == SILENT:
            raise GrammarError(f"Start rule {start} cannot be silent")
        self.rules = rules
        self.start = start
        self.text = text
        self.n = len(text)
        self.memoize = memoize
        self.max_depth = max_depth
        self.stats = stats
        self.trivia = [rules[name] for name in TRIVIA_RULES if name in rules]

        # memo for rule calls: (name, pos, atomic, quiet) -> Result
        self.memo: Dict[Tuple[str, int, bool, bool], Result] = {}
        self.active: set[Tuple[str, int]] = set()  # for left recursion detection
        self.depth = 0
        self.quiet = 0
        self.farthest = -1
        self.expected: List[str] = []
        self.regexes: Dict[str, re.Pattern] = {}

    def parse(self) -> ParseTree:
        t_begin = time.time()
        try:
            res = self._parse_rule(self.start, 0, False)
        except RecursionError:
            raise ParseLimitError(self.text, max(self.farthest, 0), "input nests too deeply") from None
        if res is None:
            self._raise_input_error()
        assert isinstance(res, ParseOk)
        if res.pos != self.n:
            # leftover input
            self._record(res.pos, "EOI")
            self._raise_input_error()
        assert len(res.items) == 1
        tree = ParseTree.from_match(res.items[0], self.text)
        if self.stats is not None:
            self.stats.setValue('time.parse', time.time() - t_begin)
            self.stats.setValue('tree.nodes', tree.size())
        return tree

    def _raise_input_error(self) -> None:
        raise ParseError(self.text, self.farthest, self.expected)

    def _record(self, pos: int, expected: str) -> None:
        if self.quiet:
            return
        if pos > self.farthest:
            self.farthest = pos
            self.expected = [expected]
        elif pos == self.farthest:
            self.expected.append(expected)

    def _failure_since(self, entry_farthest: int, entry_len: int) -> ParseFailure:
        if self.farthest > entry_farthest:
            return ParseFailure(self.farthest, tuple(self.expected))
        if self.farthest == entry_farthest and len(self.expected) > entry_len:
            return ParseFailure(self.farthest, tuple(self.expected[entry_len:]))
        return ParseFailure(-1, ())

    def _regex(self, pattern: str) -> re.Pattern:
        r = self.regexes.get(pattern)
        if r is None:
            r = self.regexes[pattern] = re.compile(pattern)
        return r

    def _skip(self, pos: int, atomic: bool) -> Tuple[int, Tuple[Match, ...]]:
        if atomic or not self.trivia:
            return pos, _EMPTY
        cur = pos
        self.quiet += 1
        try:
            progress = True
            while progress:
                progress = False
                for rule in self.trivia:
                    r = self._parse_node(rule.body, cur, True)
                    if r is not None and r.pos > cur:
                        cur = r.pos
                        progress = True
        finally:
            self.quiet -= 1
        if cur == pos:
            return pos, _EMPTY
        return cur, ((TRIVIA, pos, cur, ()),)

    def _token(self, pos: int, end: int, atomic: bool) -> ParseOk:
        if atomic or end == pos:
            return ParseOk(end, _EMPTY)
        return ParseOk(end, ((TOKEN, pos, end, ()),))

    def _parse_rule(self, name: str, pos: int, atomic: bool) -> Optional[ParseOk]:
        rule = self.rules[name]
        key = (name, pos, atomic, self.quiet > 0)
        if self.stats is not None:
            self.stats.increaseValue(f'rules.{name}.calls', 1)
        if self.memoize and key in self.memo:
            if self.stats is not None:
                self.stats.increaseValue('memo.hits', 1)
            res = self.memo[key]
            if isinstance(res, ParseFailure):
                for exp in res.expected:
                    self._record(res.farthest, exp)
                return None
            return res
        if self.stats is not None and self.memoize:
            self.stats.increaseValue('memo.misses', 1)

        # left recursion detection
        if (name, pos) in self.active:
            self._record(pos, f"<left recursion in {name}>")
            return None

        if self.max_depth is not None and self.depth >= self.max_depth:
            raise ParseLimitError(self.text, pos, f"rule nesting deeper than {self.max_depth} at {name}")

        entry_farthest, entry_len = self.farthest, len(self.expected)
        self.active.add((name, pos))
        self.depth += 1
        try:
            res = self._parse_node(rule.body, pos, atomic or rule.kind == ATOMIC)
        finally:
            self.depth -= 1
            self.active.discard((name, pos))

        if res is None:
            if rule.kind != SILENT and not self.quiet and self.farthest == pos:
                if entry_farthest == pos:
                    del self.expected[entry_len:]
                else:
                    self.expected = []
                self.expected.append(name)
            failure = self._failure_since(entry_farthest, entry_len)
            if self.memoize:
                self.memo[key] = failure
            return None

        if atomic:
            # structure inside an enclosing atomic rule is discarded
            wrapped = ParseOk(res.pos, _EMPTY)
        elif rule.kind == SILENT:
            wrapped = res
        elif rule.kind == ATOMIC:
            wrapped = ParseOk(res.pos, ((name, pos, res.pos, ()),))
        else:
            wrapped = ParseOk(res.pos, ((name, pos, res.pos, res.items),))
        if self.memoize:
            self.memo[key] = wrapped
        return wrapped

    def _parse_node(self, node: Node, pos: int, atomic: bool) -> Optional[ParseOk]:
        if isinstance(node, Ref):
            if node.name in self.rules:
                return self._parse_rule(node.name, pos, atomic)
            return self._parse_builtin(node.name, pos, atomic)

        if isinstance(node, Lit):
            if self.text.startswith(node.text, pos):
                return self._token(pos, pos + len(node.text), atomic)
            self._record(pos, repr(node.text))
            return None

        if isinstance(node, Regex):
            m = self._regex(node.pattern).match(self.text, pos)
            if m:
                return self._token(pos, m.end(), atomic)
            self._record(pos, f"/{node.pattern}/")
            return None

        if isinstance(node, Seq):
            cur_pos = pos
            items: List[Match] = []
            for idx, part in enumerate(node.parts):
                if idx > 0:
                    cur_pos, trivia = self._skip(cur_pos, atomic)
                    items.extend(trivia)
                r = self._parse_node(part, cur_pos, atomic)
                if r is None:
                    return None
                items.extend(r.items)
                cur_pos = r.pos
            return ParseOk(cur_pos, tuple(items))

        if isinstance(node, Alt):
            for opt in node.options:
                r = self._parse_node(opt, pos, atomic)
                if r is not None:
                    return r
            return None

        if isinstance(node, Repeat):
            cur_pos = pos
            items = []
            count = 0
            while node.max_times is None or count < node.max_times:
                p, trivia = self._skip(cur_pos, atomic) if count > 0 else (cur_pos, _EMPTY)
                r = self._parse_node(node.node, p, atomic)
                if r is None:
                    break
                if r.pos == p:
                    # zero-width match: count it once, never loop on it
                    if not trivia:
                        items.extend(r.items)
                        count += 1
                    break
                items.extend(trivia)
                items.extend(r.items)
                cur_pos = r.pos
                count += 1

            if count < node.min_times:
                return None
            return ParseOk(cur_pos, tuple(items))

        if isinstance(node, Look):
            if node.positive:
                r = self._parse_node(node.node, pos, atomic)
                return ParseOk(pos, _EMPTY) if r is not None else None
            self.quiet += 1
            try:
                r = self._parse_node(node.node, pos, atomic)
            finally:
                self.quiet -= 1
            if r is None:
                return ParseOk(pos, _EMPTY)
            self._record(pos, describe(node))
            return None

        raise TypeError(f"Unknown grammar node: {node!r}")

    def _parse_builtin(self, name: str, pos: int, atomic: bool) -> Optional[ParseOk]:
        if name == 'SOI':
            if pos == 0:
                return ParseOk(pos, _EMPTY)
        elif name == 'EOI':
            if pos == self.n:
                return ParseOk(pos, _EMPTY)
        elif name == 'ANY':
            if pos < self.n:
                return self._token(pos, pos + 1, atomic)
        else:
            raise GrammarError(f"Undefined rule {name}")
        self._record(pos, name)
        return None
