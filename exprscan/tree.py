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

from collections import deque
from dataclasses import dataclass
from typing import Any, List, Tuple
import sys

# Tags of leaves that are not produced by grammar rules
TOKEN = '<token>'
TRIVIA = '<trivia>'


@dataclass(frozen=True)
class Node:
    rule: str
    start: int
    end: int
    first_child: int
    child_count: int

    def is_leaf(self) -> bool:
        return self.child_count == 0


class ParseTree:
    """Parse tree stored as a flat arena of nodes.

    The root is ``nodes[0]``. The children of a node occupy the contiguous
    slice ``nodes[first_child:first_child + child_count]``, in source order.
    """

    def __init__(self, text: str, nodes: List[Node]):
        self.text = text
        self.nodes = nodes

    @staticmethod
    def from_match(match: Tuple[str, int, int, tuple], text: str) -> ParseTree:
        # Breadth-first layout keeps every family of siblings contiguous
        slots: List[Any] = [None]
        pending = deque([(0, match)])
        while pending:
            idx, (rule, start, end, children) = pending.popleft()
            first = len(slots)
            for k, child in enumerate(children):
                slots.append(None)
                pending.append((first + k, child))
            slots[idx] = Node(rule, start, end, first, len(children))
        return ParseTree(text, slots)

    @property
    def root(self) -> int:
        return 0

    def size(self) -> int:
        return len(self.nodes)

    def node(self, idx: int) -> Node:
        return self.nodes[idx]

    def rule(self, idx: int) -> str:
        return self.nodes[idx].rule

    def span(self, idx: int) -> Tuple[int, int]:
        n = self.nodes[idx]
        return n.start, n.end

    def children(self, idx: int) -> range:
        n = self.nodes[idx]
        return range(n.first_child, n.first_child + n.child_count)

    def text_of(self, idx: int) -> str:
        n = self.nodes[idx]
        return self.text[n.start:n.end]

    def check_spans(self) -> None:
        root = self.nodes[0]
        assert (root.start, root.end) == (0, len(self.text)), \
            f'root span [{root.start}, {root.end}) does not cover input of length {len(self.text)}'
        for idx, n in enumerate(self.nodes):
            assert 0 <= n.start <= n.end <= len(self.text), f'node {idx} span out of bounds'
            if n.is_leaf():
                continue
            cur = n.start
            for ch_idx in self.children(idx):
                ch = self.nodes[ch_idx]
                assert ch.start == cur, \
                    f'gap or overlap in children of node {idx} ({n.rule}) at {cur}'
                cur = ch.end
            assert cur == n.end, f'children of node {idx} ({n.rule}) end at {cur}, node ends at {n.end}'


def flatten(tree: ParseTree) -> List[int]:
    """Returns the indices of all nodes in pre-order."""
    order: List[int] = []
    stack = [tree.root]
    while stack:
        idx = stack.pop()
        order.append(idx)
        stack.extend(reversed(tree.children(idx)))
    return order


class TreeDumper:
    def __init__(self, tree: ParseTree, all_nodes: bool = False):
        self.tree = tree
        self.all_nodes = all_nodes

    def printIndent(self, depth, s, out):
        print('{}{}'.format('  '*depth, s), file=out)

    def dump(self, out=None) -> None:
        out = sys.stdout if out is None else out
        stack = [(self.tree.root, 0)]
        while stack:
            idx, depth = stack.pop()
            n = self.tree.node(idx)
            if not self.all_nodes and n.rule in (TOKEN, TRIVIA):
                continue
            self.printIndent(depth, self.format_node(idx), out)
            for ch in reversed(self.tree.children(idx)):
                stack.append((ch, depth + 1))

    def format_node(self, idx: int) -> str:
        n = self.tree.node(idx)
        text = self.tree.text_of(idx)
        if len(text) > 40:
            text = text[:37] + '...'
        return f'{n.rule} [{n.start}..{n.end}) {text!r}'
