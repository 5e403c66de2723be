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

from typing import Iterable, Iterator, List, Optional
import time

from .stats import StatsMap
from .tree import ParseTree, flatten

# Expression-forming rules of the bundled Verus grammar
DEFAULT_EXPRESSION_RULES = ('expr', 'expr_inner')


def filter_rules(tree: ParseTree, order: Iterable[int], rules: Iterable[str]) -> List[int]:
    wanted = frozenset(rules)
    return [idx for idx in order if tree.rule(idx) in wanted]


def normalize(text: str) -> str:
    return text.strip()


class ExpressionSet:
    """Set of expression texts.

    Membership is exact string equality. Iteration is in ascending
    lexicographic order, which for ``str`` matches the byte order of the
    UTF-8 encoding.
    """

    def __init__(self, items: Iterable[str] = ()):
        self._items: dict[str, None] = {}
        self._sorted: Optional[List[str]] = None
        for item in items:
            self.add(item)

    def add(self, text: str) -> bool:
        if text in self._items:
            return False
        self._items[text] = None
        self._sorted = None
        return True

    def __contains__(self, text: object) -> bool:
        return text in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        if self._sorted is None:
            self._sorted = sorted(self._items)
        return iter(self._sorted)

    def toJson(self) -> dict:
        return {'expressions': list(self), 'count': len(self)}


def extract_expressions(tree: ParseTree, rules: Iterable[str] = DEFAULT_EXPRESSION_RULES,
                        stats: Optional[StatsMap] = None) -> ExpressionSet:
    t_begin = time.time()
    selected = filter_rules(tree, flatten(tree), rules)
    found = ExpressionSet()
    for idx in selected:
        found.add(normalize(tree.text_of(idx)))
    if stats is not None:
        stats.setValue('time.extract', time.time() - t_begin)
        stats.setValue('extract.matched_nodes', len(selected))
        stats.setValue('extract.unique', len(found))
    return found
