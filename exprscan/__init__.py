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


from .ebnf import GrammarParser, EBNFInterpreter, GrammarError, ParseError, ParseLimitError  # noqa: F401
from .ebnf import load_grammar, bundled_grammar_path  # noqa: F401
from .tree import ParseTree, TreeDumper, flatten  # noqa: F401
from .extract import DEFAULT_EXPRESSION_RULES, ExpressionSet, extract_expressions,\
    filter_rules, normalize  # noqa: F401
