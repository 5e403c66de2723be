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

import sys
import argparse
import importlib.resources
import json
import os
from pathlib import Path
from typing import Any, Dict

from .ebnf import GrammarParser, EBNFInterpreter, GrammarError, ParseError
from .extract import DEFAULT_EXPRESSION_RULES, extract_expressions
from .stats import StatsMap, memory_usage
from .tree import TreeDumper

DEFAULT_GRAMMAR_URI = 'package://exprscan/grammars/verus.peg'


def _resolve_path_uri(uri, relative_path_root=None) -> str:
    if uri.startswith('package://'):
        # Package-relative path
        package_and_path = uri[10:]
        idx = package_and_path.find('/')
        if idx < 0:
            raise ValueError(f'Cannot process URI: {uri}; no path after package name.')
        package_name = package_and_path[0:idx]
        relative_path = package_and_path[idx+1:]
        try:
            share_dir = Path(str(importlib.resources.files(package_name)))
        except (ImportError, TypeError) as e:
            raise ValueError(f'Cannot process URI: {uri}; cannot locate package {package_name}: {e}') from e
        return str(share_dir / relative_path)
    elif os.path.isabs(uri):
        return uri
    else:
        if relative_path_root is None:
            raise ValueError(f'Cannot process URI: {uri}; relative path root is None.')
        return str(Path(relative_path_root) / uri)

def _load_json_file(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File does not exist: {path}")
    text = p.read_text(encoding="utf-8")
    data = json.loads(text) if text.strip() else {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return data

def _load_grammar_text(grammar_file_path) -> str:
    with open(grammar_file_path, 'r', encoding='utf-8') as f:
        text = f.read()
    return text


# Accepted config keys and the JSON types of their values; null leaves the default
_CONFIG_TYPES = {
    'grammar': (str,),
    'start': (str,),
    'rules': (list,),
    'memoize': (bool,),
    'max_depth': (int,),
}


class Settings:
    """Effective run settings: defaults, then the config file, then flags."""

    def __init__(self):
        self.grammar = DEFAULT_GRAMMAR_URI
        self.grammar_root = os.getcwd()
        self.start = None
        self.rules = list(DEFAULT_EXPRESSION_RULES)
        self.memoize = True
        self.max_depth = None

    def apply_config(self, config_path: str) -> None:
        config = _load_json_file(config_path)
        config_dir = str(Path(config_path).resolve().parent)
        unknown = set(config) - set(_CONFIG_TYPES)
        if unknown:
            raise ValueError(f"Unknown keys in config {config_path}: {', '.join(sorted(unknown))}")
        for key, types in _CONFIG_TYPES.items():
            val = config.get(key)
            if val is not None and (not isinstance(val, types) or (key == 'max_depth' and isinstance(val, bool))):
                raise ValueError(f"'{key}' in config {config_path} must be of type "
                                 f"{' or '.join(t.__name__ for t in types)}, got {type(val).__name__}")
        if config.get('max_depth') is not None and config['max_depth'] < 0:
            raise ValueError(f"'max_depth' in config {config_path} must not be negative")
        if config.get('rules') is not None and (
                not config['rules'] or not all(isinstance(r, str) for r in config['rules'])):
            raise ValueError(f"'rules' in config {config_path} must be a non-empty list of rule names")

        if config.get('grammar') is not None:
            self.grammar = config['grammar']
            self.grammar_root = config_dir
        if config.get('start') is not None:
            self.start = config['start']
        if config.get('rules') is not None:
            self.rules = list(config['rules'])
        if config.get('memoize') is not None:
            self.memoize = config['memoize']
        if config.get('max_depth') is not None:
            self.max_depth = config['max_depth']

    def apply_args(self, args: argparse.Namespace) -> None:
        if args.grammar is not None:
            self.grammar = args.grammar
            self.grammar_root = os.getcwd()
        if args.start is not None:
            self.start = args.start
        if args.rule:
            self.rules = list(args.rule)
        if args.no_memo:
            self.memoize = False
        if args.max_depth is not None:
            self.max_depth = args.max_depth


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exprscan",
        description="Parse a source file with a PEG grammar and list its unique expressions.",
    )
    parser.add_argument(
        "input",
        help="Source file to scan (read as UTF-8)",
    )
    parser.add_argument(
        "--grammar",
        help=f"Grammar file path: absolute, relative OR package://<pkg-name>/<relative-path> "
             f"(default: {DEFAULT_GRAMMAR_URI})",
    )
    parser.add_argument("--start", help="Start rule (default: the first rule of the grammar)")
    parser.add_argument(
        "--rule", action="append", metavar="NAME",
        help=f"Rule whose matches are collected; may be repeated "
             f"(default: {', '.join(DEFAULT_EXPRESSION_RULES)})",
    )
    parser.add_argument("--config", help="JSON file with grammar, start, rules, memoize and max_depth")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--dump-tree", action="store_true", help="Print the parse tree instead of expressions")
    parser.add_argument("--all-nodes", action="store_true", help="With --dump-tree, include token and trivia leaves")
    parser.add_argument("--stats", action="store_true", help="Print parse statistics to stderr")
    parser.add_argument("--no-memo", action="store_true", help="Disable packrat memoization")
    parser.add_argument("--max-depth", type=int, help="Maximum rule nesting depth")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print progress to stderr")
    return parser


def main(argv=None) -> int:
    args = _build_arg_parser().parse_args(argv)
    verbose = args.verbose

    settings = Settings()
    try:
        if args.config is not None:
            if verbose: print(f'Reading configuration: {args.config}', file=sys.stderr)
            settings.apply_config(args.config)
        settings.apply_args(args)
        grammar_file_path = _resolve_path_uri(settings.grammar, settings.grammar_root)
    except (OSError, ValueError) as e:
        print(f'error: {e}', file=sys.stderr)
        return 1

    if verbose:
        print('Using grammar:', file=sys.stderr)
        print(f'  {settings.grammar}', file=sys.stderr)
        print(f'  abs: {grammar_file_path}', file=sys.stderr)

    try:
        grammar_text = _load_grammar_text(grammar_file_path)
    except (OSError, UnicodeDecodeError) as e:
        print(f'error: cannot read grammar {grammar_file_path}: {e}', file=sys.stderr)
        return 1

    try:
        input_text = Path(args.input).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f'error: cannot read {args.input}: {e}', file=sys.stderr)
        return 1

    stats = StatsMap() if args.stats else None
    try:
        rules = GrammarParser(grammar_text).parse()
        # The first rule is the start rule
        start = settings.start if settings.start is not None else next(iter(rules.keys()))
        if verbose: print(f'Parsing {args.input} from rule {start}', file=sys.stderr)
        parser = EBNFInterpreter(rules, start, input_text, memoize=settings.memoize,
                                 max_depth=settings.max_depth, stats=stats)
        tree = parser.parse()
    except GrammarError as e:
        print(f'error: grammar {grammar_file_path}: {e}', file=sys.stderr)
        return 1
    except ParseError as e:
        print(f'{args.input}: {e}', file=sys.stderr)
        return 1

    if args.dump_tree:
        TreeDumper(tree, all_nodes=args.all_nodes).dump(sys.stdout)
    else:
        unknown_rules = [r for r in settings.rules if r not in rules]
        if unknown_rules and verbose:
            print(f'Rules not in grammar: {", ".join(unknown_rules)}', file=sys.stderr)
        if verbose: print(f'Collecting matches of: {", ".join(settings.rules)}', file=sys.stderr)
        expressions = extract_expressions(tree, settings.rules, stats=stats)
        if args.json:
            print(json.dumps(expressions.toJson(), indent=2, ensure_ascii=False))
        else:
            for text in expressions:
                print(text)
            print(f'{len(expressions)} unique expressions')

    if stats is not None:
        for key, val in memory_usage().items():
            stats.setValue(f'memory.{key}', val)
        print(json.dumps(stats.toJson(), indent=2, ensure_ascii=False), file=sys.stderr)

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
