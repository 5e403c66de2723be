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

import psutil


class StatsMap:
    """Nested statistics addressed by dotted paths, e.g. ``rules.expr.calls``.

    Intermediate levels are plain dicts, so ``toJson()`` can be dumped as is.
    """

    def __init__(self, verbose: bool = False):
        self._stats_map = {}
        self._verbose = verbose

    def toJson(self) -> dict:
        return self._stats_map

    @staticmethod
    def fromJson(d: dict) -> StatsMap:
        out = StatsMap()
        out._stats_map = d
        return out

    def _walk(self, path: str, create: bool) -> tuple[dict | None, str]:
        """Returns the dict holding the last component of ``path`` and that
        component, or ``(None, key)`` when a level is missing and ``create``
        is false."""
        assert isinstance(path, str)
        *parents, key = path.split('.')
        level = self._stats_map
        for name in parents:
            if name not in level:
                if not create:
                    return None, key
                if self._verbose: print(f'  new stats level: {name}')
                level[name] = {}
            level = level[name]
        return level, key

    def increaseValue(self, path: str, delta_val: int|float):
        assert isinstance(delta_val, (int, float))
        if self._verbose: print(f'increaseValue({path}, {delta_val})')
        level, key = self._walk(path, True)
        level[key] = level.get(key, 0) + delta_val

    def setValue(self, path: str, val: int|float):
        assert isinstance(val, (int, float))
        self.setValueObj(path, val)

    def setValueObj(self, path: str, val):
        if self._verbose: print(f'setValue({path}, {val})')
        level, key = self._walk(path, True)
        level[key] = val

    def getValue(self, path: str) -> int|float:
        level, key = self._walk(path, False)
        val = 0 if level is None else level.get(key, 0)
        assert isinstance(val, (int, float))
        return val

    def getKeysAt(self, path: str) -> list[str]:
        level, key = self._walk(path, False)
        if level is None or not isinstance(level.get(key), dict):
            return []
        return list(level[key])


def memory_usage() -> dict[str, float]:
    """Resident size of this process and the system-wide memory picture."""
    vm = psutil.virtual_memory()
    rss = psutil.Process().memory_info().rss
    return {
        'rss_MiB': rss / (1024**2),
        'total_GiB': vm.total / (1024**3),
        'available_GiB': vm.available / (1024**3),
        'percent': vm.percent,
    }
