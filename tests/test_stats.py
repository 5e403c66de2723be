from __future__ import annotations

"""
Tests for the dotted-path statistics map.
"""

from exprscan.stats import StatsMap, memory_usage


def test_increase_and_set_values():
    stats = StatsMap()
    stats.increaseValue("rules.expr.calls", 1)
    stats.increaseValue("rules.expr.calls", 2)
    stats.setValue("time.parse", 0.5)

    assert stats.getValue("rules.expr.calls") == 3
    assert stats.getValue("time.parse") == 0.5
    assert stats.getValue("rules.term.calls") == 0
    assert stats.getValue("missing") == 0
    assert stats.getKeysAt("rules") == ["expr"]
    assert stats.getKeysAt("nothing.here") == []


def test_json_round_trip():
    stats = StatsMap()
    stats.setValueObj("grammar.path", "verus.peg")
    stats.increaseValue("memo.hits", 4)

    copy = StatsMap.fromJson(stats.toJson())
    assert copy.toJson() == {"grammar": {"path": "verus.peg"}, "memo": {"hits": 4}}
    assert copy.getValue("memo.hits") == 4


def test_memory_usage_keys():
    usage = memory_usage()

    assert set(usage) == {"rss_MiB", "total_GiB", "available_GiB", "percent"}
    assert usage["rss_MiB"] > 0
    assert 0 <= usage["percent"] <= 100
