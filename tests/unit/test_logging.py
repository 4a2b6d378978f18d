"""
Unit tests for the logging formatters and bound context.
"""

import json
import logging

import pytest

from zdefense.core.logging.logger import (
    BoundContextFilter,
    ConsoleFormatter,
    JSONFormatter,
    log_context,
    record_context,
)


def _record(msg="Loot dropped", **extra):
    record = logging.LogRecord("zdefense.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    def test_bound_fields_reach_record(self):
        record = _record()

        with log_context(match_id="m-1", player_id=5):
            BoundContextFilter().filter(record)

        assert record.match_id == "m-1"
        assert record.player_id == 5

    def test_explicit_extra_wins(self):
        record = _record(player_id=9)

        with log_context(player_id=5):
            BoundContextFilter().filter(record)

        assert record.player_id == 9

    def test_nested_blocks_restore(self):
        with log_context(match_id="outer"):
            with log_context(player_id=1) as inner:
                assert inner == {"match_id": "outer", "player_id": 1}
            record = _record()
            BoundContextFilter().filter(record)

        assert not hasattr(record, "player_id")
        assert record.match_id == "outer"


@pytest.mark.unit
class TestFormatters:
    def test_record_context_excludes_standard_attrs(self):
        assert record_context(_record(cosmetic_id=3)) == {"cosmetic_id": 3}

    def test_json_document(self):
        document = json.loads(JSONFormatter().format(_record(cosmetic_id=3)))

        assert document["message"] == "Loot dropped"
        assert document["level"] == "INFO"
        assert document["logger"] == "zdefense.test"
        assert document["context"] == {"cosmetic_id": 3}

    def test_console_line_appends_context(self):
        line = ConsoleFormatter().format(_record(loot_table_id=2))

        assert "Loot dropped" in line
        assert line.endswith("loot_table_id=2")
