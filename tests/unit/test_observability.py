"""Tests for structured logging and configuration."""

import json
import logging
import sys

import pytest
from pydantic import ValidationError

from evpages.config import Settings, asyncpg_url
from evpages.observability.logging import TEXT_FORMAT, JSONFormatter, RunIdFilter, get_run_id, run_context


def _record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("evpages.test", logging.WARNING, __file__, 1, msg, (), None)
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "evpages.test"
        assert entry["message"] == "hello"
        assert "run_id" not in entry

    def test_locality_extras(self):
        entry = json.loads(JSONFormatter().format(_record(locality="los-angeles-ca", step="content")))
        assert entry["locality"] == "los-angeles-ca"
        assert entry["step"] == "content"
        assert "region" not in entry

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]


class TestRunContext:
    def test_binds_and_resets(self):
        with run_context("abc123") as rid:
            assert rid == "abc123"
            assert get_run_id() == "abc123"
            entry = json.loads(JSONFormatter().format(_record()))
            assert entry["run_id"] == "abc123"
        assert get_run_id() == ""

    def test_generates_id(self):
        with run_context() as rid:
            assert len(rid) == 12
            assert get_run_id() == rid

    def test_filter_tags_text_lines(self):
        record = _record()
        with run_context("r1"):
            RunIdFilter().filter(record)
        assert record.run_id == "r1"
        assert record.run_tag == " [r1]"
        assert " [r1]: hello" in logging.Formatter(TEXT_FORMAT).format(record)

    def test_filter_outside_run(self):
        record = _record()
        RunIdFilter().filter(record)
        assert record.run_tag == ""


class TestSettings:
    def test_postgres_scheme_rewritten(self):
        s = Settings(_env_file=None, database_url="postgres://u:p@db.example.com:5432/ev")
        assert s.database_url == "postgresql+asyncpg://u:p@db.example.com:5432/ev"
        assert s.database_require_ssl is False

    def test_sslmode_stripped_and_kept(self):
        s = Settings(_env_file=None, database_url="postgresql://u:p@h/ev?sslmode=require")
        assert s.database_url == "postgresql+asyncpg://u:p@h/ev"
        assert s.database_require_ssl is True

    def test_api_key_stripped(self):
        s = Settings(_env_file=None, llm_api_key="  sk-test\n")
        assert s.llm_api_key == "sk-test"

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.max_concurrent_connections == 10
        assert s.pacing_requests_per_window == 50
        assert s.pacing_cooldown_seconds == 60.0
        assert s.rates_in_cents is True

    def test_zero_connection_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_concurrent_connections=0)


class TestAsyncpgUrl:
    def test_already_asyncpg(self):
        assert asyncpg_url("postgresql+asyncpg://u:p@h/ev") == ("postgresql+asyncpg://u:p@h/ev", False)

    def test_non_ssl_params_dropped(self):
        assert asyncpg_url("postgres://u:p@h/ev?sslmode=disable&application_name=x") == (
            "postgresql+asyncpg://u:p@h/ev", False,
        )

    def test_verify_full(self):
        assert asyncpg_url("postgresql://h/ev?sslmode=verify-full")[1] is True
