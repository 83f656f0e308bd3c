"""Tests for placement logging configuration."""

from ipaddress import IPv6Network, ip_interface
import json
import logging
import re

import pytest
import structlog

from vps_placement.config import Settings, get_settings
from vps_placement.contracts.dto import IpRangeAllocationMode
from vps_placement.logging import placement_context, setup_logging


def strip_ansi(text):
    """Strip ANSI escape sequences from text."""
    ansi_escape = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
    return ansi_escape.sub("", text)


def parse_json_lines(output):
    """Parse output containing multiple JSON lines."""
    lines = output.strip().split("\n")
    return [json.loads(line) for line in lines if line.strip()]


def find_event(output, event):
    return next((e for e in parse_json_lines(output) if e.get("event") == event), None)


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    get_settings.cache_clear()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    get_settings.cache_clear()


class TestLoggingSetup:
    """Test logging setup and configuration."""

    def test_defaults(self, capsys):
        setup_logging(make_settings())

        output = strip_ansi(capsys.readouterr().out)
        assert "logging_initialized" in output
        assert "service=vps-placement" in output

    def test_json_format(self, capsys):
        setup_logging(make_settings(service_name="test_service", log_format="json"))

        structlog.get_logger().info("host_selected", host_id=3, load=0.25)

        log_entry = find_event(capsys.readouterr().out, "host_selected")
        assert log_entry is not None
        assert log_entry["service"] == "test_service"
        assert log_entry["host_id"] == 3  # noqa: PLR2004
        assert log_entry["load"] == 0.25  # noqa: PLR2004
        assert log_entry["level"] == "info"
        assert "timestamp" in log_entry

    def test_console_format(self, capsys):
        setup_logging(make_settings(service_name="test_service", log_format="console"))

        structlog.get_logger().info("host_selected", host_id=3)

        output = strip_ansi(capsys.readouterr().out)
        assert "host_selected" in output
        assert "host_id=3" in output

    def test_level_filters_events(self, capsys):
        setup_logging(make_settings(log_format="json", log_level="warning"))
        logger = structlog.get_logger()

        logger.info("filtered_event")
        logger.warning("ip_range_pick_failed", range_id=1)

        output = capsys.readouterr().out
        assert "filtered_event" not in output
        assert find_event(output, "ip_range_pick_failed")["range_id"] == 1

    def test_without_settings_reads_environment(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("SERVICE_NAME", "env_service")
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.chdir(tmp_path)

        setup_logging()
        structlog.get_logger().debug("random_pick_fallback", attempts=32)

        log_entry = find_event(capsys.readouterr().out, "random_pick_fallback")
        assert log_entry is not None
        assert log_entry["service"] == "env_service"
        assert log_entry["level"] == "debug"


class TestPlacementValues:
    """Addresses and enums are logged in their text form."""

    def test_json_renders_addresses_and_enums(self, capsys):
        setup_logging(make_settings(log_format="json"))

        structlog.get_logger().info(
            "ip_picked",
            ip=ip_interface("10.0.0.5/8"),
            gateway=ip_interface("10.0.0.1/8").ip,
            prefix=IPv6Network("fd00::/64"),
            mode=IpRangeAllocationMode.SLAAC_EUI64,
        )

        log_entry = find_event(capsys.readouterr().out, "ip_picked")
        assert log_entry["ip"] == "10.0.0.5/8"
        assert log_entry["gateway"] == "10.0.0.1"
        assert log_entry["prefix"] == "fd00::/64"
        assert log_entry["mode"] == IpRangeAllocationMode.SLAAC_EUI64.value


class TestPlacementContext:
    """Placement context binding."""

    def test_binds_and_unbinds(self, capsys):
        setup_logging(make_settings(log_format="json"))
        logger = structlog.get_logger()

        with placement_context(order_id=42, region_id=1, host_id=None):
            logger.info("inside")
        logger.info("outside")

        output = capsys.readouterr().out
        inside = find_event(output, "inside")
        outside = find_event(output, "outside")
        assert inside["order_id"] == 42  # noqa: PLR2004
        assert inside["region_id"] == 1
        assert "host_id" not in inside
        assert "order_id" not in outside
        assert "region_id" not in outside

    def test_nested_context_restores_outer_values(self):
        with placement_context(region_id=1):
            with placement_context(region_id=2, vm_id=7):
                assert structlog.contextvars.get_contextvars()["region_id"] == 2  # noqa: PLR2004
            assert structlog.contextvars.get_contextvars() == {"region_id": 1}
