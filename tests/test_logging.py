"""Tests for structlog configuration."""

from io import StringIO

from server_stats.logging import configure_logging, get_logger


def test_warning_is_written_to_stream():
    stream = StringIO()
    configure_logging("WARNING", stream=stream)

    get_logger("probes").warning("probe_unavailable", probe="who")

    output = stream.getvalue()
    assert "probe_unavailable" in output
    assert "probe=who" in output
    assert "component=probes" in output


def test_level_filters_lower_messages():
    stream = StringIO()
    configure_logging("WARNING", stream=stream)

    get_logger().debug("refreshed")
    get_logger().info("starting")

    assert stream.getvalue() == ""


def test_debug_level_shows_debug():
    stream = StringIO()
    configure_logging("debug", stream=stream)

    get_logger("sampler").debug("refreshed", processes=3)

    assert "refreshed" in stream.getvalue()


def test_unknown_level_falls_back_to_warning():
    stream = StringIO()
    configure_logging("chatty", stream=stream)

    get_logger().info("hidden")
    get_logger().error("shown")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "shown" in output
