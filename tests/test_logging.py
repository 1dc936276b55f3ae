"""
Tests for balena_release_update.logging module.
"""

from __future__ import annotations

import io

from balena_release_update.logging import (
    DefaultLogger,
    SilentLogger,
    get_global_logger,
    set_global_logger,
)


def test_default_logger_levels():
    """Test that verbose and debug output depend on the flags."""
    stream = io.StringIO()
    logger = DefaultLogger(verbose=True, stream=stream)

    logger.step(1, 3, "Resolving update...")
    logger.verbose("POLL", "not ready")
    logger.debug("HTTP", "GET /v6/release(1)")
    logger.warning("DELTA", "odd answer")

    assert stream.getvalue().splitlines() == [
        "[1/3] Resolving update...",
        "[POLL] not ready",
        "[WARNING] [DELTA] odd answer",
    ]


def test_debug_implies_verbose():
    """Test that debug mode also prints verbose messages."""
    stream = io.StringIO()
    logger = DefaultLogger(debug=True, stream=stream)

    logger.verbose("POLL", "a")
    logger.debug("HTTP", "b")

    assert stream.getvalue().splitlines() == ["[POLL] a", "[DEBUG] [HTTP] b"]


def test_default_logger_writes_to_stderr(capsys):
    """Test that output stays off stdout."""
    DefaultLogger().step(1, 1, "hello")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "hello" in captured.err


def test_global_logger_roundtrip():
    """Test replacing and restoring the global logger."""
    original = get_global_logger()
    replacement = SilentLogger()
    try:
        set_global_logger(replacement)
        assert get_global_logger() is replacement
    finally:
        set_global_logger(original)
