"""Tests for sidecar logging setup."""

from __future__ import annotations

import logging
import sys
from unittest.mock import patch

from portfoliotracker.log_config import setup


class TestSetup:
    """Tests for where log records are sent."""

    def test_defaults_to_stderr_at_info(self):
        with patch("logging.basicConfig") as basic_config:
            setup()

        kwargs = basic_config.call_args.kwargs
        assert kwargs["stream"] is sys.stderr
        assert kwargs["level"] == logging.INFO

    def test_verbose_with_explicit_stream(self, tmp_path):
        with (tmp_path / "log.txt").open("w") as stream, patch("logging.basicConfig") as basic_config:
            setup(verbose=True, stream=stream)

        kwargs = basic_config.call_args.kwargs
        assert kwargs["stream"] is stream
        assert kwargs["level"] == logging.DEBUG
