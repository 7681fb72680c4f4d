"""Utilities for seeding environment variables required by the test suite."""

from __future__ import annotations

import os


_REQUIRED_ENV_FOR_TESTS = {
    "DISCORD_TOKEN": "test-token",
    "TCN_API_URL": "http://tcn.test/api",
    "TCN_API_TOKEN": "test-api-token",
    "TCN_GUILDS_PATH": "config/guilds.example.json",
}


def apply_required_test_environment() -> None:
    """Populate the minimum environment expected by the test suite."""

    for key, value in _REQUIRED_ENV_FOR_TESTS.items():
        os.environ.setdefault(key, value)
