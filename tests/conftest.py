"""Shared test configuration and fixtures."""

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest

import shibplay_odds.core.config as config_module

_ISOLATED_ENV_VARS = ("SQUID_GRAPHQL_URL", "ENVIRONMENT")


@pytest.fixture(autouse=True)
def _isolate_config() -> Iterator[None]:  # pyright: ignore[reportUnusedFunction]
    """Run every test against the packaged defaults.

    The default ``settings.yaml`` substitutes ``${SQUID_GRAPHQL_URL}`` and
    ``${ENVIRONMENT}``. A developer shell exporting either would otherwise
    change what the config tests see, and a ``get_config()`` singleton
    created by one test would leak into the next.
    """
    cleaned = {k: v for k, v in os.environ.items() if k not in _ISOLATED_ENV_VARS}
    with patch.dict(os.environ, cleaned, clear=True):
        config_module._config = None
        yield
        config_module._config = None
