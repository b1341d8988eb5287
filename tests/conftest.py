"""Shared fixtures."""

import pytest

from crx_reconciler.config import CrxSettings
from fakes import RecordingSleep


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def settings():
    return CrxSettings(settle_seconds=10)
