"""
Shared fixtures for the production insights test suite
"""

import pytest

from factories import NOW
from production_insights.config import AnalyticsConfig


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def config():
    return AnalyticsConfig()
