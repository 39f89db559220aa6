"""
Shared fixtures for the veo3ops test suite.
"""

import pytest

from fakes import FakeStatusClient


@pytest.fixture
def fake_client():
    return FakeStatusClient()
