"""Shared pytest fixtures. Fakes are in helpers.py."""

import sys
from pathlib import Path

import pytest

# Add the tests directory to sys.path so test files can import helpers.py
sys.path.insert(0, str(Path(__file__).parent))

from helpers import FakePage, FakePlaywright, make_settings  # noqa: E402


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def logged_in_page():
    """A page on which the account landmark is rendered."""
    return FakePage(present=['[data-testid="SideNav_AccountSwitcher_Button"]'])


@pytest.fixture
def fake_playwright(logged_in_page):
    return FakePlaywright(page=logged_in_page)
