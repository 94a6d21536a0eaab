"""
Pytest configuration.

This file adds the project root to the Python path so that tests can import
from the domain, repositories, services, and api packages.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from services import settings as settings_module  # noqa: E402


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch):
    """Run every test with default settings, independent of the local .env."""

    defaults = settings_module.AppSettings()
    monkeypatch.setattr(settings_module, "get_settings", lambda: defaults)
    for module_name in ("services.pricing_service", "services.assignment_service", "services.quotation_service"):
        module = sys.modules.get(module_name)
        if module is not None:
            monkeypatch.setattr(module, "get_settings", lambda: defaults)
    return defaults
