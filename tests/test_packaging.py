"""
tests/test_packaging.py -- Every source package is picked up for install.

api/ and core/ are implicit namespace packages (no __init__.py), so the
setuptools discovery in pyproject.toml must run in namespace mode.
"""

from __future__ import annotations

from pathlib import Path

from setuptools import find_namespace_packages

ROOT = Path(__file__).resolve().parent.parent


def test_pyproject_enables_namespace_discovery():
    text = (ROOT / "pyproject.toml").read_text()
    assert "namespaces = true" in text


def test_all_source_packages_discovered():
    found = set(find_namespace_packages(where=str(ROOT), include=["api*", "auth*", "core*"]))
    assert {"api", "api.routes", "api.routes.v1", "auth", "core"} <= found
