"""Shared test fixtures for dockerize."""

from __future__ import annotations

import os

import pytest

from dockerize.host import EXCLUDED_ENV, HostKind, HostProfile

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures: importable by test files)
# ---------------------------------------------------------------------------


def make_settings(**overrides):
    """Create a Settings object with sensible defaults for testing.

    Usage::

        s = make_settings(runtime=RuntimeConfig(cli="podman", tty=False))
        s = make_settings(config_filename="other.json")
    """
    from dockerize.config import RuntimeConfig, Settings, TrampolineConfig

    defaults = {
        "config_filename": "dockerize.json",
        "runtime": RuntimeConfig(),
        "trampoline": TrampolineConfig(host_path="/opt/dockerize/execwdve"),
    }
    defaults.update(overrides)
    return Settings.model_construct(**defaults)


def make_profile(
    kind: HostKind = HostKind.NATIVE_LINUX,
    home_dir: str = "/home/dev",
) -> HostProfile:
    return HostProfile(kind=kind, home_dir=home_dir, excluded_env=EXCLUDED_ENV[kind])


def write_config(directory, text: str, name: str = "dockerize.json"):
    path = directory / name
    path.write_text(text)
    return path


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Start every test from pure defaults: no DOCKERIZE_* env leakage."""
    for var in [v for v in os.environ if v.startswith("DOCKERIZE_")]:
        monkeypatch.delenv(var)
    monkeypatch.setattr("dockerize.config._settings", make_settings())


@pytest.fixture(autouse=True)
def reset_caches():
    """Clear process-wide singletons between tests."""
    from dockerize.host import reset_host_profile
    from dockerize.runtime import reset_runtime

    reset_host_profile()
    reset_runtime()
    yield
    reset_host_profile()
    reset_runtime()


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project(tmp_path):
    """A home directory with a nested project below it.

    Returns (home, project_dir). Lookups are given ``home`` explicitly so the
    real home directory never leaks into results.
    """
    home = tmp_path / "home"
    project_dir = home / "src" / "app"
    project_dir.mkdir(parents=True)
    return home, project_dir
