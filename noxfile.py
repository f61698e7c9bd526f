"""Nox sessions orchestrating merchant auth unit suites."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import nox


PYTHON_VERSIONS = ["3.11"]
PROJECT_ROOT = Path(__file__).parent

nox.options.sessions = [
    "tests_unit_merchant_auth",
    "tests_unit_firestore",
    "tests_unit_app_platform",
    "tests_unit_logging",
]


def _install_test_requirements(session: nox.Session) -> None:
    """Install the project and its testing toolchain inside the session environment."""

    session.install("-e", f"{PROJECT_ROOT}[test]")


def _normalize_pythonpath(existing: str | None) -> str:
    parts = [str(PROJECT_ROOT)]
    if existing:
        parts.append(existing)
    return ":".join(part for part in parts if part)


def _build_env(session: nox.Session, suite: str) -> dict[str, str]:
    env = dict(session.env)
    env["PYTHONPATH"] = _normalize_pythonpath(env.get("PYTHONPATH"))
    env["COVERAGE_FILE"] = str(PROJECT_ROOT / f".coverage.{suite}")
    return env


def _run_suite(session: nox.Session, suite: str, targets: Iterable[str], sources: Iterable[str]) -> None:
    _install_test_requirements(session)

    env = _build_env(session, suite)
    args = [
        "coverage",
        "run",
        f"--source={','.join(sources)}",
        "--context",
        suite,
        "-m",
        "pytest",
        *targets,
        *session.posargs,
    ]

    session.log("Running %s suite: %s", suite, " ".join(targets))
    session.run(*args, env=env)
    session.run("coverage", "report", "--show-missing", env=env)


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_merchant_auth)")
def tests_unit_merchant_auth(session: nox.Session) -> None:
    """Execute merchant auth service, route, and CLI suites."""

    _run_suite(session, "merchant_auth", ["tests/unit/merchant_auth"], ["apps", "scripts"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_firestore)")
def tests_unit_firestore(session: nox.Session) -> None:
    """Execute Firestore repository suites against the in-memory double."""

    _run_suite(session, "firestore", ["tests/unit/firestore"], ["adapters"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_app_platform)")
def tests_unit_app_platform(session: nox.Session) -> None:
    """Execute shared platform suites (config, contracts, errors, schemas)."""

    _run_suite(session, "app_platform", ["tests/unit/app_platform"], ["app_platform"])


@nox.session(python=PYTHON_VERSIONS, reuse_venv=True, name="tests(unit_logging)")
def tests_unit_logging(session: nox.Session) -> None:
    """Execute logging library unit suites."""

    _run_suite(session, "logging", ["tests/unit/logging"], ["logging_lib"])
