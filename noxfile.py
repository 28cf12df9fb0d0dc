"""Nox sessions for the Vault blobstore provider."""

from __future__ import annotations

import pathlib

import nox

REPO_ROOT = pathlib.Path(__file__).parent

nox.options.sessions = ["tests-3.11", "tests-3.12", "lint"]
nox.options.error_on_missing_interpreters = False


def _install_requirements(session: nox.Session, *extras: str) -> None:
    target = f".[{','.join(extras)}]" if extras else "."
    session.install("-e", target)


@nox.session(name="tests-3.11", python="3.11")
def tests_3_11(session: nox.Session) -> None:
    """Run the unit and property suites under Python 3.11."""

    _install_requirements(session, "test")
    session.run("pytest", "tests/unit/", "tests/property/", *session.posargs)


@nox.session(name="tests-3.12", python="3.12")
def tests_3_12(session: nox.Session) -> None:
    """Run the unit suite under Python 3.12."""

    _install_requirements(session, "test")
    session.run("pytest", "tests/unit/", *session.posargs)


@nox.session
def lint(session: nox.Session) -> None:
    """Run linters via ruff and mypy."""

    _install_requirements(session, "test", "dev")
    session.run("ruff", "check", str(REPO_ROOT))
    session.run("mypy", "vault_blobstore")
