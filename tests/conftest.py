"""Shared pytest fixtures for chainQL unit and integration tests."""
from __future__ import annotations

import pytest

from chainql import Dialect, Session, SqlConfig
from tests.fixtures.executors import RecordingExecutor


@pytest.fixture()
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture()
def session(executor: RecordingExecutor) -> Session:
    """SQL Server session (the default dialect) over a recording executor."""
    return Session(executor)


@pytest.fixture()
def pg_session(executor: RecordingExecutor) -> Session:
    return Session(executor, SqlConfig(dialect=Dialect.POSTGRES))


@pytest.fixture()
def sqlite_session(executor: RecordingExecutor) -> Session:
    return Session(executor, SqlConfig(dialect=Dialect.SQLITE))


@pytest.fixture()
def mysql_session(executor: RecordingExecutor) -> Session:
    return Session(executor, SqlConfig(dialect=Dialect.MYSQL))
