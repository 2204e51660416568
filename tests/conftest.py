"""Shared fixtures for the esmforge test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from esmforge.config import Settings
from tests.support import build_settings


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  return build_settings()


@pytest.fixture
def no_sleep():
  return AsyncMock(return_value=None)


@pytest.fixture
def mock_db_session():
  session = AsyncMock()
  result = MagicMock()
  result.scalar_one_or_none.return_value = None
  session.execute.return_value = result
  return session


@pytest.fixture
def session_factory(mock_db_session):
  """An ``async_sessionmaker`` stand-in yielding ``mock_db_session``."""
  context = MagicMock()
  context.__aenter__ = AsyncMock(return_value=mock_db_session)
  context.__aexit__ = AsyncMock(return_value=False)
  return MagicMock(return_value=context)
