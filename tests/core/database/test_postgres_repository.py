"""Tests for PostgresRepository."""

from enum import Enum
from unittest.mock import MagicMock

import pytest
from psycopg2 import errors
from psycopg2.extras import Json
from pydantic import BaseModel

from src.core.database.postgres_repository import PostgresRepository, to_db_value
from src.core.utils.exceptions import DuplicateError


class Color(str, Enum):
    RED = "red"


class MockModel(BaseModel):
    """Test model for repository tests."""

    id: str
    name: str
    version: int = 1


@pytest.fixture
def mock_db():
    return MagicMock()


@pytest.fixture
def cursor(mock_db):
    conn = mock_db.connection.return_value.__enter__.return_value
    return conn.cursor.return_value


@pytest.fixture
def repository(mock_db):
    return PostgresRepository(mock_db, "test_table", MockModel)


class TestToDbValue:
    def test_enum(self):
        assert to_db_value(Color.RED) == "red"

    def test_dict_and_model_become_json(self):
        assert isinstance(to_db_value({"a": 1}), Json)
        assert isinstance(to_db_value(MockModel(id="1", name="x")), Json)

    def test_plain_values_pass_through(self):
        assert to_db_value(5) == 5


class TestCreate:
    def test_assigns_ulid(self, repository, cursor):
        cursor.fetchone.return_value = {"id": "01ARZ3NDEKTSV4RRFFQ69G5FAV", "name": "x"}

        result = repository.create({"name": "x"})

        params = cursor.execute.call_args[0][1]
        assert len(params[0]) == 26
        assert params[1] == "x"
        assert result.name == "x"

    def test_unique_violation(self, repository, cursor, mock_db):
        cursor.execute.side_effect = errors.UniqueViolation("duplicate key")

        with pytest.raises(DuplicateError):
            repository.create({"id": "1", "name": "x"})

        mock_db.connection.return_value.__enter__.return_value.rollback.assert_called_once()
        cursor.close.assert_called_once()


class TestUpdate:
    def test_versioned_update(self, repository, cursor):
        cursor.fetchone.return_value = {"id": "1", "name": "y", "version": 3}

        result = repository.update("1", {"name": "y"}, current_version=2)

        params = cursor.execute.call_args[0][1]
        assert params == ("y", 3, "1", 2)
        assert result.version == 3

    def test_lost_race_returns_none(self, repository, cursor):
        cursor.fetchone.return_value = None

        assert repository.update("1", {"name": "y"}, current_version=2) is None

    def test_empty_update_reads_row(self, repository, cursor):
        cursor.fetchone.return_value = {"id": "1", "name": "x"}

        assert repository.update("1", {}).name == "x"


class TestFind:
    def test_find_by_filters(self, repository, cursor):
        cursor.fetchall.return_value = [{"id": "1", "name": "x"}]

        results = repository.find_by({"name": Color.RED}, limit=5)

        assert cursor.execute.call_args[0][1] == ("red", 5)
        assert results[0].id == "1"

    def test_count(self, repository, cursor):
        cursor.fetchone.return_value = {"count": 4}

        assert repository.count({"name": "x"}) == 4
