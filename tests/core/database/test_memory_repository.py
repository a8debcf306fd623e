"""Tests for MemoryRepository."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest
from pydantic import BaseModel

from src.core.database.memory_repository import MemoryRepository
from src.core.utils.exceptions import DuplicateError


class Item(BaseModel):
    id: str
    name: str
    version: int = 1
    created_at: datetime
    updated_at: datetime


@pytest.fixture
def repository(clock):
    return MemoryRepository(Item, clock=clock)


def test_create_stamps_row(repository, clock):
    item = repository.create({"name": "a"})

    assert len(item.id) == 26
    assert item.version == 1
    assert item.created_at == clock.now()


def test_duplicate_id(repository):
    repository.create({"id": "x", "name": "a"})

    with pytest.raises(DuplicateError):
        repository.create({"id": "x", "name": "b"})


def test_update_touches_updated_at(repository, clock):
    item = repository.create({"name": "a"})
    clock.advance(minutes=5)

    updated = repository.update(item.id, {"name": "b"})

    assert updated.updated_at == clock.now()
    assert updated.version == 1


def test_compare_and_swap(repository):
    item = repository.create({"name": "a"})

    first = repository.update(item.id, {"name": "b"}, current_version=1)
    stale = repository.update(item.id, {"name": "c"}, current_version=1)

    assert first.version == 2
    assert stale is None
    assert repository.find_by_id(item.id).name == "b"


def test_concurrent_cas_single_winner(repository):
    item = repository.create({"name": "a"})

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(
            lambda n: repository.update(item.id, {"name": str(n)}, current_version=1),
            range(8),
        ))

    assert sum(r is not None for r in results) == 1


def test_update_missing(repository):
    assert repository.update("nope", {"name": "b"}) is None


def test_find_and_count(repository):
    repository.create({"id": "1", "name": "a"})
    repository.create({"id": "2", "name": "b"})
    repository.create({"id": "3", "name": "a"})

    assert [i.id for i in repository.find_by({"name": "a"})] == ["1", "3"]
    assert [i.id for i in repository.find_where(lambda i: True, order_by="id", descending=True)] == ["3", "2", "1"]
    assert repository.count({"name": "a"}) == 2
    assert repository.find_by_id("b", id_column="name").id == "2"
