from __future__ import annotations

import random

import pytest

from backdrop.domain.models import ImageCriteria
from backdrop.storage.kv import StorageError

FALLBACK = [
    "https://example.com/fallback-1.jpg",
    "https://example.com/fallback-2.jpg",
    "https://example.com/fallback-3.jpg",
]


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data = dict(initial or {})
        self.writes = 0

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.writes += 1
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class BrokenStore(MemoryStore):
    def __init__(self, *, fail_read: bool = False, fail_write: bool = False, fail_delete: bool = False) -> None:
        super().__init__()
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.fail_delete = fail_delete

    def read(self, key: str) -> str | None:
        if self.fail_read:
            raise StorageError("read failed")
        return super().read(key)

    def write(self, key: str, value: str) -> None:
        if self.fail_write:
            raise StorageError("write failed")
        super().write(key, value)

    def delete(self, key: str) -> None:
        if self.fail_delete:
            raise StorageError("delete failed")
        super().delete(key)


class FakeAdapter:
    def __init__(
        self,
        *,
        one: list[str | None] | None = None,
        many: list[list[str]] | None = None,
        configured: bool = True,
    ) -> None:
        self._one = list(one or [])
        self._many = list(many or [])
        self._configured = configured
        self.one_calls: list[ImageCriteria] = []
        self.many_calls: list[tuple[ImageCriteria, int]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def fetch_one(self, criteria: ImageCriteria) -> str | None:
        self.one_calls.append(criteria)
        if not self._one:
            return None
        return self._one.pop(0)

    def fetch_many(self, criteria: ImageCriteria, count: int) -> list[str]:
        self.many_calls.append((criteria, count))
        if not self._many:
            return []
        return self._many.pop(0)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
