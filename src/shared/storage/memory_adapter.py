"""In-memory storage for tests and throwaway sessions."""

from shared.storage.port import LocalStorage


class MemoryStorage(LocalStorage):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes: list[str] = []

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value
        self.writes.append(key)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
