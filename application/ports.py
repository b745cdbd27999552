from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Set

from core import DigestItem


class FileSystem(Protocol):
    def exists(self, path: Path) -> bool:
        ...

    def read_text(self, path: Path) -> str:
        ...

    def write_text_atomic(self, path: Path, content: str) -> None:
        ...

    def list_dir(self, path: Path) -> List[Path]:
        ...

    def make_dirs(self, path: Path) -> None:
        ...

    def mtime(self, path: Path) -> float:
        ...


class SecretStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, secret: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class DigestWriter(Protocol):
    def digest_file_path(self, source: str) -> Path:
        ...

    def existing_source_ids(self, path: Path, source: str) -> Set[str]:
        ...

    def write_digest(self, source: str, items: Sequence[DigestItem]) -> None:
        ...

    def write_notifications(self, items: Sequence[DigestItem]) -> None:
        ...


class SeenIdStore(Protocol):
    def load(self, key: str) -> List[str]:
        ...

    def save(self, key: str, ids: Iterable[str]) -> None:
        ...

    def clear(self) -> None:
        ...


class NotificationSink(Protocol):
    def deliver(self, title: str, body: str, item_id: str) -> None:
        ...
