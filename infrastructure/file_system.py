"""Local filesystem adapter.

Writes go through a temp file in the target directory followed by
`os.replace`, so readers never observe a half-written markdown file.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import List


class LocalFileSystem:
    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def read_text(self, path: Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text_atomic(self, path: Path, content: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                newline="",
                delete=False,
                dir=str(target.parent),
                prefix=f".{target.name}.",
                suffix=".tmp",
            ) as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_path = Path(tmp.name)
            os.replace(str(tmp_path), str(target))
        finally:
            if tmp_path and tmp_path.exists() and tmp_path != target:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

    def list_dir(self, path: Path) -> List[Path]:
        root = Path(path)
        if not root.is_dir():
            return []
        return sorted(root.iterdir())

    def make_dirs(self, path: Path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def mtime(self, path: Path) -> float:
        return Path(path).stat().st_mtime


LOCAL_FS = LocalFileSystem()

__all__ = ["LocalFileSystem", "LOCAL_FS"]
