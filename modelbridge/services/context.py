# Ambient file context = the files a user pinned for the session, handed to every generate call

from __future__ import annotations

import math
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from modelbridge.core.errors import ValidationError
from modelbridge.schemas.content import FileContext


class ContextProvider(Protocol):
    def get_context(self) -> List[FileContext]:
        ...


class ContextStore:
    def __init__(
        self,
        *,
        base_dir: Union[str, Path, None] = None,
        max_file_size: int = 1024 * 1024,
        chars_per_token: int = 4,
    ) -> None:
        """
        self._files: Holds the pinned snapshots in insertion order.
        Maps path (str) -> FileContext
        Snapshots are immutable; re-adding a path replaces its snapshot.
        """
        self._files: Dict[str, FileContext] = {}
        self._base_dir = Path(base_dir) if base_dir else Path.cwd()
        self._max_file_size = max(1, max_file_size)
        self._chars_per_token = max(1, chars_per_token)

    def add(self, ctx: FileContext) -> None:
        self._files[ctx.path] = ctx

    def add_file(self, path: Union[str, Path]) -> List[FileContext]:
        """Snapshot one file, or every file matching a glob, relative to base_dir.

        Files that are too large or binary are rejected for a single path and
        silently skipped when they only matched a glob.
        """
        pattern = str(path)
        if any(ch in pattern for ch in "*?["):
            added: List[FileContext] = []
            for match in sorted(self._base_dir.glob(pattern)):
                if not match.is_file():
                    continue
                try:
                    added.append(self._snapshot(match))
                except ValidationError:
                    continue
            for ctx in added:
                self.add(ctx)
            return added
        p = Path(path)
        ctx = self._snapshot(p if p.is_absolute() else self._base_dir / p)
        self.add(ctx)
        return [ctx]

    def _snapshot(self, path: Path) -> FileContext:
        if not path.is_file():
            raise ValidationError(f"File not found: {path}", "filePath")
        stat = path.stat()
        if stat.st_size > self._max_file_size:
            raise ValidationError(
                f"File too large: {path} ({stat.st_size} bytes, max: {self._max_file_size} bytes)",
                "fileSize",
            )
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(f"File appears to be binary: {path}", "fileType", cause=e) from e
        if "\0" in content:
            raise ValidationError(f"File appears to be binary: {path}", "fileType")
        return FileContext(
            path=str(path),
            content=content,
            last_modified=datetime.fromtimestamp(stat.st_mtime),
            size=stat.st_size,
        )

    def remove(self, path: str) -> bool:
        return self._files.pop(path, None) is not None

    def clear(self) -> None:
        self._files.clear()

    # callers get a copy; mutating it does not touch the store
    def get_context(self) -> List[FileContext]:
        return list(self._files.values())

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) / self._chars_per_token) if text else 0

    def total_estimated_tokens(self) -> int:
        return sum(self.estimate_tokens(f.content) for f in self._files.values())

    def check_token_limit(self, limit: int, *, safety_margin: float = 0.1) -> Optional[str]:
        # warn past 80% of the limit, fail past the limit minus the safety margin
        total = self.total_estimated_tokens()
        percentage = round(total / limit * 100) if limit > 0 else 100
        if total > limit * (1 - safety_margin):
            return f"Context exceeds token limit: {total}/{limit} tokens ({percentage}%)"
        if percentage > 80:
            return f"Context approaching token limit: {total}/{limit} tokens ({percentage}%)"
        return None

    def __len__(self) -> int:
        return len(self._files)
