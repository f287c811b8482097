"""
Progress cursor for chapter-by-chapter processing.

The cursor is a forward-only pointer (book, chapter) plus the index of the
narration credential that last worked. It is read once at the start of a run
and written once at the end, after the finished video has been uploaded.
Credential rotations also write it mid-run so the next run skips keys that
are already spent.

A crash anywhere before ``advance`` leaves the stored cursor untouched and
the same chapter is redone from scratch on the next run.
"""

import json
from dataclasses import dataclass, replace
from pathlib import Path

from rich.console import Console

from versereel.errors import EndOfSource, StorageError, StorePersistFailure
from versereel.source import ChapterUnit, Source

console = Console()


def _non_negative_int(value) -> int:
    try:
        value = int(value)
    except (TypeError, ValueError):
        return 0
    return max(value, 0)


@dataclass(frozen=True)
class ProgressState:
    book: int = 0
    chapter: int = 0
    credential_index: int = 0

    def to_dict(self) -> dict:
        return {
            "book": self.book,
            "chapter": self.chapter,
            "credentialIndex": self.credential_index,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "ProgressState":
        data = data or {}
        credential = data.get("credentialIndex", data.get("apiKeyIndex", 0))
        return cls(
            book=_non_negative_int(data.get("book", 0)),
            chapter=_non_negative_int(data.get("chapter", 0)),
            credential_index=_non_negative_int(credential),
        )

    def with_credential(self, index: int) -> "ProgressState":
        return replace(self, credential_index=index)


def next_chapter(state: ProgressState, source: Source) -> ChapterUnit:
    """Resolve the cursor to the chapter that should be processed next.

    A chapter index past the end of its book means "book complete" and rolls
    over to the first chapter of the following book. Raises EndOfSource once
    the cursor is beyond the last book.
    """
    book_index, chapter_index = state.book, state.chapter

    while book_index < len(source) and chapter_index >= len(source[book_index].chapters):
        book_index += 1
        chapter_index = 0

    if book_index >= len(source):
        raise EndOfSource(f"All {len(source)} books processed")

    book = source[book_index]
    return ChapterUnit(
        book_index=book_index,
        chapter_index=chapter_index,
        book_name=book.name,
        chapter_number=chapter_index + 1,
        verses=book.chapters[chapter_index],
        book_chapter_count=len(book.chapters),
    )


def advance(unit: ChapterUnit, credential_index: int) -> ProgressState:
    """Cursor for the chapter after ``unit``. Call only after the unit fully succeeded."""
    book, chapter = unit.book_index, unit.chapter_index + 1
    if chapter >= unit.book_chapter_count:
        book, chapter = book + 1, 0
    return ProgressState(book=book, chapter=chapter, credential_index=credential_index)


class ProgressStore:
    """Remote-first persistence for ProgressState with a local cache file.

    ``store`` is any object with ``get_json(key)`` and ``put_json(key, data)``;
    ``get_json`` returns None when the key does not exist.
    """

    def __init__(self, store, key: str, local_path: Path):
        self.store = store
        self.key = key
        self.local_path = Path(local_path)

    def load(self) -> ProgressState:
        try:
            data = self.store.get_json(self.key)
        except StorageError as e:
            console.print(f"[red]Could not load state from store:[/red] {e}")
            return self._load_local()

        if data is None:
            console.print(f"[dim]{self.key} not found in store, starting from the beginning.[/dim]")
            return ProgressState()
        return ProgressState.from_dict(data)

    def _load_local(self) -> ProgressState:
        if not self.local_path.exists():
            return ProgressState()
        try:
            data = json.loads(self.local_path.read_text())
        except (OSError, ValueError) as e:
            console.print(f"[yellow]Local state {self.local_path} unreadable ({e}), starting fresh.[/yellow]")
            return ProgressState()
        console.print(f"[yellow]Using local state copy {self.local_path}[/yellow]")
        return ProgressState.from_dict(data)

    def save(self, state: ProgressState, strict: bool = False) -> bool:
        """Write the local copy, then the remote one.

        Returns False when the remote write failed. Failed writes are logged
        and the run continues, unless ``strict`` is set and the remote write
        failed, in which case StorePersistFailure is raised.
        """
        try:
            self.local_path.parent.mkdir(parents=True, exist_ok=True)
            self.local_path.write_text(json.dumps(state.to_dict(), indent=2))
        except OSError as e:
            console.print(f"[yellow]Could not write local state {self.local_path}:[/yellow] {e}")

        try:
            self.store.put_json(self.key, state.to_dict())
        except StorageError as e:
            if strict:
                raise StorePersistFailure(f"State saved locally only: {e}") from e
            console.print(f"[red]Could not save state to store (local copy kept):[/red] {e}")
            return False
        return True


def completed_chapters(state: ProgressState, source: Source) -> int:
    """Number of chapters before the cursor."""
    if state.book >= len(source):
        return source.total_chapters
    before = sum(len(b.chapters) for b in source.books[:state.book])
    return before + min(state.chapter, len(source[state.book].chapters))
