"""
Source text loader.

The source is a JSON list of books, each shaped like:

    {"name": "Gênesis", "abbrev": "gn", "chapters": [["verse 1", "verse 2"], ...]}

Only ``name`` and ``chapters`` are used. The file is loaded once per run
and never written.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from versereel.errors import SourceLoadFailure

console = Console()


@dataclass(frozen=True)
class Book:
    name: str
    chapters: tuple[tuple[str, ...], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ChapterUnit:
    """One chapter: the indivisible unit of work for a run."""
    book_index: int
    chapter_index: int          # 0-based
    book_name: str
    chapter_number: int         # 1-based, for display and narration
    verses: tuple[str, ...]
    book_chapter_count: int     # chapters in the owning book

    @property
    def title(self) -> str:
        return f"{self.book_name} {self.chapter_number}"


@dataclass
class Source:
    """The full, read-only book collection."""
    books: list[Book] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.books)

    def __getitem__(self, index: int) -> Book:
        return self.books[index]

    @property
    def total_chapters(self) -> int:
        return sum(len(b.chapters) for b in self.books)

    @classmethod
    def from_list(cls, data: list) -> "Source":
        if not isinstance(data, list):
            raise SourceLoadFailure("Source must be a JSON list of books")
        books = []
        for i, entry in enumerate(data):
            try:
                name = str(entry["name"])
                chapters = tuple(tuple(str(v) for v in ch) for ch in entry["chapters"])
            except (KeyError, TypeError) as e:
                raise SourceLoadFailure(f"Malformed book at index {i}: {e}") from e
            books.append(Book(name=name, chapters=chapters))
        return cls(books=books)

    @classmethod
    def load(cls, path: Path) -> "Source":
        """Read the book JSON, tolerating a UTF-8 byte order mark."""
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8").lstrip("\ufeff")
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            raise SourceLoadFailure(f"Could not load source text {path}: {e}") from e

        source = cls.from_list(data)
        console.print(
            f"[dim]Loaded {len(source)} books "
            f"({source.total_chapters} chapters) from {path}[/dim]"
        )
        return source
