"""Text layout for chapter slides: greedy word-wrap and verse pagination.

Both functions take a ``measure(text) -> width`` callable instead of a font
so they can run without Pillow. In production the callable is
``font.getlength``, built by ``versereel.video.render.make_measure``.
"""

from dataclasses import dataclass
from typing import Callable

from versereel.source import ChapterUnit

Measure = Callable[[str], float]

# Vertical 9:16 frame with social-app safe zones (scaled from 850x1512).
DEFAULT_LAYOUT = {
    "width": 1080,
    "height": 1920,
    "safe_top": 137,
    "safe_left": 76,
    "safe_right": 152,
    "safe_bottom": 406,
    "font_size": 52,
    "line_height": 72,
    "title_font_size": 64,
    "title_spacing": 80,
}


@dataclass(frozen=True)
class Slide:
    """One screen of a chapter video."""
    title: str
    display_text: str   # "(1) In the beginning... (2) And the earth..."
    read_text: str      # same verses without numbering, for narration


def layout_settings(config: dict | None = None) -> dict:
    """Merge the ``layout`` config section over the defaults."""
    settings = dict(DEFAULT_LAYOUT)
    if config:
        settings.update(config)
    return settings


def max_text_width(settings: dict) -> int:
    return settings["width"] - settings["safe_left"] - settings["safe_right"]


def content_height(settings: dict) -> int:
    """Vertical space left for verse lines once margins and the title are placed."""
    return (
        settings["height"]
        - settings["safe_top"]
        - settings["safe_bottom"]
        - settings["title_font_size"]
        - settings["title_spacing"]
    )


def wrap(text: str, max_width: float, measure: Measure) -> list[str]:
    """Greedy word-wrap.

    Words are added to the current line while the measured width stays within
    ``max_width``. A word that does not fit starts a new line; a single word
    wider than ``max_width`` gets a line of its own. Previous lines are never
    re-balanced.
    """
    lines: list[str] = []
    current = ""

    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if current and measure(candidate) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate

    if current:
        lines.append(current)
    return lines


def paginate(
    chapter: ChapterUnit,
    max_width: float,
    max_content_height: float,
    line_height: float,
    measure: Measure,
) -> list[Slide]:
    """Split a chapter's verses into slides that fit the content area.

    Verses are never split. A verse too tall for an empty slide is still
    placed alone on its own slide so pagination always makes progress.
    """
    title = chapter.title
    slides: list[Slide] = []
    display_tokens: list[str] = []
    read_tokens: list[str] = []

    for number, verse in enumerate(chapter.verses, start=1):
        display_verse = f"({number}) {verse}"
        lines = wrap(" ".join(display_tokens + [display_verse]), max_width, measure)

        if len(lines) * line_height > max_content_height and display_tokens:
            slides.append(Slide(title, " ".join(display_tokens), " ".join(read_tokens)))
            display_tokens = [display_verse]
            read_tokens = [verse]
        else:
            display_tokens.append(display_verse)
            read_tokens.append(verse)

    if display_tokens:
        slides.append(Slide(title, " ".join(display_tokens), " ".join(read_tokens)))

    return slides


def paginate_chapter(chapter: ChapterUnit, settings: dict, measure: Measure) -> list[Slide]:
    """Paginate using the frame geometry in ``settings``."""
    return paginate(
        chapter,
        max_width=max_text_width(settings),
        max_content_height=content_height(settings),
        line_height=settings["line_height"],
        measure=measure,
    )
