"""Slide rendering with Pillow.

Draws a black 1080x1920 frame with the chapter title (bold, gold) at the
top-left of the safe area and the wrapped verse text below it.
"""

from pathlib import Path

from PIL import Image, ImageDraw, ImageFont
from rich.console import Console

from versereel.errors import MediaError
from versereel.video.layout import Measure, Slide, layout_settings, max_text_width, wrap

console = Console()

BACKGROUND_COLOR = "#000000"
TITLE_COLOR = "#FFD700"
TEXT_COLOR = "#FFFFFF"

_REGULAR_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
]
_BOLD_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",
]


def _hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Convert a hex color string like '#FFD700' to an (R, G, B) tuple."""
    hex_color = hex_color.lstrip("#")
    return tuple(int(hex_color[i : i + 2], 16) for i in (0, 2, 4))


def _load_font(size: int, preferred: str | None, candidates: list[str]) -> ImageFont.FreeTypeFont:
    """Load the configured font, then system fallbacks, then Pillow's default."""
    paths = ([preferred] if preferred else []) + candidates
    for font_path in paths:
        if Path(font_path).exists():
            try:
                return ImageFont.truetype(font_path, size)
            except (OSError, IOError):
                continue
    if preferred:
        console.print(f"[yellow]Font not usable: {preferred}, falling back[/yellow]")
    return ImageFont.load_default(size=size)


def get_body_font(settings: dict) -> ImageFont.FreeTypeFont:
    return _load_font(settings["font_size"], settings.get("font_path"), _REGULAR_FONT_CANDIDATES)


def get_title_font(settings: dict) -> ImageFont.FreeTypeFont:
    return _load_font(
        settings["title_font_size"], settings.get("title_font_path"), _BOLD_FONT_CANDIDATES
    )


def make_measure(font: ImageFont.FreeTypeFont) -> Measure:
    """Width of a string in pixels when drawn with ``font``."""
    return font.getlength


class SlideRenderer:
    """Renders slides with fonts loaded once per chapter."""

    def __init__(self, config: dict | None = None):
        self.settings = layout_settings(config)
        self.body_font = get_body_font(self.settings)
        self.title_font = get_title_font(self.settings)
        self.measure = make_measure(self.body_font)

    def render(self, slide: Slide, output_path: Path) -> Path:
        s = self.settings
        width, height = s["width"], s["height"]

        img = Image.new("RGB", (width, height), _hex_to_rgb(s.get("background_color", BACKGROUND_COLOR)))
        draw = ImageDraw.Draw(img)

        draw.text(
            (s["safe_left"], s["safe_top"]),
            slide.title,
            font=self.title_font,
            fill=_hex_to_rgb(s.get("title_color", TITLE_COLOR)),
        )

        lines = wrap(slide.display_text, max_text_width(s), self.measure)
        y = s["safe_top"] + s["title_font_size"] + s["title_spacing"]
        text_fill = _hex_to_rgb(s.get("text_color", TEXT_COLOR))
        for line in lines:
            draw.text((s["safe_left"], y), line, font=self.body_font, fill=text_fill)
            y += s["line_height"]

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            img.save(output_path, "PNG")
        except OSError as e:
            raise MediaError(f"Could not write slide image {output_path}: {e}") from e
        return output_path
