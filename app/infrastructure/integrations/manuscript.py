"""
Plain-text manuscript renderer.

Lays entries out as a simple text book (interior + cover) and stores both
files under PRINT_ARTIFACT_DIR, published at PRINT_ARTIFACT_BASE_URL. Page
count is estimated from wrapped line count.
"""
import textwrap
from pathlib import Path

from app.domain.errors import RenderFailedError
from app.infrastructure.integrations.base import ArtifactRenderer, RenderedArtifact

LINE_WIDTH = 70
LINES_PER_PAGE = 40
# Perfect binding needs at least 32 pages, in multiples of 2
MIN_PAGES = 32


def _entry_text(entry) -> str:
    return entry.polished_content or entry.content or ""


def estimate_pages(lines: list[str]) -> int:
    pages = max(1, -(-len(lines) // LINES_PER_PAGE))
    pages = max(pages, MIN_PAGES)
    return pages + (pages % 2)


def layout(entries: list, title: str) -> list[str]:
    lines = [title, "=" * min(len(title), LINE_WIDTH), ""]
    for entry in entries:
        lines.append(entry.entry_date.strftime("%A, %B %d, %Y"))
        lines.append("-" * 20)
        for paragraph in _entry_text(entry).splitlines() or [""]:
            lines.extend(textwrap.wrap(paragraph, LINE_WIDTH) or [""])
        lines.append("")
    return lines


class ManuscriptRenderer(ArtifactRenderer):
    def __init__(self, output_dir: str, base_url: str):
        self.output_dir = Path(output_dir)
        self.base_url = base_url.rstrip("/")

    def render(self, entries: list, *, title: str, key: str, color_option: str = "bw") -> RenderedArtifact:
        lines = layout(entries, title)
        interior = "\n".join(lines).encode("utf-8")
        cover = f"{title}\n".encode("utf-8")

        target = self.output_dir / key
        try:
            target.mkdir(parents=True, exist_ok=True)
            (target / "interior.txt").write_bytes(interior)
            (target / "cover.txt").write_bytes(cover)
        except OSError as exc:
            raise RenderFailedError(f"Could not store artifact {key}: {exc}") from exc

        return RenderedArtifact(
            title=title,
            page_count=estimate_pages(lines),
            interior=interior,
            cover=cover,
            interior_url=f"{self.base_url}/{key}/interior.txt",
            cover_url=f"{self.base_url}/{key}/cover.txt",
            filename=f"{key.replace('/', '-')}.txt",
        )
