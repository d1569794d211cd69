import logging
import re
from pathlib import Path

from .errors import MissingIndexDocument, raise_or_warn
from .front_matter import read_document
from .slugs import humanize, slugify, strip_number_prefix, unique_slug
from .state import SectionEntry

logger = logging.getLogger(__name__)

SECTION_PATTERN = re.compile(r"^(\d+)\.(.+)$")
PLACEHOLDER_TITLE = "PLACEHOLDER TITLE"


def natural_key(name: str):
    """Sort key that orders ``"10.x"`` after ``"2.x"``."""
    return [
        (0, int(piece), "") if piece.isdigit() else (1, 0, piece.lower())
        for piece in re.split(r"(\d+)", name)
        if piece
    ]


def is_section_dir(path: Path) -> bool:
    return path.is_dir() and SECTION_PATTERN.match(path.name) is not None


def section_directories(state) -> list:
    """Immediate children of the content root that are sections."""
    root = state.content_root
    return sorted(
        (child for child in root.iterdir() if is_section_dir(child)),
        key=lambda p: natural_key(p.name),
    )


def lesson_paths(directory: Path, state) -> list:
    """Lesson documents directly inside ``directory`` in traversal order."""
    settings = state.settings
    if not directory.is_dir():
        return []
    return sorted(
        (
            child
            for child in directory.iterdir()
            if child.is_file()
            and settings.is_document(child)
            and child.name != settings.index_name
            and not child.name.startswith(".")
        ),
        key=lambda p: natural_key(p.name),
    )


def _placeholder(directory: Path):
    name = strip_number_prefix(directory.name)
    return {
        "title": f"{PLACEHOLDER_TITLE} (missing _index.md): {humanize(name)}",
        "slug": slugify(name),
    }


def _sort_index(state):
    root = state.content_root
    sections = sorted(
        (path for path in state.index if path != root),
        key=lambda p: natural_key(p.name),
    )
    for path in ([root] if root in state.index else []) + sections:
        state.index.move_to_end(path)


def index_section(directory: Path, state) -> SectionEntry:
    """Load ``directory``'s index document into ``state.index``.

    A missing or empty index document goes through the failure policy; in
    development mode a placeholder entry is stored instead.  Re-indexing
    overwrites the previous entry and does not touch the lessons below it.
    """
    directory = Path(directory)
    settings = state.settings
    source = directory / settings.index_name
    front_matter, body, placeholder = None, "", False
    if source.is_file():
        front_matter, body, text = read_document(source)
        if not text.strip():
            front_matter = None
    if front_matter is None:
        raise_or_warn(
            MissingIndexDocument(
                f"could not find {settings.index_name} in {directory}",
                path=directory,
            ),
            settings,
        )
        front_matter = _placeholder(directory)
        placeholder = True
        source = None
    front_matter = dict(front_matter)
    if not front_matter.get("title"):
        front_matter["title"] = humanize(directory.name)
    if front_matter.get("slug"):
        slug = slugify(front_matter["slug"])
    else:
        slug = slugify(front_matter["title"])
    if directory != state.content_root:
        taken = {
            entry.slug
            for path, entry in state.index.items()
            if path != directory
            and path != state.content_root
            and path.parent == directory.parent
            and natural_key(path.name) < natural_key(directory.name)
        }
        resolved = unique_slug(slug, taken)
        if resolved != slug:
            logger.warning(
                "%s: slug %r already used by a sibling section, using %r",
                directory,
                slug,
                resolved,
            )
            slug = resolved
    front_matter["slug"] = slug
    is_new = directory not in state.index
    entry = SectionEntry(directory, front_matter, body, source, placeholder)
    state.index[directory] = entry
    if is_new:
        _sort_index(state)
    logger.debug("indexed section %s as %r", directory.name, slug)
    return entry


def index_sections(state):
    """Index the course root and every section directory below it."""
    index_section(state.content_root, state)
    for directory in section_directories(state):
        index_section(directory, state)
    return state.index


def remove_section(directory: Path, state):
    state.index.pop(Path(directory), None)
