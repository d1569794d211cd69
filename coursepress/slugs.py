"""Slugs and public URLs for sections and lessons.

A lesson's public path is the chain of its ancestor section slugs followed by
its own slug.  Section slugs come from the in-memory index so resolving a
chain never re-reads front matter that is already cached.
"""

import logging
import re
import unicodedata
from pathlib import Path

logger = logging.getLogger(__name__)

_number_prefix = re.compile(r"^\d+\.")
_non_slug = re.compile(r"[^a-z0-9]+")


def slugify(text) -> str:
    text = unicodedata.normalize("NFKD", str(text))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    return _non_slug.sub("-", text).strip("-")


def strip_number_prefix(name: str) -> str:
    return _number_prefix.sub("", name)


def humanize(name: str) -> str:
    """Turn ``"2.getting-started"`` into ``"getting started"``."""
    return strip_number_prefix(name).replace("-", " ").replace("_", " ")


def unique_slug(candidate: str, taken) -> str:
    if candidate not in taken:
        return candidate
    n = 2
    while f"{candidate}-{n}" in taken:
        n += 1
    return f"{candidate}-{n}"


def slug_chain(path: Path, state) -> list:
    """Return the section slugs from the course root down to ``path``.

    ``path`` may be a directory or a document.  The course root contributes
    no segment.  Ancestors that are not indexed yet are indexed on demand.
    """
    from .sections import index_section

    path = Path(path)
    root = state.content_root
    if (
        path == root
        or path in state.index
        or not state.settings.is_document(path)
    ):
        directory = path
    else:
        directory = path.parent
    try:
        relative = directory.relative_to(root)
    except ValueError:
        raise ValueError(f"{path} is not inside the content root {root}")
    chain = []
    current = root
    for part in relative.parts:
        current = current / part
        if current not in state.index:
            index_section(current, state)
        chain.append(state.index[current].slug)
    return chain


def base_lesson_slug(path: Path, front_matter) -> str:
    """Slug a lesson asks for, before sibling collisions are resolved."""
    if front_matter.get("slug"):
        return slugify(front_matter["slug"])
    if front_matter.get("title"):
        return slugify(front_matter["title"])
    return slugify(strip_number_prefix(path.stem))


def lesson_slug(path: Path, front_matter, state) -> str:
    """Resolve the slug of the lesson at ``path``.

    Siblings earlier in traversal order keep their slugs; a colliding lesson
    gets a numeric suffix.
    """
    from .sections import lesson_paths

    candidate = base_lesson_slug(path, front_matter)
    taken = set()
    for sibling in lesson_paths(path.parent, state):
        if sibling == path:
            break
        if sibling in state.lessons:
            taken.add(state.lessons[sibling].artifact["slug"])
    slug = unique_slug(candidate, taken)
    if slug != candidate:
        logger.warning(
            "%s: slug %r already used by a sibling, using %r",
            path,
            candidate,
            slug,
        )
    return slug


def course_slug(state) -> str:
    if state.content_root not in state.index:
        from .sections import index_section

        index_section(state.content_root, state)
    return state.index[state.content_root].slug


def course_url(state) -> str:
    return f"{state.settings.lesson_url_root}/{course_slug(state)}"


def asset_url_root(state) -> str:
    return f"{state.settings.asset_url_root}/{course_slug(state)}"


def section_url(directory: Path, state) -> str:
    return "/".join([course_url(state)] + slug_chain(directory, state))


def document_url(path: Path, state, front_matter=None) -> str:
    """Return the public URL of the document at ``path``.

    Index documents map to their section's URL.  For lessons already in the
    cache the cached slug wins, otherwise the slug is derived from
    ``front_matter`` (read from disk when not given).
    """
    path = Path(path)
    if path.name == state.settings.index_name:
        return section_url(path.parent, state)
    if path in state.lessons:
        slug = state.lessons[path].artifact["slug"]
    else:
        if front_matter is None:
            from .front_matter import read_document

            front_matter = read_document(path)[0]
        slug = base_lesson_slug(path, front_matter)
    return "/".join([section_url(path.parent, state), slug])


def asset_url(target: Path, state) -> str:
    """Map a file inside the content tree to its absolute asset URL.

    Section directories are replaced by their slugs, other directory names
    are kept as they are.
    """
    relative = Path(target).relative_to(state.content_root)
    parts = []
    current = state.content_root
    for part in relative.parts[:-1]:
        current = current / part
        if current in state.index:
            parts.append(state.index[current].slug)
        else:
            parts.append(part)
    parts.append(relative.parts[-1])
    return "/".join([asset_url_root(state)] + parts)
