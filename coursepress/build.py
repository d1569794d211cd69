"""Full course builds: compile every lesson, link them all, write them all."""

import logging
import os
from pathlib import Path

from .command_registry import register_command
from .compiler import plain_text
from .config import Settings
from .front_matter import read_document
from .linker import link_lessons, ordered_lessons, write_lessons
from .sections import index_sections, lesson_paths
from .slugs import base_lesson_slug, course_url, section_url, unique_slug
from .state import BuildState, LessonEntry
from .transform import transform_index, transform_lesson
from .writer import copy_asset, is_stale, read_artifact, write_artifact

logger = logging.getLogger(__name__)


def make_state(source, destination, projects=None, strict=False):
    settings = Settings.from_env(strict=strict)
    return BuildState(source, destination, projects, settings)


def index_inputs(directory: Path, state) -> list:
    """Source files an index artifact is compiled from."""
    inputs = []
    entry = state.index[directory]
    if entry.source is not None:
        inputs.append(entry.source)
    root = state.index[state.content_root]
    if directory != state.content_root and root.source is not None:
        inputs.append(root.source)
    return inputs


def lesson_inputs(source: Path, state, previous=None) -> list:
    """Source files a lesson artifact depends on.

    Besides the lesson itself these are the index documents that give its
    URL and everything its previous compilation recorded as a dependency:
    included code, referenced images and documents, and linked lessons.
    """
    inputs = [source] + index_inputs(source.parent, state)
    if previous:
        for dependency in previous.get("dependencies", []):
            inputs.append(state.project_root / dependency)
    return inputs


def process_index(directory: Path, state, force=False) -> bool:
    """Compile and write the ``_index.json`` of a section or the course."""
    output = state.index_output(directory)
    if not force and not is_stale(output, index_inputs(directory, state)):
        return False
    artifact = transform_index(directory, state)
    write_artifact(output, artifact, force=True)
    state.record_write(output)
    return True


def process_lesson(source: Path, state, force=False) -> LessonEntry:
    """Put an up-to-date entry for ``source`` into the lesson cache.

    A fresh artifact on disk is loaded as is; a stale or missing one is
    recompiled in memory.  Nothing is written here.
    """
    source = Path(source)
    output = state.output_path(source)
    previous = None
    if not force and output.exists():
        try:
            previous = read_artifact(output)
        except ValueError:
            logger.warning("unreadable artifact %s, recompiling", output)
    if previous is not None and not is_stale(
        output, lesson_inputs(source, state, previous)
    ):
        raw_body = read_document(source)[1]
        entry = LessonEntry(source, output, raw_body, previous)
    else:
        entry = transform_lesson(source, state)
    state.lessons[source] = entry
    return entry


def _hidden(name):
    return name.startswith(".")


def copy_assets(state) -> list:
    """Mirror every non-document file of the content tree."""
    copied = []
    for dirpath, dirnames, filenames in os.walk(state.content_root):
        dirnames[:] = sorted(d for d in dirnames if not _hidden(d))
        for name in sorted(filenames):
            source = Path(dirpath) / name
            if _hidden(name) or state.settings.is_document(source):
                continue
            destination = state.output_path(source)
            if copy_asset(source, destination):
                state.record_write(destination)
                copied.append(destination)
    return copied


def course_index(state, chain) -> dict:
    """Table of contents and flattened search index of the whole course."""
    root = state.index[state.content_root]
    sections = []
    for directory, group in ordered_lessons(state):
        entry = state.index[directory]
        sections.append(
            {
                "title": entry.title,
                "slug": entry.slug,
                "url": section_url(directory, state),
                "lessons": [
                    {
                        key: lesson.artifact[key]
                        for key in ("title", "slug", "url", "free", "draft")
                    }
                    for lesson in group
                ],
            }
        )
    search = [
        {
            "section": lesson.artifact["section"],
            "slug": lesson.artifact["slug"],
            "url": lesson.artifact["url"],
            "title": lesson.artifact["title"],
            "text": plain_text(lesson.artifact["html"]),
        }
        for lesson in chain
    ]
    return {
        "title": root.title,
        "slug": root.slug,
        "url": course_url(state),
        "sections": sections,
        "search": search,
    }


def write_course_index(state, chain) -> bool:
    output = state.output_root / state.settings.aggregate_name
    if write_artifact(output, course_index(state, chain)):
        state.record_write(output)
        return True
    return False


def compile_lessons(state, force=False):
    """Compile pass over every lesson of every indexed section."""
    seen = set()
    for directory in list(state.index):
        if directory == state.content_root:
            continue
        for source in lesson_paths(directory, state):
            process_lesson(source, state, force)
            seen.add(source)
    for source in list(state.lessons):
        if source not in seen:
            del state.lessons[source]


def settle_slugs(state) -> list:
    """Recompile lessons whose slug collides with an earlier sibling.

    Lessons loaded from fresh artifacts keep the slug they were compiled
    with, so an edit to an earlier sibling can leave two lessons with one
    slug, or a suffixed slug that is no longer needed.  Returns the sources
    whose slug changed.
    """
    changed = []
    for _, group in ordered_lessons(state):
        taken = set()
        for entry in group:
            artifact = entry.artifact
            wanted = unique_slug(
                base_lesson_slug(entry.source, artifact["front_matter"]), taken
            )
            if artifact["slug"] != wanted:
                entry = process_lesson(entry.source, state, force=True)
                changed.append(entry.source)
            taken.add(entry.artifact["slug"])
    return changed


def recompile_dependents(state, sources) -> list:
    """Recompile every cached lesson that depends on one of ``sources``."""
    targets = {state.relative(source) for source in sources}
    recompiled = []
    if not targets:
        return recompiled
    for source, entry in list(state.lessons.items()):
        if source in sources:
            continue
        if targets.intersection(entry.artifact.get("dependencies", [])):
            process_lesson(source, state, force=True)
            recompiled.append(source)
    return recompiled


def relink(state):
    """Link-all then write-all, plus the aggregate course index."""
    chain = link_lessons(state)
    write_lessons(state, chain)
    write_course_index(state, chain)
    return chain


def build_course(state, force=False) -> list:
    """Run a full build and return the paths written.

    Both indexers finish first, then every lesson is compiled, then the
    whole sequence is linked, then artifacts are written.  A second run over
    an unchanged tree writes nothing.
    """
    state.written = []
    index_sections(state)
    state.catalog.ensure_scanned()
    for directory in list(state.index):
        process_index(directory, state, force)
    compile_lessons(state, force)
    recompile_dependents(state, settle_slugs(state))
    copy_assets(state)
    chain = relink(state)
    logger.info(
        "built %d lessons in %d sections, %d files written",
        len(chain),
        len(state.index) - 1,
        len(state.written),
    )
    return state.written


@register_command(
    "Compile the course content once",
    help={
        "source": "Content directory (holds the course _index.md)",
        "destination": "Directory that receives the compiled artifacts",
        "projects": (
            "Directory scanned for Godot projects (defaults to the parent of"
            " the content directory)"
        ),
        "strict": "Fail on every missing reference (production mode)",
    },
)
def build(source, destination, projects=None, strict=False):
    state = make_state(source, destination, projects, strict)
    build_course(state)
    return state
