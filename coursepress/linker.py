"""Second pass: stitch prev/next navigation across every lesson.

A lesson's neighbours are only known once every lesson in the tree has been
compiled, so this runs after the compile pass and before anything is written.
"""

import logging

from .sections import lesson_paths
from .writer import write_artifact

logger = logging.getLogger(__name__)


def ordered_lessons(state) -> list:
    """Cached lessons grouped by section, both in traversal order."""
    groups = []
    for directory in state.index:
        if directory == state.content_root:
            continue
        group = [
            state.lessons[path]
            for path in lesson_paths(directory, state)
            if path in state.lessons
        ]
        groups.append((directory, group))
    return groups


def _neighbour(entry):
    if entry is None:
        return None
    artifact = entry.artifact
    return {
        "title": artifact["title"],
        "slug": artifact["slug"],
        "url": artifact["url"],
    }


def link_lessons(state) -> list:
    """Fill ``prev``/``next`` of every cached lesson artifact.

    The first lesson of a section points back to the last lesson of the
    closest preceding section that has lessons.  Returns the lessons in
    chain order.
    """
    chain = [entry for _, group in ordered_lessons(state) for entry in group]
    for i, entry in enumerate(chain):
        entry.artifact["prev"] = _neighbour(chain[i - 1] if i > 0 else None)
        if i + 1 < len(chain):
            entry.artifact["next"] = _neighbour(chain[i + 1])
        else:
            entry.artifact["next"] = None
    logger.debug("linked %d lessons", len(chain))
    return chain


def write_lessons(state, chain=None) -> list:
    """Write every linked lesson whose artifact needs it.

    Recomputed lessons are always written, the others only when linking
    changed what is on disk.  Skipping identical bytes keeps a rebuild of an
    unchanged tree from touching any file.
    """
    if chain is None:
        chain = link_lessons(state)
    written = []
    for entry in chain:
        if write_artifact(entry.output, entry.artifact, force=entry.recomputed):
            state.record_write(entry.output)
            written.append(entry.output)
        entry.recomputed = False
    return written
