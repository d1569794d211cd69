"""Incremental rebuilds while the content tree is being edited.

Watchdog calls ``ContentEventHandler`` on its own thread; the handler only
classifies the event and queues it.  The main thread drains the queue through
``WatchController.process_pending`` so the index and lesson cache always have
a single writer.
"""

import logging
import queue
import threading
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import (
    build_course,
    make_state,
    process_index,
    process_lesson,
    recompile_dependents,
    relink,
    settle_slugs,
)
from .command_registry import register_command
from .errors import BuildError
from .sections import SECTION_PATTERN, index_section, lesson_paths
from .writer import copy_asset, remove_output

logger = logging.getLogger(__name__)

INDEX = "index"
LESSON = "lesson"
REMOVED = "removed"
ASSET = "asset"


def _is_section(directory: Path, state) -> bool:
    return (
        directory.parent == state.content_root
        and SECTION_PATTERN.match(directory.name) is not None
    )


def classify(event_type, path, state):
    """Return the category of a file event, or None to ignore it."""
    path = Path(path)
    root = state.content_root
    output = state.output_root
    if path == output or output in path.parents:
        return None
    if root not in path.parents:
        return None
    if any(part.startswith(".") for part in path.relative_to(root).parts):
        return None
    if event_type == "deleted":
        return REMOVED
    if path.is_dir():
        return None
    settings = state.settings
    if path.name == settings.index_name:
        if path.parent == root or _is_section(path.parent, state):
            return INDEX
        return None
    if settings.is_document(path):
        if _is_section(path.parent, state):
            return LESSON
        return None
    return ASSET


class WatchController:
    """Apply queued file events to a ``BuildState``, one at a time."""

    def __init__(self, state):
        self.state = state
        self.queue = queue.Queue()
        self._pending = set()
        self._lock = threading.Lock()
        self.handlers = {
            INDEX: self.on_index_changed,
            LESSON: self.on_lesson_changed,
            REMOVED: self.on_removed,
            ASSET: self.on_asset_changed,
        }

    def submit(self, event_type, path) -> bool:
        """Queue an event unless it is ignored or already pending."""
        path = Path(path).resolve()
        kind = classify(event_type, path, self.state)
        if kind is None:
            return False
        with self._lock:
            if (kind, path) in self._pending:
                return False
            self._pending.add((kind, path))
        self.queue.put((kind, path))
        return True

    def handle(self, kind, path):
        self.state.written = []
        try:
            self.handlers[kind](path)
        except BuildError as e:
            logger.error("%s", e)
            return False
        except OSError as e:
            logger.error("%s: %s", path, e)
            return False
        print(
            f"{kind}: {path.relative_to(self.state.content_root)}"
            f" ({len(self.state.written)} files written)",
            flush=True,
        )
        return True

    def process_pending(self, timeout=None) -> int:
        """Handle every queued event; wait up to ``timeout`` for the first.

        Returns the number of events handled.
        """
        try:
            item = self.queue.get(timeout=timeout)
        except queue.Empty:
            return 0
        handled = 0
        while True:
            with self._lock:
                self._pending.discard(item)
            self.handle(*item)
            handled += 1
            try:
                item = self.queue.get_nowait()
            except queue.Empty:
                return handled

    def _recompile(self, directory):
        sources = lesson_paths(directory, self.state)
        for source in sources:
            process_lesson(source, self.state, force=True)
        return sources

    def on_index_changed(self, path: Path):
        state = self.state
        if not path.is_file():
            return
        directory = path.parent
        previous = state.index.get(directory)
        old_slug = previous.slug if previous is not None else None
        entry = index_section(directory, state)
        process_index(directory, state, force=True)
        if entry.slug != old_slug:
            logger.info("slug of %s is now %r", directory.name, entry.slug)
            changed = []
            if directory == state.content_root:
                for section in list(state.index):
                    if section != directory:
                        process_index(section, state, force=True)
                        changed += self._recompile(section)
            else:
                changed = self._recompile(directory)
            recompile_dependents(state, changed)
        relink(state)

    def on_lesson_changed(self, path: Path):
        state = self.state
        if not path.is_file():
            return
        if path.parent not in state.index:
            index_section(path.parent, state)
            process_index(path.parent, state, force=True)
        previous = state.lessons.get(path)
        # code files live outside the watched tree
        state.catalog.scan()
        entry = process_lesson(path, state, force=True)
        changed = settle_slugs(state)
        if previous is None or any(
            previous.artifact[key] != entry.artifact[key]
            for key in ("slug", "title")
        ):
            changed.append(path)
        recompile_dependents(state, changed)
        relink(state)

    def on_removed(self, path: Path):
        state = self.state
        if path == state.content_root:
            return
        settings = state.settings
        if path.name == settings.index_name and path.parent.is_dir():
            # lessons left in the section keep a placeholder entry; in
            # production mode this raises before the index is touched
            index_section(path.parent, state)
            process_index(path.parent, state, force=True)
            recompile_dependents(state, self._recompile(path.parent))
            relink(state)
            return
        lessons = [
            source
            for source in state.lessons
            if source == path or path in source.parents
        ]
        for source in lessons:
            del state.lessons[source]
        if path.name == settings.index_name:
            sections = [path.parent]
        else:
            sections = [
                directory
                for directory in state.index
                if directory == path or path in directory.parents
            ]
        for directory in sections:
            state.index.pop(directory, None)
        remove_output(state.output_path(path), state.output_root)
        if lessons or sections:
            relink(state)
        # lessons that linked to or showed what was removed
        if settle_slugs(state) + recompile_dependents(state, lessons + [path]):
            relink(state)

    def on_asset_changed(self, path: Path):
        if not path.is_file():
            return
        destination = self.state.output_path(path)
        if copy_asset(path, destination):
            self.state.record_write(destination)


class ContentEventHandler(FileSystemEventHandler):
    def __init__(self, controller):
        self.controller = controller

    def on_created(self, event):
        self.controller.submit("created", event.src_path)

    def on_modified(self, event):
        self.controller.submit("modified", event.src_path)

    def on_deleted(self, event):
        self.controller.submit("deleted", event.src_path)

    def on_moved(self, event):
        self.controller.submit("deleted", event.src_path)
        self.controller.submit("created", event.dest_path)


@register_command(
    "Build the course, then rebuild incrementally on every change",
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
def watch(source, destination, projects=None, strict=False):
    state = make_state(source, destination, projects, strict)
    build_course(state)
    controller = WatchController(state)
    observer = Observer()
    observer.schedule(
        ContentEventHandler(controller),
        str(state.content_root),
        recursive=True,
    )
    observer.start()
    print("Watching content root:", flush=True)
    print(" ", state.content_root, flush=True)
    print("Awaiting changes...", flush=True)
    try:
        while True:
            if controller.process_pending(timeout=1):
                print("Awaiting changes...", flush=True)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
    return state
