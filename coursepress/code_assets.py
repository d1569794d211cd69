"""Index of code files inside Godot projects, for ``include`` directives."""

import logging
import os
import re
from pathlib import Path

from .errors import AmbiguousReference, AnchorNotFound, MissingReference

logger = logging.getLogger(__name__)

PROJECT_MARKER = "project.godot"
CODE_EXTENSIONS = {".gd", ".shader", ".gdshader"}
EXCLUDED_DIRS = {".git", ".plugged", ".godot", ".import", "node_modules"}

marker_pattern = re.compile(r"^\s*(?:#|//)\s*(?:ANCHOR|END):")


def _marker_line(kind, name):
    return re.compile(
        r"^\s*(?:#|//)\s*" + kind + r":\s*" + re.escape(name) + r"\s*$"
    )


def strip_anchor_markers(text: str) -> str:
    """Drop every ANCHOR/END marker line from ``text``."""
    lines = [
        line for line in text.splitlines() if not marker_pattern.match(line)
    ]
    return "\n".join(lines).rstrip()


def extract_anchor(text: str, name: str) -> str:
    """Return the lines between ``ANCHOR: name`` and ``END: name``.

    Marker lines of other anchors that fall inside the region are removed.
    Raises ``KeyError`` when the pair is missing.
    """
    start = _marker_line("ANCHOR", name)
    end = _marker_line("END", name)
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if start.match(line):
            break
    else:
        raise KeyError(name)
    for j in range(i + 1, len(lines)):
        if end.match(lines[j]):
            break
    else:
        raise KeyError(name)
    return strip_anchor_markers("\n".join(lines[i + 1 : j]))


class IncludedCode:
    def __init__(self, path, text, relative_path, anchor=None):
        self.path = path
        self.text = text
        self.relative_path = relative_path
        self.anchor = anchor


class CodeAssetCatalog:
    """Lookup from code file names to paths inside Godot projects.

    ``projects`` maps each project root (a directory holding
    ``project.godot``) to the code files beneath it.  The scan is lazy: it
    only runs while the catalog is empty.
    """

    def __init__(self, root, exclude=()):
        self.root = Path(root)
        self.exclude = {Path(p).resolve() for p in exclude}
        self.projects = {}
        self._by_name = {}

    def __len__(self):
        return sum(len(files) for files in self.projects.values())

    def _walk(self, top, nested_projects=True):
        """Walk ``top``; with ``nested_projects`` false, stop at inner projects."""
        for dirpath, dirnames, filenames in os.walk(top):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if d not in EXCLUDED_DIRS
                and (current / d).resolve() not in self.exclude
                and (
                    nested_projects
                    or not (current / d / PROJECT_MARKER).is_file()
                )
            )
            yield current, sorted(filenames)

    def clear(self):
        self.projects = {}
        self._by_name = {}

    def scan(self):
        self.clear()
        if not self.root.is_dir():
            logger.warning("code asset root %s does not exist", self.root)
            return self
        project_roots = [
            directory
            for directory, filenames in self._walk(self.root)
            if PROJECT_MARKER in filenames
        ]
        for project in project_roots:
            files = []
            for directory, filenames in self._walk(
                project, nested_projects=False
            ):
                for name in filenames:
                    if Path(name).suffix in CODE_EXTENSIONS:
                        files.append(directory / name)
            self.projects[project] = files
            for path in files:
                self._by_name.setdefault(path.name, []).append(path)
        logger.debug(
            "indexed %d code files in %d projects",
            len(self),
            len(self.projects),
        )
        return self

    def ensure_scanned(self):
        if not self.projects:
            self.scan()
        return self

    def find(self, name: str) -> list:
        self.ensure_scanned()
        name = name.strip("\"'")
        if "/" not in name:
            return list(self._by_name.get(name, []))
        suffix = "/" + name.lstrip("/")
        return [
            path
            for files in self.projects.values()
            for path in files
            if path.as_posix().endswith(suffix)
        ]

    def project_of(self, path: Path):
        # innermost project wins
        projects = sorted(
            self.projects, key=lambda p: len(p.parts), reverse=True
        )
        for project in projects:
            if project in path.parents:
                return project
        return None

    def relative_path(self, path: Path) -> str:
        """Path of a code file relative to its project, like ``/a/B.gd``."""
        project = self.project_of(path)
        if project is None:
            return "/" + path.name
        return "/" + path.relative_to(project).as_posix()

    def resolve_include(self, name, anchor=None, source=None, line=None):
        """Return the ``IncludedCode`` an include directive points at.

        Raises ``MissingReference`` when nothing matches,
        ``AmbiguousReference`` when more than one file does and
        ``AnchorNotFound`` when ``anchor`` is not delimited in the file.
        """
        found = self.find(name)
        if not found:
            raise MissingReference(
                f"code file {name!r} not found in any Godot project under"
                f" {self.root}",
                path=source,
                line=line,
            )
        if len(found) > 1:
            candidates = "\n".join(f"  {p}" for p in found)
            raise AmbiguousReference(
                f"multiple code files named {name!r} found:\n{candidates}\n"
                "Use a fuller path to disambiguate.",
                path=source,
                line=line,
            )
        path = found[0]
        text = path.read_text(encoding="utf-8")
        if anchor:
            try:
                text = extract_anchor(text, anchor)
            except KeyError:
                raise AnchorNotFound(
                    f"anchor {anchor!r} not found in {path}",
                    path=source,
                    line=line,
                )
        else:
            text = strip_anchor_markers(text)
        return IncludedCode(path, text, self.relative_path(path), anchor)
