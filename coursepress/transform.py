"""Turn one authored document into a compiled artifact.

Lessons go through a fixed sequence of steps, each feeding the next:

1. authoring comments are stripped,
2. ``{{ include File.gd [anchor] }}`` directives are replaced by code,
3. code fences that started with an include get a ``filename`` attribute,
4. the lesson's slug chain and URL are resolved,
5. ``{{ link LessonFile [heading] }}`` shortcodes become Markdown links,
6. the body is compiled while image and document references are rewritten
   to absolute URLs.
"""

import logging
import re
from pathlib import Path
from urllib.parse import unquote

from .compiler import DocumentVisitor, compile_document
from .errors import AmbiguousReference, MissingReference, raise_or_warn
from .front_matter import read_document
from .sections import lesson_paths, section_directories
from .slugs import (
    asset_url,
    course_url,
    document_url,
    humanize,
    lesson_slug,
    section_url,
    slug_chain,
)
from .state import LessonEntry

logger = logging.getLogger(__name__)

comment_pattern = re.compile(r"<!--.*?-->|\{\{/\*.*?\*/\}\}", re.DOTALL)
include_pattern = re.compile(
    r"\{\{\s*include\s+([^\s{}]+)(?:\s+([^\s{}]+))?\s*\}\}"
)
link_pattern = re.compile(r"\{\{\s*link\s+([\w.-]+)(?:\s+([\w-]+))?\s*\}\}")
fence_pattern = re.compile(r"^(\s*)(`{3,}|~{3,})(.*)$")
raw_image_pattern = re.compile(r"(<img\b[^>]*?\bsrc=)([\"'])(.*?)\2", re.I)
external_pattern = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|/)")


def _fence_spans(lines):
    """Return ``(open, close)`` line indices of every fenced code block."""
    spans = []
    start = None
    fence = None
    for i, line in enumerate(lines):
        m = fence_pattern.match(line)
        if start is None:
            if m:
                start = i
                fence = m.group(2)
        elif m and m.group(2)[0] == fence[0] and len(m.group(2)) >= len(
            fence
        ):
            if not m.group(3).strip():
                spans.append((start, i))
                start = None
    if start is not None:
        spans.append((start, len(lines) - 1))
    return spans


def _chunks(lines):
    """Split ``lines`` into ``(in_fence, first_index, block)`` runs."""
    chunks = []
    pos = 0
    for start, end in _fence_spans(lines):
        if start > pos:
            chunks.append((False, pos, lines[pos:start]))
        chunks.append((True, start, lines[start : end + 1]))
        pos = end + 1
    if pos < len(lines):
        chunks.append((False, pos, lines[pos:]))
    return chunks


def strip_comments(body: str) -> str:
    """Remove authoring comments outside of fenced code.

    Line breaks inside a removed comment are kept so later line numbers still
    match the source document.
    """
    out = []
    for in_fence, _, block in _chunks(body.split("\n")):
        text = "\n".join(block)
        if not in_fence:
            text = comment_pattern.sub(
                lambda m: "\n" * m.group(0).count("\n"), text
            )
        out.append(text)
    return "\n".join(out)


def _indent(text, prefix):
    if not prefix:
        return text
    lines = text.split("\n")
    return "\n".join(
        [lines[0]] + [prefix + line if line else line for line in lines[1:]]
    )


def resolve_includes(body: str, source: Path, state, line_offset=0):
    """Splice code from the catalog in place of include directives.

    Returns ``(body, includes, fenced)`` where ``includes`` lists every
    resolved ``IncludedCode`` and ``fenced`` maps the ordinal of each code
    fence whose first line was an include to what it included.  Missing files
    go through the failure policy and leave the directive in place.
    """
    settings = state.settings
    catalog = state.catalog
    lines = body.split("\n")
    opening = {}
    for ordinal, (start, end) in enumerate(_fence_spans(lines)):
        for k in range(start + 1, end):
            if lines[k].strip():
                if include_pattern.fullmatch(lines[k].strip()):
                    opening[k] = ordinal
                break
    includes = []
    fenced = {}
    for k, line in enumerate(lines):
        if "include" not in line:
            continue
        prefix = line[: len(line) - len(line.lstrip())]

        def repl(match):
            name, anchor = match.groups()
            try:
                included = catalog.resolve_include(
                    name, anchor, source=source, line=line_offset + k + 1
                )
            except MissingReference as e:
                raise_or_warn(e, settings)
                return match.group(0)
            includes.append(included)
            if k in opening:
                fenced[opening[k]] = included
            return _indent(included.text, prefix)

        lines[k] = include_pattern.sub(repl, line)
    return "\n".join(lines), includes, fenced


def _annotate_fence(line, filename):
    indent, fence, info = fence_pattern.match(line).groups()
    info = info.strip()
    attribute = f'filename="{filename}"'
    if info.startswith("{") and info.endswith("}"):
        inner = info[1:-1].strip()
        info = f"{{ {inner} {attribute} }}" if inner else f"{{ {attribute} }}"
    elif info:
        lang = info.split()[0].lstrip(".")
        info = f"{{ .{lang} {attribute} }}"
    else:
        info = f"{{ {attribute} }}"
    return f"{indent}{fence}{info}"


def annotate_code_fences(body: str, fenced) -> str:
    """Give fences listed in ``fenced`` the path of the file they show."""
    if not fenced:
        return body
    lines = body.split("\n")
    for ordinal, (start, _) in enumerate(_fence_spans(lines)):
        if ordinal in fenced:
            lines[start] = _annotate_fence(
                lines[start], fenced[ordinal].relative_path
            )
    return "\n".join(lines)


def _lesson_title(path: Path, state):
    if path in state.lessons:
        return state.lessons[path].artifact["title"]
    front_matter = read_document(path)[0]
    return front_matter.get("title") or humanize(path.stem)


def expand_link_shortcodes(
    body: str, source: Path, state, line_offset=0, targets=None
):
    """Replace ``{{ link LessonFile heading }}`` with a Markdown link.

    The lessons linked to are appended to ``targets`` when it is given.
    """
    settings = state.settings
    lines = body.split("\n")
    out = []
    candidates_by_stem = None
    for in_fence, first, block in _chunks(lines):
        if in_fence:
            out.extend(block)
            continue
        for k, line in enumerate(block, start=first):
            if "link" not in line:
                out.append(line)
                continue
            if candidates_by_stem is None:
                candidates_by_stem = {}
                for directory in section_directories(state):
                    for path in lesson_paths(directory, state):
                        candidates_by_stem.setdefault(path.stem, []).append(
                            path
                        )

            def repl(match):
                name, heading = match.groups()
                stem = name
                if stem.endswith(settings.doc_suffix):
                    stem = stem[: -len(settings.doc_suffix)]
                found = candidates_by_stem.get(stem, [])
                line_number = line_offset + k + 1
                if not found:
                    raise_or_warn(
                        MissingReference(
                            f"no lesson named {name!r} to link to",
                            path=source,
                            line=line_number,
                        ),
                        settings,
                    )
                    return match.group(0)
                if len(found) > 1:
                    candidates = "\n".join(f"  {p}" for p in found)
                    raise AmbiguousReference(
                        f"multiple lessons named {name!r}:\n{candidates}",
                        path=source,
                        line=line_number,
                    )
                if targets is not None:
                    targets.append(found[0])
                url = document_url(found[0], state)
                if heading:
                    url += f"#{heading}"
                return f"[{_lesson_title(found[0], state)}]({url})"

            out.append(link_pattern.sub(repl, line))
    return "\n".join(out)


class ReferenceRewriter(DocumentVisitor):
    """Rewrite relative image and document references to absolute URLs.

    Every successfully rewritten target was checked to exist on disk;
    ``references`` lists them.  ``downscale``, when given, is called with each
    image path and its result stored as the image's ``data-placeholder``.
    """

    def __init__(self, source: Path, state, text="", downscale=None):
        self.source = source
        self.base = source.parent
        self.state = state
        self.text = text
        self.downscale = downscale
        self.references = []

    def _line_of(self, needle):
        idx = self.text.find(needle)
        if idx == -1:
            return None
        return self.text[:idx].count("\n") + 1

    def _target(self, reference):
        target = (self.base / unquote(reference)).resolve()
        root = self.state.content_root
        if target.is_file() and root in target.parents:
            return target
        return None

    def _missing(self, kind, reference):
        raise_or_warn(
            MissingReference(
                f"{kind} {reference!r} not found",
                path=self.source,
                line=self._line_of(reference),
            ),
            self.state.settings,
        )

    def resolve_image(self, src):
        """Return ``(url, path)``; ``path`` is None when left unchanged."""
        if not src or external_pattern.match(src):
            return src, None
        reference, sep, rest = src.partition("?")
        target = self._target(reference)
        if target is None:
            self._missing("image", src)
            return src, None
        self.references.append(target)
        return asset_url(target, self.state) + sep + rest, target

    def rewrite_link(self, href):
        if not href or href.startswith("#") or external_pattern.match(href):
            return href
        reference, sep, fragment = href.partition("#")
        if not self.state.settings.is_document(Path(reference)):
            return href
        target = self._target(reference)
        if target is None:
            self._missing("linked document", href)
            return href
        self.references.append(target)
        return document_url(target, self.state) + sep + fragment

    def visit_element(self, element):
        if element.tag == "img":
            url, target = self.resolve_image(element.get("src"))
            if target is not None:
                element.set("src", url)
                if self.downscale is not None:
                    element.set("data-placeholder", self.downscale(target))
        elif element.tag == "a" and element.get("href"):
            element.set("href", self.rewrite_link(element.get("href")))

    def visit_raw_html(self, text):
        def repl(match):
            url = self.resolve_image(match.group(3))[0]
            return f"{match.group(1)}{match.group(2)}{url}{match.group(2)}"

        return raw_image_pattern.sub(repl, text)

    def rewrite_front_matter(self, front_matter):
        front_matter = dict(front_matter)
        thumbnail = front_matter.get("thumbnail")
        if isinstance(thumbnail, str):
            front_matter["thumbnail"] = self.resolve_image(thumbnail)[0]
        return front_matter


def transform_lesson(source: Path, state) -> LessonEntry:
    """Compile the lesson at ``source`` into a fresh cache entry."""
    source = Path(source)
    front_matter, raw_body, text = read_document(source)
    line_offset = text.count("\n") - raw_body.count("\n")
    body = strip_comments(raw_body)
    body, includes, fenced = resolve_includes(body, source, state, line_offset)
    body = annotate_code_fences(body, fenced)
    chain = slug_chain(source, state)
    slug = lesson_slug(source, front_matter, state)
    url = "/".join([course_url(state)] + chain + [slug])
    linked = []
    body = expand_link_shortcodes(body, source, state, line_offset, linked)
    rewriter = ReferenceRewriter(source, state, text, state.downscale)
    front_matter = rewriter.rewrite_front_matter(front_matter)
    html, toc = compile_document(body, front_matter, [rewriter])
    # a missing or renamed dependency makes the artifact stale
    dependencies = sorted(
        {state.relative(inc.path) for inc in includes}
        | {state.relative(path) for path in linked + rewriter.references}
    )
    artifact = {
        "title": front_matter.get("title") or humanize(source.stem),
        "slug": slug,
        "url": url,
        "section": chain[-1] if chain else None,
        "free": bool(front_matter.get("free", False)),
        "draft": bool(front_matter.get("draft", False)),
        "front_matter": front_matter,
        "html": html,
        "toc": toc,
        "dependencies": dependencies,
        "prev": None,
        "next": None,
    }
    logger.debug("compiled %s -> %s", source, url)
    return LessonEntry(
        source, state.output_path(source), raw_body, artifact, recomputed=True
    )


def transform_index(directory: Path, state):
    """Compile the index document of the course root or a section."""
    directory = Path(directory)
    entry = state.index[directory]
    source = entry.source
    if source is None:
        source = directory / state.settings.index_name
        text = ""
    else:
        text = source.read_text(encoding="utf-8")
    rewriter = ReferenceRewriter(source, state, text, state.downscale)
    front_matter = rewriter.rewrite_front_matter(entry.front_matter)
    html, toc = compile_document(
        strip_comments(entry.body), front_matter, [rewriter]
    )
    if directory == state.content_root:
        url = course_url(state)
    else:
        url = section_url(directory, state)
    return {
        "title": entry.title,
        "slug": entry.slug,
        "url": url,
        "placeholder": entry.placeholder,
        "front_matter": front_matter,
        "html": html,
        "toc": toc,
    }
