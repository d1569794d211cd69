from pathlib import Path

import yaml

from .errors import FrontMatterError


def split_front_matter(text: str, path=None):
    """Return ``(front_matter, body)`` for a document.

    The front matter is the YAML block between a leading ``---`` line and the
    next ``---`` line.  Documents without one get an empty mapping and the
    whole text as body.
    """
    if not text.startswith("---"):
        return {}, text
    first_break = text.find("\n")
    if first_break == -1 or text[:first_break].strip() != "---":
        return {}, text
    end = text.find("\n---", first_break)
    if end == -1:
        return {}, text
    block = text[first_break + 1 : end]
    closing_end = text.find("\n", end + 1)
    if closing_end == -1:
        body = ""
    else:
        body = text[closing_end + 1 :]
    try:
        meta = yaml.safe_load(block)
    except yaml.YAMLError as e:
        line = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            # the YAML block starts on the second line of the file
            line = mark.line + 2
        raise FrontMatterError(
            f"invalid front matter: {e}", path=path, line=line
        )
    if not isinstance(meta, dict):
        meta = {}
    return meta, body


def body_offset(text: str) -> int:
    """Number of lines that precede the body of ``text``."""
    meta_end = len(text) - len(split_front_matter(text)[1])
    return text[:meta_end].count("\n")


def read_document(path: Path):
    """Read ``path`` and return ``(front_matter, body, raw_text)``."""
    text = path.read_text(encoding="utf-8")
    meta, body = split_front_matter(text, path)
    return meta, body, text
