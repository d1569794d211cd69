"""Markdown compilation with traversal hooks and heading extraction."""

import re

import markdown
from lxml import html as lxml_html
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

EXTENSIONS = ["extra", "codehilite", "toc", "sane_lists"]
EXTENSION_CONFIGS = {
    "codehilite": {"guess_lang": False, "css_class": "highlight"},
}
TOC_LEVELS = 3


class DocumentVisitor:
    """Hook run over a compiled document before it is serialized.

    ``visit_element`` sees every element of the tree, ``visit_raw_html``
    every raw HTML block stashed by the parser and returns its replacement.
    """

    def visit_element(self, element):
        pass

    def visit_raw_html(self, text: str) -> str:
        return text


class _VisitorTreeprocessor(Treeprocessor):
    def __init__(self, md, visitors):
        super().__init__(md)
        self.visitors = visitors

    def run(self, root):
        for element in root.iter():
            for visitor in self.visitors:
                visitor.visit_element(element)
        stash = self.md.htmlStash.rawHtmlBlocks
        for i, block in enumerate(stash):
            if not isinstance(block, str):
                continue
            for visitor in self.visitors:
                block = visitor.visit_raw_html(block)
            stash[i] = block


class _VisitorExtension(Extension):
    def __init__(self, visitors):
        super().__init__()
        self.visitors = visitors

    def extendMarkdown(self, md):
        # after inline patterns (20) have produced <img> and <a> elements
        md.treeprocessors.register(
            _VisitorTreeprocessor(md, self.visitors), "coursepress_visitors", 15
        )


def compile_document(body: str, front_matter=None, visitors=()):
    """Compile ``body`` and return ``(html, toc)``.

    ``front_matter`` is accepted for visitors that need it and is not
    rendered.  ``toc`` is the nested list of the top three heading levels.
    """
    md = markdown.Markdown(
        extensions=EXTENSIONS + [_VisitorExtension(list(visitors))],
        extension_configs=EXTENSION_CONFIGS,
    )
    html = md.convert(body)
    return html, parse_headings(html)


def _fragment(html: str):
    return lxml_html.fragment_fromstring(html, create_parent="div")


def parse_headings(html: str, max_level=TOC_LEVELS):
    """Return a nested list of the headings found in ``html``."""
    if not html.strip():
        return []
    root = _fragment(html)
    xpath = "|".join(f".//h{level}" for level in range(1, max_level + 1))
    items = []
    stack = []
    for h in root.xpath(xpath):
        level = int(h.tag[1])
        node = {
            "level": level,
            "text": h.text_content().strip(),
            "id": h.get("id"),
            "children": [],
        }
        while stack and stack[-1]["level"] >= level:
            stack.pop()
        if stack:
            stack[-1]["children"].append(node)
        else:
            items.append(node)
        stack.append(node)
    return items


def plain_text(html: str) -> str:
    """Visible text of ``html`` with whitespace collapsed, for search."""
    if not html.strip():
        return ""
    return re.sub(r"\s+", " ", _fragment(html).text_content()).strip()
