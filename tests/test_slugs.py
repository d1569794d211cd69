import pytest

from coursepress.sections import index_sections
from coursepress.slugs import (
    asset_url,
    document_url,
    humanize,
    lesson_slug,
    section_url,
    slug_chain,
    slugify,
    strip_number_prefix,
    unique_slug,
)
from coursepress.state import LessonEntry

from conftest import document, write


def test_slugify():
    assert slugify("Hello, World!") == "hello-world"
    assert slugify("  Café crème ") == "cafe-creme"
    assert slugify("2D Movement") == "2d-movement"


def test_number_prefix_and_humanize():
    assert strip_number_prefix("2.getting-started") == "getting-started"
    assert strip_number_prefix("getting-started") == "getting-started"
    assert humanize("2.getting_started") == "getting started"


def test_unique_slug():
    assert unique_slug("intro", set()) == "intro"
    assert unique_slug("intro", {"intro"}) == "intro-2"
    assert unique_slug("intro", {"intro", "intro-2"}) == "intro-3"


def test_slug_chain(course):
    state = course.make_state()
    lesson = course.content / "2.advanced" / "1.signals.md"
    # sections are indexed on demand
    assert slug_chain(lesson, state) == ["advanced"]
    assert slug_chain(course.content / "1.basics", state) == ["basics"]
    assert slug_chain(course.content, state) == []


def test_slug_chain_outside_content_root(course):
    state = course.make_state()
    with pytest.raises(ValueError):
        slug_chain(course.root / "elsewhere" / "lesson.md", state)


def test_urls(course):
    state = course.make_state()
    index_sections(state)
    assert section_url(course.content / "1.basics", state) == (
        "/course/learn-gdscript/basics"
    )
    assert document_url(course.content / "1.basics" / "1.intro.md", state) == (
        "/course/learn-gdscript/basics/intro"
    )
    assert document_url(course.content / "2.advanced" / "_index.md", state) == (
        "/course/learn-gdscript/advanced"
    )
    image = course.content / "1.basics" / "images" / "diagram.png"
    assert asset_url(image, state) == (
        "/courses/learn-gdscript/basics/images/diagram.png"
    )
    cover = course.content / "images" / "cover.png"
    assert asset_url(cover, state) == "/courses/learn-gdscript/images/cover.png"


def test_lesson_slug_collision_gets_suffix(course):
    write(course.content / "1.basics" / "3.intro-again.md", document("Intro"))
    state = course.make_state()
    index_sections(state)
    first = course.content / "1.basics" / "1.intro.md"
    state.lessons[first] = LessonEntry(first, None, "", {"slug": "intro"})
    second = course.content / "1.basics" / "3.intro-again.md"
    assert lesson_slug(second, {"title": "Intro"}, state) == "intro-2"
    # the earlier sibling keeps its slug
    assert lesson_slug(first, {"title": "Intro"}, state) == "intro"
