import pytest

from coursepress.code_assets import (
    CodeAssetCatalog,
    extract_anchor,
    strip_anchor_markers,
)
from coursepress.errors import AmbiguousReference, AnchorNotFound, MissingReference

from conftest import PLAYER_GD, write


def test_extract_anchor_drops_nested_markers():
    assert extract_anchor(PLAYER_GD, "movement") == (
        "var speed := 200\nvar jump := 400"
    )
    assert extract_anchor(PLAYER_GD, "jump") == "var jump := 400"


def test_extract_anchor_missing_pair():
    with pytest.raises(KeyError):
        extract_anchor(PLAYER_GD, "shooting")
    with pytest.raises(KeyError):
        extract_anchor("# ANCHOR: open\nvar a\n", "open")


def test_shader_comment_markers():
    text = "// ANCHOR: body\nvoid fragment() {}\n// END: body\n"
    assert extract_anchor(text, "body") == "void fragment() {}"


def test_strip_anchor_markers():
    text = strip_anchor_markers(PLAYER_GD)
    assert "ANCHOR" not in text
    assert "END:" not in text
    assert text.startswith("extends KinematicBody2D")
    assert text.endswith("pass")


def test_scan_skips_plugged_addons(course):
    catalog = CodeAssetCatalog(course.root).scan()
    assert list(catalog.projects) == [course.project]
    assert catalog.find("Player.gd") == [course.project / "Player.gd"]
    assert catalog.find("Addon.gd") == []


def test_relative_path_is_rooted_at_the_project(tmp_path):
    write(tmp_path / "game" / "project.godot")
    script = write(tmp_path / "game" / "actors" / "Enemy.gd", "extends Node\n")
    catalog = CodeAssetCatalog(tmp_path).scan()
    assert catalog.relative_path(script) == "/actors/Enemy.gd"


def test_resolve_include_whole_file(course):
    catalog = CodeAssetCatalog(course.root)
    included = catalog.resolve_include("Player.gd")
    assert included.relative_path == "/Player.gd"
    assert "ANCHOR" not in included.text
    assert "func _ready():" in included.text


def test_ambiguous_include_lists_candidates(tmp_path):
    for name in ("a", "b"):
        write(tmp_path / name / "project.godot")
        write(tmp_path / name / "Player.gd", "extends Node\n")
    catalog = CodeAssetCatalog(tmp_path)
    with pytest.raises(AmbiguousReference) as info:
        catalog.resolve_include("Player.gd", source="lesson.md", line=4)
    message = str(info.value)
    assert message.startswith("lesson.md:4:")
    assert str(tmp_path / "a" / "Player.gd") in message
    assert str(tmp_path / "b" / "Player.gd") in message
    # a longer path picks one of them
    included = catalog.resolve_include("b/Player.gd")
    assert included.path == tmp_path / "b" / "Player.gd"


def test_missing_file_and_anchor(course):
    catalog = CodeAssetCatalog(course.root)
    with pytest.raises(MissingReference):
        catalog.resolve_include("Enemy.gd")
    with pytest.raises(AnchorNotFound):
        catalog.resolve_include("Player.gd", "shooting")


def test_nested_projects_list_each_file_once(tmp_path):
    write(tmp_path / "outer" / "project.godot")
    write(tmp_path / "outer" / "Main.gd", "extends Node\n")
    inner = tmp_path / "outer" / "demos" / "inner"
    write(inner / "project.godot")
    only = write(inner / "Only.gd", "extends Node\n")
    catalog = CodeAssetCatalog(tmp_path).scan()
    assert catalog.find("Only.gd") == [only]
    assert catalog.projects[tmp_path / "outer"] == [tmp_path / "outer" / "Main.gd"]
    assert catalog.relative_path(only) == "/Only.gd"
    included = catalog.resolve_include("Only.gd")
    assert included.path == only
