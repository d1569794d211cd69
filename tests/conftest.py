import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from coursepress.config import DEVELOPMENT, ENV_VAR, PRODUCTION, Settings  # noqa: E402
from coursepress.state import BuildState  # noqa: E402

PLAYER_GD = """extends KinematicBody2D

# ANCHOR: movement
var speed := 200
# ANCHOR: jump
var jump := 400
# END: jump
# END: movement

func _ready():
    pass
"""


def write(path, text=""):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def document(title, body="", **extra):
    lines = ["---", f"title: {title}"]
    lines += [f"{key}: {value}" for key, value in extra.items()]
    lines += ["---", "", body]
    return "\n".join(lines)


@pytest.fixture(autouse=True)
def build_environment(monkeypatch, tmp_path):
    # restore whatever a test (or a loaded .env file) sets
    for name in (ENV_VAR, "NODE_ENV"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def course(tmp_path):
    """A two-section course with two lessons each and one Godot project."""
    tmp_path = tmp_path.resolve()
    content = tmp_path / "content"
    output = tmp_path / "dist"
    project = tmp_path / "godot" / "platformer"
    write(project / "project.godot", "[application]\n")
    write(project / "Player.gd", PLAYER_GD)
    write(project / ".plugged" / "addon" / "Addon.gd", "extends Node\n")
    write(
        content / "_index.md",
        document(
            "Learn GDScript",
            "Welcome!\n\n![cover](images/cover.png)\n",
            slug="learn-gdscript",
        ),
    )
    write(content / "images" / "cover.png", "png")
    write(content / "1.basics" / "_index.md", document("Basics"))
    write(
        content / "1.basics" / "1.intro.md",
        document("Intro", "# Getting started\n\nHello.\n"),
    )
    write(
        content / "1.basics" / "2.variables.md",
        document(
            "Variables",
            "## Declaring\n\n```gdscript\n{{ include Player.gd jump }}\n```\n",
        ),
    )
    write(content / "1.basics" / "images" / "diagram.png", "png")
    write(content / "2.advanced" / "_index.md", document("Advanced"))
    write(
        content / "2.advanced" / "1.signals.md",
        document("Signals", "## Connecting\n\nSee {{ link 1.intro }}.\n"),
    )
    write(
        content / "2.advanced" / "2.nodes.md",
        document("Nodes", "![tree](images/tree.png)\n"),
    )
    write(content / "2.advanced" / "images" / "tree.png", "png")

    def make_state(mode=DEVELOPMENT):
        return BuildState(content, output, tmp_path, Settings(mode=mode))

    return SimpleNamespace(
        root=tmp_path,
        content=content,
        output=output,
        project=project,
        make_state=make_state,
        strict_state=lambda: make_state(PRODUCTION),
    )
