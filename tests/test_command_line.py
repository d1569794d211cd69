import logging
import os
import subprocess
import sys
from pathlib import Path

from coursepress.command_line import build_parser, main
from coursepress.command_registry import command_specs

from conftest import document, write


def test_registered_commands():
    assert list(command_specs()) == ["build", "release", "watch"]
    arguments = {
        argument["dest"]: argument
        for argument in command_specs()["build"]["arguments"]
    }
    assert arguments["source"]["flags"] == ["source"]
    assert arguments["strict"]["flags"] == ["--strict"]
    assert arguments["strict"]["kwargs"]["action"] == "store_true"


def test_parser():
    args = build_parser().parse_args(
        ["--verbose", "build", "content", "dist", "--strict"]
    )
    assert args.verbose
    assert args.source == "content"
    assert args.destination == "dist"
    assert args.strict
    assert args.projects is None


def test_main_builds(course):
    assert main(["build", str(course.content), str(course.output)]) == 0
    assert (course.output / "course.json").exists()


def test_main_reports_build_errors(course, caplog):
    write(
        course.content / "1.basics" / "3.broken.md",
        document("Broken", "![gone](images/gone.png)\n"),
    )
    with caplog.at_level(logging.ERROR):
        status = main(
            ["build", str(course.content), str(course.output), "--strict"]
        )
    assert status == 1
    assert "3.broken.md:5: image 'images/gone.png' not found" in caplog.text


def test_main_without_command(capsys):
    assert main([]) == 2
    assert "build" in capsys.readouterr().out


def test_module_entry_point(course):
    repo_root = Path(__file__).resolve().parents[1]
    env = os.environ.copy()
    env["PYTHONPATH"] = str(repo_root)
    cmd = [
        sys.executable,
        "-m",
        "coursepress.command_line",
        "build",
        str(course.content),
        str(course.output),
    ]
    proc = subprocess.run(
        cmd, capture_output=True, text=True, env=env, cwd=course.root
    )
    assert proc.returncode == 0, proc.stderr
    assert (course.output / "1.basics" / "1.intro.json").exists()
