"""Package a production build of the course for distribution."""

import datetime
import logging
import os
import subprocess
import zipfile
from pathlib import Path

from .build import build_course, make_state
from .command_registry import register_command

logger = logging.getLogger(__name__)

PUBLIC_DIR = "public"
RELEASES_DIR = "content-releases"
# gd-plug addon checkouts and VCS metadata
RELEASE_EXCLUDED_DIRS = {".plugged", ".git"}


def zip_directory(directory: Path, archive: Path, exclude=()) -> Path:
    """Zip the contents of ``directory`` (not the directory itself)."""
    directory = Path(directory)
    archive = Path(archive)
    archive.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames[:] = sorted(d for d in dirnames if d not in exclude)
            for name in sorted(filenames):
                path = Path(dirpath) / name
                if path == archive:
                    continue
                zf.write(path, path.relative_to(directory).as_posix())
    return archive


def package_projects(state) -> list:
    """Zip every Godot project into ``<output>/public/<project>.zip``."""
    state.catalog.ensure_scanned()
    archives = []
    for project in sorted(state.catalog.projects):
        archive = state.output_root / PUBLIC_DIR / f"{project.name}.zip"
        logger.info("packaging Godot project %s", project.name)
        zip_directory(project, archive, exclude=RELEASE_EXCLUDED_DIRS)
        state.record_write(archive)
        archives.append(archive)
    return archives


def git_hash(cwd) -> str:
    """Short hash of the checked out commit, or ``unknown`` outside git."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        logger.warning("could not run git: %s", e)
        return "unknown"
    if result.returncode != 0:
        logger.warning("%s is not in a git repository", cwd)
        return "unknown"
    return result.stdout.strip()


def release_name(state, today=None) -> str:
    if today is None:
        today = datetime.date.today()
    course = state.index[state.content_root].slug
    return f"{course}-{today.isoformat()}-{git_hash(state.project_root)}.zip"


@register_command(
    "Build the course in production mode and zip it for release",
    help={
        "source": "Content directory (holds the course _index.md)",
        "destination": "Directory that receives the compiled artifacts",
        "projects": (
            "Directory scanned for Godot projects (defaults to the parent of"
            " the content directory)"
        ),
        "releases": (
            "Directory that receives the release archive (defaults to"
            " ./content-releases)"
        ),
    },
)
def release(source, destination, projects=None, releases=None):
    state = make_state(source, destination, projects, strict=True)
    build_course(state)
    package_projects(state)
    if releases is None:
        releases = Path.cwd() / RELEASES_DIR
    archive = Path(releases).resolve() / release_name(state)
    zip_directory(state.output_root, archive)
    print(f"Saved release to {archive}", flush=True)
    return archive
