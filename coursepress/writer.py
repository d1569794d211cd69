import json
import logging
import os
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def is_stale(output: Path, inputs) -> bool:
    """Return True if ``output`` must be recomputed from ``inputs``.

    That is the case when the output is missing, when an input is missing, or
    when the output is strictly older than the newest input.
    """
    output = Path(output)
    if not output.exists():
        return True
    newest = None
    for path in inputs:
        path = Path(path)
        if not path.exists():
            return True
        mtime = path.stat().st_mtime
        if newest is None or mtime > newest:
            newest = mtime
    if newest is None:
        return False
    return output.stat().st_mtime < newest


def serialize(data) -> str:
    # YAML front matter may hold dates
    return json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"


def read_artifact(path: Path):
    return json.loads(Path(path).read_text(encoding="utf-8"))


def write_text_atomic(path: Path, text: str):
    """Write ``text`` to ``path`` through a temporary sibling file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            fp.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_artifact(path: Path, data, force=False) -> bool:
    """Write ``data`` as JSON unless the file already holds exactly that.

    With ``force`` the file is written even when unchanged, which refreshes
    its modification time.  Returns whether a write happened.
    """
    path = Path(path)
    text = serialize(data)
    if not force and path.exists():
        if path.read_text(encoding="utf-8") == text:
            return False
    write_text_atomic(path, text)
    logger.debug("wrote %s", path)
    return True


def copy_asset(source: Path, destination: Path) -> bool:
    """Copy a static file byte for byte when the copy is stale."""
    if not is_stale(destination, [source]):
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)
    logger.debug("copied %s", destination)
    return True


def remove_output(path: Path, stop_at: Path) -> bool:
    """Delete ``path`` and any parent directories left empty by it.

    Parents are pruned up to, but not including, ``stop_at``.
    """
    path = Path(path)
    removed = False
    if path.is_dir():
        shutil.rmtree(path)
        removed = True
    elif path.exists():
        path.unlink()
        removed = True
    parent = path.parent
    while parent != stop_at and stop_at in parent.parents:
        if not parent.exists() or any(parent.iterdir()):
            break
        parent.rmdir()
        parent = parent.parent
    return removed
