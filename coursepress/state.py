from collections import OrderedDict
from pathlib import Path

from .code_assets import CodeAssetCatalog
from .config import Settings


class SectionEntry:
    """Front matter and body of one indexed directory."""

    def __init__(self, path, front_matter, body, source=None, placeholder=False):
        self.path = path
        self.front_matter = front_matter
        self.body = body
        self.source = source
        self.placeholder = placeholder

    @property
    def slug(self):
        return self.front_matter["slug"]

    @property
    def title(self):
        return self.front_matter["title"]


class LessonEntry:
    """Cache entry for one lesson: its raw body and compiled artifact.

    ``recomputed`` is true when the artifact was compiled during the current
    pass rather than loaded from a fresh output file.
    """

    def __init__(self, source, output, raw_body, artifact, recomputed=False):
        self.source = source
        self.output = output
        self.raw_body = raw_body
        self.artifact = artifact
        self.recomputed = recomputed


class BuildState:
    """Caches shared by every build step.

    The orchestrator owns one instance per build (or per watch session) and
    hands it to each component.
    """

    def __init__(
        self, content_root, output_root, project_root=None, settings=None
    ):
        self.content_root = Path(content_root).resolve()
        self.output_root = Path(output_root).resolve()
        if project_root is None:
            project_root = self.content_root.parent
        self.project_root = Path(project_root).resolve()
        if settings is None:
            settings = Settings()
        self.settings = settings
        # directory -> SectionEntry, course root first
        self.index = OrderedDict()
        # lesson source -> LessonEntry
        self.lessons = {}
        self.catalog = CodeAssetCatalog(
            self.project_root, exclude=[self.output_root]
        )
        # optional callable: image path -> embeddable placeholder
        self.downscale = None
        self.written = []

    def output_path(self, source) -> Path:
        """Mirror ``source`` from the content tree into the output tree."""
        source = Path(source)
        relative = source.relative_to(self.content_root)
        return self.output_root / relative.parent / (
            self.settings.artifact_name(source)
        )

    def index_output(self, directory) -> Path:
        return self.output_path(Path(directory) / self.settings.index_name)

    def record_write(self, path):
        self.written.append(Path(path))

    def relative(self, path) -> str:
        """Path as stored in artifacts: relative to the project root."""
        path = Path(path)
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return path.as_posix()
