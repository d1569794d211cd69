import os

from dotenv import find_dotenv, load_dotenv

ENV_VAR = "COURSEPRESS_ENV"
PRODUCTION = "production"
DEVELOPMENT = "development"


class Settings:
    """Options shared by every build step.

    ``mode`` selects the failure policy: ``production`` aborts on any missing
    or ambiguous reference, ``development`` keeps going with placeholders.
    """

    def __init__(
        self,
        mode=DEVELOPMENT,
        doc_suffix=".md",
        index_name="_index.md",
        aggregate_name="course.json",
        lesson_url_root="/course",
        asset_url_root="/courses",
    ):
        if mode not in (PRODUCTION, DEVELOPMENT):
            raise ValueError(
                f"unknown build mode {mode!r}, expected"
                f" {PRODUCTION!r} or {DEVELOPMENT!r}"
            )
        self.mode = mode
        self.doc_suffix = doc_suffix
        self.index_name = index_name
        self.aggregate_name = aggregate_name
        self.lesson_url_root = lesson_url_root
        self.asset_url_root = asset_url_root

    @property
    def strict(self) -> bool:
        return self.mode == PRODUCTION

    def is_document(self, path) -> bool:
        return path.suffix.lower() == self.doc_suffix

    def artifact_name(self, path) -> str:
        """Return the output file name for a source file name."""
        if self.is_document(path):
            return path.with_suffix(".json").name
        return path.name

    @classmethod
    def from_env(cls, strict=False, dotenv_path=None):
        """Build settings from the environment (and a ``.env`` file)."""
        if dotenv_path is None:
            dotenv_path = find_dotenv(usecwd=True)
        if dotenv_path:
            load_dotenv(dotenv_path)
        if strict:
            return cls(mode=PRODUCTION)
        mode = os.environ.get(ENV_VAR) or os.environ.get("NODE_ENV")
        if mode is None:
            mode = DEVELOPMENT
        mode = mode.strip().lower()
        if mode != PRODUCTION:
            mode = DEVELOPMENT
        return cls(mode=mode)
