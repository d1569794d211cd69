import logging

logger = logging.getLogger(__name__)


class BuildError(Exception):
    """Base class for problems found while compiling the course tree."""

    def __init__(self, message, path=None, line=None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.line = line

    def __str__(self):
        if self.path is None:
            return self.message
        location = str(self.path)
        if self.line is not None:
            location += f":{self.line}"
        return f"{location}: {self.message}"


class MissingIndexDocument(BuildError):
    """A section directory has no ``_index.md`` of its own."""


class MissingReference(BuildError):
    """An image, link or include target does not exist."""


class AmbiguousReference(BuildError):
    """An include name matches more than one code file."""


class AnchorNotFound(BuildError):
    """The requested anchor has no ANCHOR/END pair in the code file."""


class FrontMatterError(BuildError):
    """The YAML block at the head of a document could not be parsed."""


# only these degrade to a warning outside of production
RECOVERABLE = (MissingIndexDocument, MissingReference)


def raise_or_warn(error, settings):
    """Apply the failure policy for ``error``.

    Strict builds raise every error.  Lenient builds log recoverable errors and
    return so the caller can fall back to a placeholder or leave the value
    unmodified.
    """
    if settings.strict or not isinstance(error, RECOVERABLE):
        raise error
    logger.warning("%s", error)
