"""Error kinds raised by the build pipeline"""


class PipelineError(Exception):
    """Base class for errors recorded against a document or a build."""
    kind = "PipelineError"

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class MetadataError(PipelineError):
    """Malformed front-matter: unterminated block, bad YAML, or a mistyped field."""
    kind = "MetadataError"


class RenderError(PipelineError):
    """Malformed markdown structure (unterminated fence, table column mismatch)."""
    kind = "RenderError"


class AssetError(PipelineError):
    """A document references a static asset that cannot be found."""
    kind = "AssetError"


class OutputError(PipelineError):
    """Writing to the output root failed; the build is aborted."""
    kind = "IOError"


class BuildLockedError(PipelineError):
    """Another build run holds the output root."""
    kind = "BuildLockedError"


class BuildCancelled(PipelineError):
    kind = "BuildCancelled"


class PublishError(PipelineError):
    """The deployment target reported a failure."""
    kind = "PublishError"


def error_kind(exc: BaseException) -> str:
    """Return the report label for an exception caught at the document boundary."""
    if isinstance(exc, PipelineError):
        return exc.kind
    if isinstance(exc, OSError):
        return "IOError"
    return type(exc).__name__
