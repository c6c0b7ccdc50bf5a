"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class SchemaViolation(PipelineError):
    """Raised when a document does not match its structural schema."""

    error_code = "SCHEMA_VIOLATION"

    def __init__(self, kind: str, issues: list[str]) -> None:
        self.kind = kind
        self.issues = list(issues)
        preview = "; ".join(self.issues[:5])
        more = f" (+{len(self.issues) - 5} more)" if len(self.issues) > 5 else ""
        super().__init__(f"{kind} document failed validation: {preview}{more}")


class DocumentParseError(PipelineError):
    """Raised when a fetched document cannot be parsed at all."""

    error_code = "DOCUMENT_PARSE_ERROR"
