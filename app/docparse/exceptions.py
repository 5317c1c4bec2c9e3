"""
Error taxonomy shared by the extraction pipeline and the HTTP layer.

Every exception carries an ``error_type`` that is reported to clients
verbatim in ``{"success": false, "error": {"message", "type"}}``.
"""


class DocParseError(Exception):
    """Base class for all errors surfaced to API clients."""

    error_type = "api_error"

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.fields = fields


class SchemaValidationError(DocParseError):
    """Raised when a schema or request is malformed (e.g. duplicate names)."""

    error_type = "validation_error"


class DocumentProcessingError(DocParseError):
    """Raised when a document cannot be decrypted, rendered or accepted."""

    error_type = "document_processing_error"


class ProviderError(DocParseError):
    """Raised when the AI provider call fails or is misconfigured."""

    error_type = "api_error"


class NetworkError(ProviderError):
    """Raised when the provider cannot be reached."""

    error_type = "network_error"


class SchemaMismatchError(ProviderError):
    """Raised when the model's answer does not satisfy the output contract."""

    error_type = "validation_error"
