class IngestionError(Exception):
    """
    Base class for failures of a single config record.

    These never escape the per-record boundary of the dispatcher; they are
    converted into a failed IngestOutcome carrying `kind`.
    """
    retryable: bool = False

    @property
    def kind(self) -> str:
        return type(self).__name__


class TemplateResolutionError(IngestionError):
    pass


class UnsupportedTypeError(IngestionError):
    pass


class SourceNotFoundError(IngestionError):
    retryable = True


class SourceReadError(IngestionError):
    retryable = True


class SourceParseError(IngestionError):
    """The source file exists but its content cannot be parsed as configured."""


class UnsupportedSourceError(IngestionError):
    pass


class SchemaApplicationError(IngestionError):
    pass


class WriteError(IngestionError):
    retryable = True


class RecordTimeoutError(IngestionError):
    pass


class ConfigurationError(Exception):
    """Run-level configuration problems. These abort the run before dispatch."""


class ConfigLoadError(ConfigurationError):
    pass


class DuplicateSystemNameError(ConfigurationError):
    pass


class SecretNotFoundError(ConfigurationError):
    pass
