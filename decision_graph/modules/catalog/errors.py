from __future__ import annotations


class DataLoadError(RuntimeError):
    """Raised when the decision dataset cannot be fetched, parsed or validated."""

    def __init__(self, message: str, *, error_kind: str, source: str | None = None):
        super().__init__(message)
        self.error_kind = str(error_kind)
        self.source = source


DATA_LOAD_NOT_FOUND = "DATA_LOAD_NOT_FOUND"
DATA_LOAD_READ = "DATA_LOAD_READ"
DATA_LOAD_NETWORK = "DATA_LOAD_NETWORK"
DATA_LOAD_HTTP_STATUS = "DATA_LOAD_HTTP_STATUS"
DATA_LOAD_JSON_PARSE = "DATA_LOAD_JSON_PARSE"
DATA_LOAD_SHAPE = "DATA_LOAD_SHAPE"
DATA_LOAD_SCHEMA_VALIDATE = "DATA_LOAD_SCHEMA_VALIDATE"
