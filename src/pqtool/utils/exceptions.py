class PqToolError(Exception):
    """
    Base exception for all pqtool errors.
    Every subclass renders as a single-line, user-facing message.
    """
    pass


class NotFound(PqToolError):
    """
    Raised when a path or glob pattern resolves to no readable file
    """
    pass


class NotAFileFormatMatch(PqToolError):
    """
    Raised when a file does not carry Parquet magic bytes
    """
    pass


class CorruptFooter(PqToolError):
    """
    Raised when file metadata cannot be decoded
    """
    pass


class CorruptRowGroup(PqToolError):
    """
    Raised when row-group data cannot be decoded or disagrees with the footer
    """
    pass


class SchemaMismatch(PqToolError):
    """
    Raised when files that must share a schema do not
    """

    def __init__(self, path: str, column: str, detail: str):
        self.path = path
        self.column = column
        self.detail = detail
        super().__init__(
            f"Schema mismatch in {path}: column '{column}' {detail}"
        )


class UnsupportedCellType(PqToolError):
    """
    Raised when a value cannot be represented in the requested output format
    """

    def __init__(self, column: str, output_format: str, type_name: str):
        self.column = column
        self.output_format = output_format
        super().__init__(
            f"Column '{column}' holds {type_name} values, "
            f"which cannot be written as {output_format}"
        )


class UpstreamQueryError(PqToolError):
    """
    Raised with the query engine's message, unmodified
    """
    pass


class UnsupportedFormat(PqToolError):
    pass


class ColumnNotFound(PqToolError):
    def __init__(self, column: str, available):
        self.column = column
        super().__init__(
            f"Column not found: {column} (available columns: {', '.join(available)})"
        )


class WriteFailed(PqToolError):
    pass


class OperationAborted(PqToolError):
    """
    Raised when a multi-file operation is stopped before every file finished
    """
    pass


class InvalidConfig(PqToolError):
    pass
