class ActiveRecordError(Exception):
    """Base class for every error raised by the record mapper itself."""
    pass


class MisuseError(ActiveRecordError):
    """The caller asked for something the record's current state does not allow."""
    pass


class StaleRecordError(MisuseError):
    def __init__(self, table: str = ""):
        super().__init__(f"Record of '{table}' was deleted and can no longer be used.")


class ValidationError(ActiveRecordError):
    pass


class RecordNotFound(ActiveRecordError):
    def __init__(self, message="Query returned no matching record"):
        super().__init__(message)
