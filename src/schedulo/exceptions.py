"""Custom exceptions for the timetable scheduler."""


class SchedulerError(Exception):
    """Base exception for scheduler errors."""

    pass


class ConfigurationError(SchedulerError):
    """Scheduler configuration is malformed."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        location = f" ({field})" if field else ""
        super().__init__(f"Invalid configuration{location}: {message}")


class InsufficientDataError(SchedulerError):
    """A section cannot be placed because the loaded data rules it out."""

    def __init__(self, section_id: int, reason: str, message: str):
        self.section_id = section_id
        self.reason = reason
        self.details = message
        super().__init__(f"Section {section_id}: {message}")


class ConflictError(SchedulerError):
    """A cell was reserved twice or the schedule contains a double booking."""

    def __init__(self, kind: str, entity_id: object, day: int, slot: int, message: str | None = None):
        self.kind = kind
        self.entity_id = entity_id
        self.day = day
        self.slot = slot
        super().__init__(
            message
            or f"{kind} '{entity_id}' is already reserved on day {day} slot {slot}"
        )


class RepositoryError(SchedulerError):
    """Loading or persisting scheduling data failed."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        location = f" [{source}]" if source else ""
        super().__init__(f"Repository error{location}: {message}")
