"""Exception hierarchy for the recurring-document scheduler."""


class SchedulerError(Exception):
    """Base class for every error raised by the scheduler core."""


class InvalidPolicyInput(SchedulerError, ValueError):
    """Bad month or unknown day-selection policy handed to the calendar."""


class InvalidTemplate(SchedulerError, ValueError):
    """A recurring template is missing required fields or is inconsistent."""


class InvalidScopeForRecord(SchedulerError):
    """The requested edit/delete scope does not fit the record's linkage."""

    def __init__(self, occurrence_id, scope):
        self.occurrence_id = occurrence_id
        self.scope = scope
        super().__init__(
            f"Occurrence {occurrence_id} is detached from its series; "
            f"scope {scope} is not allowed."
        )


class PartialBatchFailure(SchedulerError):
    """A series-wide mutation stopped after changing only part of the batch."""

    def __init__(self, affected: int, intended: int, message: str = ""):
        self.affected = affected
        self.intended = intended
        super().__init__(
            message or f"Batch stopped after {affected} of {intended} records."
        )


class TemplateNotFound(SchedulerError, LookupError):
    pass


class OccurrenceNotFound(SchedulerError, LookupError):
    pass
