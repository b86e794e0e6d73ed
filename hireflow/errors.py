"""
Exception hierarchy shared by the pipeline, stores and routes.

Routes translate these into HTTP responses; nothing below the API layer
raises HTTPException.
"""


class HireFlowError(Exception):
    """Base class for domain errors."""


# Validation -----------------------------------------------------------------


class ValidationFailure(HireFlowError):
    """Input rejected before any state changed."""


class InvalidReasonError(ValidationFailure):
    def __init__(self, min_length: int):
        super().__init__(f"A reason of at least {min_length} characters is required")
        self.min_length = min_length


class ConfirmationMismatchError(ValidationFailure):
    def __init__(self, expected: str):
        super().__init__(f'Type "{expected}" to confirm')
        self.expected = expected


class EmptySelectionError(ValidationFailure):
    def __init__(self, message: str = "No candidates selected"):
        super().__init__(message)


class NoPendingChangeError(ValidationFailure):
    def __init__(self):
        super().__init__("There is no pending stage change to confirm")


class MessageValidationError(ValidationFailure):
    """Subject or body missing from an outgoing message."""


class CandidateImportError(ValidationFailure):
    """The uploaded file or its column mapping cannot be used."""


# Lookup ---------------------------------------------------------------------


class CampaignNotFoundError(HireFlowError):
    def __init__(self, campaign_id: str):
        super().__init__(f"Campaign not found: {campaign_id}")
        self.campaign_id = campaign_id


class CandidateNotFoundError(HireFlowError):
    def __init__(self, candidate_id: str):
        super().__init__(f"Candidate not found: {candidate_id}")
        self.candidate_id = candidate_id


class UnknownStageError(HireFlowError):
    def __init__(self, stage_ref: str):
        super().__init__(f"Unknown stage: {stage_ref}")
        self.stage_ref = stage_ref


# Persistence ----------------------------------------------------------------


class PersistenceError(HireFlowError):
    """A store write failed. In-memory state has been rolled back."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


class CorruptRecordError(HireFlowError):
    """A persisted record failed schema validation."""

    def __init__(self, record_id: str | None, detail: str):
        super().__init__(f"Stored record {record_id or '<unknown>'} is malformed: {detail}")
        self.record_id = record_id
        self.detail = detail
