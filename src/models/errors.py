"""Domain exceptions."""


class BacklinkEngineError(Exception):
    """Base class for errors raised by the pipeline."""


class ProspectNotFoundError(BacklinkEngineError):
    """Raised when a prospect id or domain does not exist."""


class DuplicateProspectError(BacklinkEngineError):
    """Raised when creating a prospect whose domain already exists.

    Surfaced to the caller as a conflict; never retried automatically.
    """

    def __init__(self, domain: str, existing_id: int | None = None):
        self.domain = domain
        self.existing_id = existing_id
        super().__init__(f"Prospect already exists for domain {domain}")


class EnrollmentConflictError(BacklinkEngineError):
    """Raised when a prospect already has an active or completed enrollment."""

    def __init__(self, prospect_id: int, enrollment_id: int | None = None):
        self.prospect_id = prospect_id
        self.enrollment_id = enrollment_id
        super().__init__(f"Prospect {prospect_id} is already enrolled")


class InvalidTransitionError(BacklinkEngineError):
    """Raised when the pipeline attempts a status change it does not own."""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Cannot move prospect from {from_status} to {to_status}")
