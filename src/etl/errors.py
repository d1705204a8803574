"""Error taxonomy for warehouse jobs."""


class WarehouseError(Exception):
    """Base class for warehouse errors."""
    pass


class JobExecutionFailure(WarehouseError):
    """Unexpected error inside a job body. Fatal to the job only."""

    def __init__(self, job_name: str, cause: BaseException):
        super().__init__(f"Job '{job_name}' failed: {cause}")
        self.job_name = job_name
        self.cause = cause


class JobAlreadyRunningError(WarehouseError):
    """Raised when a job is claimed while another invocation is unterminated."""

    def __init__(self, job_name: str, audit_id: int = None):
        super().__init__(f"Job '{job_name}' is already running (audit_id={audit_id})")
        self.job_name = job_name
        self.audit_id = audit_id


class StaleVersionError(WarehouseError):
    """Raised when the current dimension version changed under an SCD2 close."""

    def __init__(self, table: str, natural_key: str):
        super().__init__(f"{table}: current version of '{natural_key}' changed concurrently")
        self.table = table
        self.natural_key = natural_key


class UnknownJobError(WarehouseError):
    """Raised for a job name the orchestrator does not know."""
    pass


# Quarantine reasons. Recovered locally, never raised.
REFERENTIAL_VIOLATION = 'referential'
VALIDATION_VIOLATION = 'validation'
