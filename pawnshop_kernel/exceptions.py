"""
Typed exception hierarchy for the pawnshop worker.

Every exception carries a class-level ``code`` (machine-readable, stable
across message rewording) and stores its context as attributes so the
structured log formatter can emit it field by field.

    PawnshopError (base)
    |
    +-- RepositoryError
    |   +-- LoanNotFoundError
    |   +-- CustomerNotFoundError
    |
    +-- LoanError
    |   +-- InvalidStatusTransitionError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- NotificationError
    |
    +-- SchedulerError
    |   +-- DuplicateJobError
    |   +-- JobNotFoundError
    |   +-- JobCancelledError
    |
    +-- ScheduleError
    |   +-- InvalidScheduleError
    |
    +-- ConfigurationError

Jobs treat ``RepositoryError`` raised by a bulk fetch as an infrastructure
failure of the whole run. The same error raised while handling one loan is a
per-record failure: it is logged with the loan id and the batch continues.
"""


class PawnshopError(Exception):
    """Base exception for all pawnshop worker errors."""

    code: str = "PAWNSHOP_ERROR"


# Repository errors


class RepositoryError(PawnshopError):
    """A data-access call failed outright (connection, SQL, driver)."""

    code: str = "REPOSITORY_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Repository operation {operation} failed: {detail}")


class LoanNotFoundError(RepositoryError):
    """Loan with the given id does not exist."""

    code: str = "LOAN_NOT_FOUND"

    def __init__(self, loan_id: int):
        self.loan_id = loan_id
        PawnshopError.__init__(self, f"Loan not found: {loan_id}")


class CustomerNotFoundError(RepositoryError):
    """Customer with the given id does not exist."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: int):
        self.customer_id = customer_id
        PawnshopError.__init__(self, f"Customer not found: {customer_id}")


# Loan lifecycle errors


class LoanError(PawnshopError):
    """Base exception for loan lifecycle errors."""

    code: str = "LOAN_ERROR"


class InvalidStatusTransitionError(LoanError):
    """Requested status change would move a loan backwards or out of a terminal state."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, loan_id: int, from_status: str, to_status: str):
        self.loan_id = loan_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Loan {loan_id} cannot move from {from_status} to {to_status}"
        )


# Concurrency errors


class ConcurrencyError(PawnshopError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: int | str, expected: object = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected = expected
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another writer"
        )


# Notification errors


class NotificationError(PawnshopError):
    """Notification could not be recorded or dispatched."""

    code: str = "NOTIFICATION_ERROR"

    def __init__(self, customer_id: int, notification_type: str, detail: str):
        self.customer_id = customer_id
        self.notification_type = notification_type
        self.detail = detail
        super().__init__(
            f"Failed to send {notification_type} to customer {customer_id}: {detail}"
        )


# Scheduler errors


class SchedulerError(PawnshopError):
    """Base exception for scheduler errors."""

    code: str = "SCHEDULER_ERROR"


class DuplicateJobError(SchedulerError):
    """A job with the same name is already registered."""

    code: str = "DUPLICATE_JOB"

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f"Job '{job_name}' is already registered")


class JobNotFoundError(SchedulerError):
    """No job is registered under the given name."""

    code: str = "JOB_NOT_FOUND"

    def __init__(self, job_name: str, available: tuple[str, ...] = ()):
        self.job_name = job_name
        self.available = available
        super().__init__(
            f"No job registered as '{job_name}'. Available: {sorted(available)}"
        )


class JobCancelledError(SchedulerError):
    """Execution context was cancelled (shutdown or timeout)."""

    code: str = "JOB_CANCELLED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Job execution cancelled: {reason}")


class ScheduleError(PawnshopError):
    """Base exception for schedule expression errors."""

    code: str = "SCHEDULE_ERROR"


class InvalidScheduleError(ScheduleError):
    """Schedule expression or duration literal cannot be used."""

    code: str = "INVALID_SCHEDULE"

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid schedule '{expression}': {reason}")


# Configuration errors


class ConfigurationError(PawnshopError):
    """Worker configuration is missing or malformed."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
