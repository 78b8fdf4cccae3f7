"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input has a bad shape or is out of range"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class InvalidAmountError(ValidationError):
    """Monetary amount must be positive"""

    def __init__(self, field: str = "totalAmount", message: str = "Amount must be greater than zero"):
        super().__init__(field, message)


class InvalidPeriodCountError(ValidationError):
    """Period count is outside the allowed range"""

    def __init__(self, message: str = "Number of installments is invalid"):
        super().__init__("installments", message)


class InvalidDayOfMonthError(ValidationError):
    """Day of month must be between 1 and 31"""

    def __init__(self, field: str = "paymentDay"):
        super().__init__(field, "Day of month must be between 1 and 31")


class InvalidPeriodError(ValidationError):
    """Calendar period (month/year) is malformed"""

    def __init__(self, field: str, message: str):
        super().__init__(field, message)


class NotFoundError(DomainException):
    """Unknown id, or an id not owned by the caller"""

    pass


class UnauthorizedError(DomainException):
    """Missing or invalid owner context"""

    pass


class StateConflictError(DomainException):
    """Operation would regress or re-issue recorded progress"""

    code = "state_conflict"


class AlreadyCompleteError(StateConflictError):
    """Every period of the plan is already paid"""

    code = "already_complete"


class AlreadyCancelledError(StateConflictError):
    """Plan was already cancelled"""

    code = "already_cancelled"


class PlanCancelledError(StateConflictError):
    """Cancelled plans accept no further payments"""

    code = "plan_cancelled"


class InvalidTargetError(StateConflictError):
    """Target paid count does not move the plan forward"""

    code = "invalid_target"


class ScheduleLockedError(StateConflictError):
    """Scheduling fields cannot change once payments are recorded"""

    code = "schedule_locked"


class AlreadyGeneratedError(StateConflictError):
    """A transaction already exists for this calendar period"""

    code = "already_generated"


class InactiveDefinitionError(StateConflictError):
    """Recurring expense is inactive"""

    code = "inactive"


class ConcurrentModificationError(DomainException):
    """Another request changed the same record first"""

    pass


class PersistenceError(DomainException):
    """Storage failure"""

    pass
