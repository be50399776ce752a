class InterviewError(Exception):
    """Base class for failures the session layer reports back to its caller."""

    code = "interview_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class AuthenticationFailure(InterviewError):
    code = "unauthorized"


class UserNotFound(InterviewError):
    code = "user_not_found"


class BudgetExceeded(InterviewError):
    code = "budget_exceeded"


class SessionConflict(InterviewError):
    code = "session_conflict"


class RateLimited(InterviewError):
    code = "rate_limited"

    def __init__(self, message: str = "", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = max(0.0, float(retry_after or 0.0))


class SessionDurationExceeded(InterviewError):
    code = "max_duration"


class GenerationFailure(InterviewError):
    code = "generation_failed"
