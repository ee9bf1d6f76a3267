"""Exception types raised by the quiz engine."""


class QuizEngineError(Exception):
    """Base class for engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationError(QuizEngineError):
    """Caller input rejected before any state change."""


class StaleSubmissionError(QuizEngineError):
    """Answer or rating for a slot the session has already moved past."""

    def __init__(self, message: str = "Submission is for a question that was already processed"):
        super().__init__(message)


class SessionNotFoundError(QuizEngineError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Quiz session not found: {session_id}")


class PersistenceError(QuizEngineError):
    """Storage failed; the enclosing transaction was rolled back."""
