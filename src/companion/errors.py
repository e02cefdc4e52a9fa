"""Exception hierarchy for the Eiven companion."""


class EivenError(Exception):
    """Base class for companion errors."""


class AuthenticationError(EivenError):
    """Raised when an operation needs a signed-in user and there is none."""


class ConversationNotFoundError(EivenError, KeyError):
    """Raised when a conversation id is not present in the store."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation '{conversation_id}' not found")

    def __str__(self) -> str:
        return self.args[0]


class CompletionError(EivenError):
    """The completion API call failed and should not be retried."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class CompletionUnavailableError(CompletionError):
    """Retries against the completion API were exhausted."""

    def __init__(self, message: str, *, attempts: int, status_code: int | None = None) -> None:
        self.attempts = attempts
        super().__init__(message, status_code=status_code)


class EmptyCompletionError(CompletionError):
    """The completion API answered but returned no usable content."""
