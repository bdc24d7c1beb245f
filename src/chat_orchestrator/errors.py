"""
Exceptions raised by the chat orchestrator.

Configuration problems (unknown handler, unknown tool, duplicate registration)
are hard errors and are never retried. Availability and turn failures are
raised from the orchestration loop.
"""


class ChatOrchestratorError(Exception):
    """Base class for all chat orchestrator errors."""


class ConfigurationError(ChatOrchestratorError, ValueError):
    """Invalid chat configuration."""


class UnknownContextHandlerError(ChatOrchestratorError, LookupError):
    """A context source referenced a handler that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Context handler '{name}' is not registered")


class DuplicateContextHandlerError(ChatOrchestratorError, ValueError):
    """A context handler name was registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Context handler '{name}' is already registered")


class UnknownToolError(ChatOrchestratorError, LookupError):
    """A tool name or wildcard did not resolve to any registered tool."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No registered tool matches '{name}'")


class DuplicateToolError(ChatOrchestratorError, ValueError):
    """A tool name was registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f'Tool "{name}" is already registered')


class NoClientAvailableError(ChatOrchestratorError, RuntimeError):
    """No online client could be obtained for a model."""

    def __init__(self, model: str, attempts: int):
        self.model = model
        self.attempts = attempts
        super().__init__(
            f"No online client found for model {model} after {attempts} attempts"
        )


class ChatTurnError(ChatOrchestratorError, RuntimeError):
    """The model call failed; the turn was aborted before being committed."""

    def __init__(self, model: str, cause: BaseException):
        self.model = model
        super().__init__(
            f"Chat request to {model} failed: {cause}. "
            "The turn was not saved and prior chat history was not lost."
        )


class CompactionError(ChatOrchestratorError, RuntimeError):
    """The summarization call failed; the existing history was kept as is."""

    def __init__(self, model: str, cause: BaseException):
        self.model = model
        super().__init__(
            f"Compaction with {model} failed: {cause}. "
            "The conversation history was left unchanged."
        )
