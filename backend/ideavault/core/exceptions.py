class IdeaVaultError(Exception):
    """Base exception for the Ideas Vault backend."""

    pass


class SessionNotFoundError(IdeaVaultError):
    """Raised when a discovery session id does not exist (or belongs to another owner)."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Discovery session '{session_id}' not found")


class SessionNotActiveError(IdeaVaultError):
    """Raised when a conversational operation targets a completed or skipped session."""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Discovery session '{session_id}' is {status}, not active")


class StorageError(IdeaVaultError):
    """Raised when the session store fails. Nothing was committed."""

    pass


class ModelRequestFailedError(IdeaVaultError):
    """Raised when the model provider fails or times out."""

    pass


class SynthesisParseError(IdeaVaultError):
    """Raised when model output is not a valid synthesis document.

    Recoverable: a conversational turn swallows it and stays in the synthesis phase.
    """

    pass


class SynthesisFailedError(IdeaVaultError):
    """Raised when a forced synthesis could not produce a valid document."""

    pass


class ConcurrencyConflictError(IdeaVaultError):
    """Raised when another operation holds or has changed the session.

    Callers should retry the whole operation against a fresh read.
    """

    def __init__(self, session_id: str, reason: str = "session is busy"):
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Concurrency conflict on session '{session_id}': {reason}")
