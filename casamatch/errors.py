"""Error taxonomy for the ingestion -> matching -> task pipeline."""


class CasamatchError(Exception):
    """Base exception for casamatch."""
    pass


class IngestionAlreadyRunning(CasamatchError):
    """A second ingestion run was requested while one is active. Fails fast, never queues."""
    pass


class SourceFailure(CasamatchError):
    """A source adapter failed, timed out, or reported itself unavailable."""

    def __init__(self, portal: str, message: str):
        super().__init__(f"{portal}: {message}")
        self.portal = portal


class NormalizationError(CasamatchError, ValueError):
    """A raw record is missing fields the canonical listing requires."""
    pass


class PersistenceFailure(CasamatchError):
    """Writing a single listing to storage failed."""

    def __init__(self, source_id: str, message: str):
        super().__init__(f"{source_id}: {message}")
        self.source_id = source_id


class DispatchFailure(CasamatchError):
    """An outbound message could not be delivered."""
    pass
