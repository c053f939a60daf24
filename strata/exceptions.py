"""Custom exception hierarchy for strata."""


class StrataError(Exception):
    """Base for all migration orchestrator errors."""


class ConfigError(StrataError):
    """A target or marker version directive is malformed."""


class DiscoveryError(StrataError):
    """A migration descriptor could not be parsed or collides with another."""


class UnitNotFoundError(StrataError):
    """No migration unit with the given identifier exists in the catalog."""


class UnitFailure(StrataError):
    """A migration unit reported failure or returned an invalid outcome."""


class PersistenceFailure(StrataError):
    """Writing the audit record or a version marker failed."""


class FatalAbort(StrataError):
    """The host process must stop instead of serving traffic."""

    def __init__(self, message: str, exit_code: int = 1, report=None) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.report = report
