# sites/errors.py

class SiteError(Exception):
    """Base class for pipeline errors."""


class ValidationError(SiteError):
    """User input failed validation. Carries every invalid field at once.
    """
    def __init__(self, field_errors: dict):
        self.field_errors = dict(field_errors)
        super().__init__(f"invalid fields: {', '.join(sorted(self.field_errors))}")


class ProviderError(SiteError):
    """A content provider failed. Never surfaced to the submitter."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class DeploymentStrategyError(SiteError):
    """One deployment strategy failed; the orchestrator moves on to the next one."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        super().__init__(f"{strategy}: {message}")


class ConflictError(DeploymentStrategyError):
    """Subdomain already taken on the hosting side."""

    def __init__(self, strategy: str, name: str, attempted=None):
        self.name = name
        self.attempted = list(attempted or [])
        super().__init__(strategy, f"subdomain '{name}' is already taken")


class PersistenceError(SiteError):
    """StatusStore write failed after retries."""


class RenderError(SiteError):
    pass


class ModificationError(SiteError):
    pass


class SiteNotFoundError(SiteError):
    pass
