class NewsBriefError(Exception):
    """Base class for all news_brief errors."""


class RSSFetchError(NewsBriefError):
    """Raised when an RSS/Atom feed cannot be fetched or parsed."""


class ConfigurationError(NewsBriefError):
    """Raised when a credential or setting required for a call is missing."""


class LLMError(NewsBriefError):
    """Raised when a language-model completion fails."""


class LLMTimeoutError(LLMError):
    """Raised when a language-model completion exceeds its timeout."""


class GenerationError(NewsBriefError):
    """Raised when the generation API rejects a request or a job fails."""


class NoHeadlinesError(NewsBriefError):
    """Raised when no headline survives fetching, so there is nothing to brief."""

    def __init__(self, message: str, warnings=None) -> None:
        super().__init__(message)
        self.warnings = list(warnings or [])
