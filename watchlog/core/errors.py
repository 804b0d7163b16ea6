class AIFilterError(RuntimeError):
    """Base class for failures raised by the AI filter pipeline."""


class PromptValidationError(AIFilterError):
    pass


class ConfigurationError(AIFilterError):
    """A credential required by the chosen strategy is not configured."""


class UpstreamQuotaError(AIFilterError):
    """The language model rejected the call for rate or usage reasons."""


class UpstreamUnavailableError(AIFilterError):
    pass


class MalformedResponseError(AIFilterError):
    """The language model answered with something other than a JSON id list."""
