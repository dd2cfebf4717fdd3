class LogSleuthError(Exception):
    """Base class for analysis errors."""


class EmptyInputError(LogSleuthError, ValueError):
    """Raised when the log text is empty or blank after normalization."""


# Recoverable: the invoker retries these and the pipeline falls back once attempts run out.
class AIInvocationError(LogSleuthError):
    pass


class InvocationTimeoutError(AIInvocationError, TimeoutError):
    pass


class TransportError(AIInvocationError):
    pass


class MalformedResponseError(AIInvocationError):
    pass
