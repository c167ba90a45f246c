"""
Domain errors raised by services. Routes translate them to HTTP responses.
"""


class NobreHubError(Exception):
    """Base class for domain errors."""
    pass


class NotFoundError(NobreHubError):
    """A referenced lead, conversation or role does not exist."""
    pass


class LeadNotFoundError(NotFoundError):
    pass


class RoleNotFoundError(NotFoundError):
    pass


class NoEligibleAgentError(NobreHubError):
    """No active agent matches the pipeline's closer role."""
    pass


class LeadAlreadyAssignedError(NobreHubError):
    """The lead already has an agent (possibly claimed by a concurrent request)."""
    pass


class ValidationError(NobreHubError):
    """Missing required fields or malformed input."""
    pass


class InvalidPipelineError(ValidationError):
    pass
