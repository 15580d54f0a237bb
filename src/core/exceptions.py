class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class InvalidRequestError(DomainError):
    """Exception raised when a client request is well-formed JSON but unusable."""

    pass
