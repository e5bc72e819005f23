class ValidationError(ValueError):
    """Raised when a caller violates a precondition of a core operation."""
