# app/errors.py
"""Classified pipeline errors.

Each error carries the HTTP status the API layer answers with. The status is
only used at the boundary; the pipeline itself matches on the class.
"""


class ListingOptimizerError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ListingOptimizerError):
    status_code = 400
    code = "validation_failed"


class ListingNotFound(ListingOptimizerError):
    status_code = 404
    code = "not_found"


class ListingBlocked(ListingOptimizerError):
    """The marketplace served a bot challenge instead of the product page."""
    status_code = 503
    code = "blocked"


class ExtractionFailed(ListingOptimizerError):
    """The page loaded but did not match any known listing structure."""
    status_code = 422
    code = "extraction_failed"


class TransportError(ListingOptimizerError):
    status_code = 502
    code = "transport_error"


class RewriteUnavailable(ListingOptimizerError):
    status_code = 503
    code = "rewrite_unavailable"


class OptimizationNotFound(ListingOptimizerError):
    status_code = 404
    code = "optimization_not_found"
