"""Exceptions raised by the analytics services.

Only caller errors are exceptions. Not having enough data for a computation
is reported by returning ``None`` (or an empty default), never by raising.
"""


class InvalidInputError(ValueError):
    """Raised when a caller passes a value no computation can accept.

    Examples are a non-positive threshold, or a 400m time trial that is not
    slower than the 200m trial. Routers map this to HTTP 400.
    """
    pass
