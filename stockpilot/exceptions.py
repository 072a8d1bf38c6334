"""Analytics error taxonomy.

Callers map these onto HTTP statuses: ``DatabaseConnectionError`` -> 503,
``InsufficientDataError`` -> 400, ``InvalidWindowError`` -> 422.
"""


class AnalyticsError(Exception):
    """Base exception for analytics failures."""

    default_message = "Analytics error"
    code = "analytics_error"

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def __str__(self):
        return self.message

    def to_dict(self):
        error_dict = {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            error_dict["details"] = self.details
        return error_dict


class DatabaseConnectionError(AnalyticsError):
    """The persistence store could not be reached."""

    default_message = "Unable to connect to the database"
    code = "db_unavailable"


class InsufficientDataError(AnalyticsError):
    """No qualifying records exist for the requested window/tenant."""

    default_message = "Insufficient sales data for analysis"
    code = "insufficient_data"


class InvalidWindowError(AnalyticsError):
    """Non-positive or nonsensical day-count window."""

    default_message = "Analysis window must be a positive number of days"
    code = "invalid_window"
