"""Exception types raised across the report pipeline"""
from typing import Optional


RATE_LIMIT_MESSAGE = "API rate limit exceeded. Please try again later."


class ReportServiceError(Exception):
    """Base class for all report service errors"""


class LLMServiceError(ReportServiceError):
    """
    Error returned by the LLM provider.

    Carries the HTTP status code when the provider reported one so the
    gateway can tell rate limiting apart from other failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceededError(LLMServiceError):
    """LLM provider kept rate limiting after all retries were spent"""

    def __init__(self, message: str = RATE_LIMIT_MESSAGE):
        super().__init__(message, status_code=429)


class SchemaIntrospectionError(ReportServiceError):
    """Database schema could not be read"""


class NoTablesAvailableError(ReportServiceError):
    """The database exposes no tables to report on"""

    def __init__(self, message: str = "No tables available in the database"):
        super().__init__(message)


class QueryExecutionError(ReportServiceError):
    """A SQL statement failed or timed out"""

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


class ReportGenerationError(ReportServiceError):
    """The workflow stopped before producing a report"""

    def __init__(self, message: str, error_code: str = "WORKFLOW_ERROR"):
        super().__init__(message)
        self.error_code = error_code
