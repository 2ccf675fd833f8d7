"""Input validation for tool arguments and SOQL building"""
import re
from typing import Optional


class ValidationError(Exception):
    """Raised when a tool argument is rejected before any API call"""
    pass


RECORD_ID_PATTERN = re.compile(r'^[a-zA-Z0-9]{15}([a-zA-Z0-9]{3})?$')
API_NAME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9_]*$')
HTTP_METHODS = ('GET', 'POST', 'PATCH', 'DELETE')


def validate_api_name(name: str, max_length: int = 80) -> bool:
    """
    Validate a Salesforce API name (object, class, trigger or page name).

    Rules:
    - Must start with a letter
    - Letters, numbers and underscores only (covers __c, __mdt, ... suffixes)
    - At most ``max_length`` characters

    Raises:
        ValidationError: If validation fails
    """
    if not name:
        raise ValidationError("API name cannot be empty")

    if len(name) > max_length:
        raise ValidationError(f"API name too long (max {max_length} chars): {name}")

    if not API_NAME_PATTERN.match(name):
        raise ValidationError(
            f"API name must start with a letter and contain only letters, numbers, underscore: {name}"
        )

    return True


def validate_record_id(record_id: str) -> bool:
    """
    Validate a 15 or 18 character Salesforce record ID.

    Raises:
        ValidationError: If validation fails
    """
    if not record_id:
        raise ValidationError("Record ID cannot be empty")

    if not RECORD_ID_PATTERN.match(record_id):
        raise ValidationError(f"Record ID must be 15 or 18 alphanumeric characters: {record_id}")

    return True


def validate_limit(limit: int, maximum: int, minimum: int = 1) -> bool:
    if limit < minimum or limit > maximum:
        raise ValidationError(f"limit must be between {minimum} and {maximum}, got {limit}")
    return True


def validate_soql_query(query: str) -> bool:
    """
    Reject obviously unusable SOQL before it reaches Salesforce.

    The text itself is passed through verbatim; Salesforce does the parsing.

    Raises:
        ValidationError: If the query is empty or is not a SELECT
    """
    if not query or not query.strip():
        raise ValidationError("SOQL query cannot be empty")

    if not query.strip().upper().startswith('SELECT'):
        raise ValidationError("SOQL query must start with SELECT")

    if query.count('(') != query.count(')'):
        raise ValidationError("SOQL query has unbalanced parentheses")

    return True


def validate_http_method(method: str) -> str:
    method = method.upper()
    if method not in HTTP_METHODS:
        raise ValidationError(f"HTTP method must be one of {', '.join(HTTP_METHODS)}: {method}")
    return method


def soql_quote(value: str) -> str:
    """Escape a value for use inside a single-quoted SOQL string literal."""
    return value.replace('\\', '\\\\').replace("'", "\\'")


def soql_like(value: Optional[str]) -> str:
    """Escape a value for a ``LIKE '%...%'`` pattern, including its wildcards."""
    if not value:
        return ''
    return soql_quote(value).replace('%', '\\%').replace('_', '\\_')


SOQL_DATETIME_PATTERN = re.compile(
    r'^(\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:?\d{2}))?|[A-Z_]+(:\d+)?)$'
)


def validate_soql_datetime(value: str) -> str:
    """
    Accept an ISO date/datetime or a SOQL date literal (TODAY, LAST_N_DAYS:7).

    These values are interpolated unquoted, so anything else is rejected.
    """
    if not SOQL_DATETIME_PATTERN.match(value):
        raise ValidationError(f"Not a SOQL date or datetime literal: {value}")
    return value
