"""
Lambda helpers: event parsing, environment validation and secrets.
"""

from .config import configure_secrets, validate_environment
from .event_parser import extract_records, parse_record
from .exceptions import MessageParseError

__all__ = [
    "MessageParseError",
    "configure_secrets",
    "extract_records",
    "parse_record",
    "validate_environment",
]
