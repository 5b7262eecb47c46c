"""
Validation helpers for user-supplied form input.

Field errors are collected into a ValidationResult so forms can show a
message next to each field and block submission until corrected.
"""

import re
from dataclasses import dataclass
from typing import Dict, List
from urllib.parse import urlparse


INVALID_INSTANCE_URL = "Please provide a valid instance URL."

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


@dataclass
class FieldError:
    """Represents a validation error with field and message."""
    field: str
    message: str


class ValidationResult:
    """Container for validation results."""

    def __init__(self):
        self.errors: List[FieldError] = []

    def add_error(self, field: str, message: str):
        """Add a validation error."""
        self.errors.append(FieldError(field, message))

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def as_dict(self) -> Dict[str, str]:
        """First message per field, in insertion order."""
        result: Dict[str, str] = {}
        for error in self.errors:
            result.setdefault(error.field, error.message)
        return result


def is_url(value: str) -> bool:
    """Check that value is an absolute http(s) URL with a plausible host."""
    if not value or any(c.isspace() for c in value):
        return False

    try:
        parsed = urlparse(value)
        port = parsed.port
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https"):
        return False

    host = parsed.hostname
    if not host:
        return False
    if port is not None and not 0 < port < 65536:
        return False
    if host == "localhost":
        return True

    labels = host.split(".")
    if len(labels) < 2:
        return False
    return all(_HOSTNAME_LABEL.match(label) for label in labels)


def validate_instance_url(instance_url: str, required: bool = False) -> ValidationResult:
    """
    Validate the instance URL field of the connect form.

    Change-time validation passes required=False so an empty field is not
    reported while the user is still typing; submit-time validation passes
    required=True.
    """
    result = ValidationResult()
    if not instance_url:
        if required:
            result.add_error("instance_url", INVALID_INSTANCE_URL)
        return result

    if not is_url(instance_url):
        result.add_error("instance_url", INVALID_INSTANCE_URL)
    return result
