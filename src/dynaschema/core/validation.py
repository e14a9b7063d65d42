"""Format checks for names and labels.

Pure functions: they never raise, they return the list of problems found.
"""

from __future__ import annotations

import re

from dynaschema.core.types import ErrorModel

# Physical names get a four character prefix (rec_, rel_); PostgreSQL
# truncates identifiers longer than 63 characters.
MAX_NAME_LENGTH = 59
MAX_LABEL_LENGTH = 200

NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def validate_name(name: str | None, field: str = "name") -> list[ErrorModel]:
    """Check that a name is usable as an identifier.

    Args:
        name: Candidate name
        field: Attribute name reported on errors

    Returns:
        List of format errors (empty when valid)
    """
    errors: list[ErrorModel] = []

    if name is None or not name.strip():
        errors.append(ErrorModel(field=field, value=name, message="Name is required!"))
        return errors

    if len(name) > MAX_NAME_LENGTH:
        errors.append(
            ErrorModel(
                field=field,
                value=name,
                message=f"The length of Name must be less or equal than {MAX_NAME_LENGTH} "
                "characters!",
            )
        )

    if not NAME_PATTERN.match(name) or "__" in name or name.endswith("_"):
        errors.append(
            ErrorModel(
                field=field,
                value=name,
                message="Name can only contain underscores and alphanumeric characters. "
                "It must begin with a letter, not include spaces, not end with an "
                "underscore, and not contain two consecutive underscores.",
            )
        )

    return errors


def validate_label(label: str | None, field: str = "label") -> list[ErrorModel]:
    """Check that a display label is present and not too long."""
    errors: list[ErrorModel] = []

    if label is None or not label.strip():
        errors.append(ErrorModel(field=field, value=label, message="Label is required!"))
        return errors

    if len(label) > MAX_LABEL_LENGTH:
        errors.append(
            ErrorModel(
                field=field,
                value=label,
                message=f"The length of Label must be less or equal than {MAX_LABEL_LENGTH} "
                "characters!",
            )
        )

    return errors
