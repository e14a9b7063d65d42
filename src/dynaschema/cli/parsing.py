"""Parsers for the compact argument syntaxes accepted by the CLI."""

from typing import Any

FIELD_SPEC_FORMAT = "name:type[:required][:unique]"
FIELD_MODIFIERS = ("required", "unique")


def parse_field_spec(spec: str) -> dict[str, Any]:
    """Turn ``name:type[:required][:unique]`` into a field dict.

    ``"customer_id:guid:required"`` becomes
    ``{"name": "customer_id", "type": "guid", "required": True, "unique": False}``.

    Raises:
        ValueError: On a missing name or type, or an unknown modifier
    """
    name, _, rest = spec.partition(":")
    field_type, _, modifiers = rest.partition(":")
    if not name or not field_type:
        raise ValueError(f"Invalid field spec: '{spec}'. Expected format: {FIELD_SPEC_FORMAT}")

    flags = dict.fromkeys(FIELD_MODIFIERS, False)
    for modifier in filter(None, modifiers.split(":")):
        if modifier not in flags:
            raise ValueError(
                f"Invalid modifier: '{modifier}'. Supported: {', '.join(FIELD_MODIFIERS)}"
            )
        flags[modifier] = True

    return {"name": name, "type": field_type, **flags}


def parse_endpoint(spec: str) -> tuple[str, str]:
    """Split ``Entity.field`` into its two names.

    Raises:
        ValueError: Unless the spec holds exactly one dot between two names
    """
    parts = spec.split(".")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid endpoint: '{spec}'. Expected format: Entity.field")
    return parts[0], parts[1]
