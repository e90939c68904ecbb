"""
Enum Utilities for VARCHAR-based Status Fields

STORAGE STANDARD:
━━━━━━━━━━━━━━━━━
• Database: VARCHAR(50) - NOT PostgreSQL ENUM
• SQLAlchemy: String(50) with Mapped[str]
• Pydantic: Python Enum for API validation
• Case: All enum values stored in UPPERCASE

Asset tags follow the same rule: trimmed and stored in UPPERCASE, so a tag
read as " ab-001 " and one read as "AB-001" are the same asset.

USAGE PATTERNS:
━━━━━━━━━━━━━━━
1. Writing a status:
   activity.status = get_enum_value(ActivityStatus.COMPLETED)

2. Comparing a stored status:
   if is_status(activity.status, ActivityStatus.IN_PROGRESS): ...

3. Reading back into an enum:
   status = to_enum(activity.status, ActivityStatus)
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Type


T = TypeVar('T', bound=Enum)


def get_enum_value(value: Any) -> Optional[str]:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(ActivityStatus.COMPLETED)
        'COMPLETED'
        >>> get_enum_value("COMPLETED")
        'COMPLETED'
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def to_enum(value: Any, enum_class: Type[T]) -> Optional[T]:
    """
    Convert a stored string to an enum instance, or None if it is not a member.
    """
    if value is None:
        return None
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(value)
    except (ValueError, KeyError):
        return None


def enum_comment(enum_class: Type[Enum]) -> str:
    """
    Generate a comment string for a VARCHAR column.

    Examples:
        >>> enum_comment(AssetStatus)
        'IN_USE, IN_STORAGE, UNDER_MAINTENANCE, DISPOSED'
    """
    return ", ".join(e.value for e in enum_class)


def is_status(db_value: Optional[str], enum_value: Enum) -> bool:
    """Compare a database string with an enum value."""
    if db_value is None:
        return False
    return db_value == enum_value.value


def normalize_tag(raw_tag: Optional[str]) -> str:
    """
    Normalize a scanned or typed asset tag: trim whitespace, UPPERCASE.

    Returns an empty string for None so callers can reject blank tags.

    Examples:
        >>> normalize_tag("  ab-001 ")
        'AB-001'
    """
    if raw_tag is None:
        return ""
    return str(raw_tag).strip().upper()
