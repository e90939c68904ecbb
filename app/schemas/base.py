"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read from ORM rows or joined result rows MUST
inherit from BaseResponseSchema; all request bodies from BaseCreateSchema.
"""

from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for response schemas that read from ORM models or result rows.

    Usage:
        class AssetBrief(BaseResponseSchema):
            id: UUID
            asset_tag: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Unknown fields are ignored (forward compatibility with older scanner apps).
    """
    model_config = ConfigDict(
        extra='ignore',
        str_strip_whitespace=True,
    )
