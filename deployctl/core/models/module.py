"""
Module model — one independently deployable unit and its version tag.
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator


class Module(BaseModel):
    """A deployable module (api, web, ...) for this run.

    ``tag`` is the image tag to deploy. ``None`` means the module did not
    change and whatever version is running now must stay in place. An
    empty string is not a tag; the config layer turns empty inputs into
    ``None`` before a Module is built.
    """

    name: str
    tag: str | None = None

    @field_validator("tag")
    @classmethod
    def _tag_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("tag must be non-empty when given; use None for 'unchanged'")
        return v

    @property
    def changed(self) -> bool:
        """A module is redeployed iff it carries a tag."""
        return self.tag is not None
