"""Pydantic models for rows read from the legacy (Drupal 7) tables."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class CivicrmFormRecord(BaseModel):
    """A row of webform_civicrm_forms, with its data blob unserialized."""
    nid: int
    data: Dict[Any, Any] = Field(default_factory=dict)
    prefix_known: str = ""
    prefix_unknown: str = ""
    message: str = ""
    confirm_subscription: int = 0
    block_unknown_users: int = 0
    create_new_relationship: int = 0
    create_fieldsets: int = 0
    new_contact_source: str = ""

    @field_validator("prefix_known", "prefix_unknown", "message", "new_contact_source", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator(
        "confirm_subscription",
        "block_unknown_users",
        "create_new_relationship",
        "create_fieldsets",
        mode="before",
    )
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    def form_options(self) -> Dict[str, Any]:
        """Get the per-form options that live beside the data blob."""
        return self.model_dump(exclude={"nid", "data"})


class ComponentRecord(BaseModel):
    """A row of webform_component, with its extra blob unserialized."""
    nid: int
    form_key: str
    cid: Optional[int] = None
    pid: Optional[int] = None
    type: Optional[str] = None
    extra: Dict[Any, Any] = Field(default_factory=dict)
