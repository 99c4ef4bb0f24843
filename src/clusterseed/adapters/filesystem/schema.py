"""Pydantic models for structured model-root files."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

AliasActionName = Literal["add", "remove", "remove_index"]


class ModelFileBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class AliasActionsDocument(ModelFileBase):
    """Body of the root ``_aliases`` file, as accepted by ``POST /_aliases``."""

    actions: list[dict[AliasActionName, dict[str, Any]]]

    @field_validator("actions")
    @classmethod
    def _one_action_per_entry(
        cls, value: list[dict[AliasActionName, dict[str, Any]]]
    ) -> list[dict[AliasActionName, dict[str, Any]]]:
        for entry in value:
            if len(entry) != 1:
                raise ValueError(
                    "each alias action must hold exactly one of add, remove, remove_index"
                )
        return value
