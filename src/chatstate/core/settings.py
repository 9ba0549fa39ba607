"""Global and per-session settings records.

Settings are persisted as JSON objects with camelCase keys (``APIKey``,
``continuousDialogue``); both the alias and the Python field name are
accepted on input. Unknown keys are ignored.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatstate.config.merge import shallow_merge
from chatstate.core.models import CHEAP_FAMILY, ModelFamily
from chatstate.errors import SettingsError


class SettingsModel(BaseModel):
    """Base model for settings with populate_by_name enabled."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the persisted key names."""
        return self.model_dump(mode="json", by_alias=True)


class GlobalSettings(SettingsModel):
    """Cross-session settings: credentials and input behaviour."""

    api_key: str = Field(default="", alias="APIKey")
    password: str = ""
    enter_to_send: bool = Field(default=True, alias="enterToSend")


class SessionSettings(SettingsModel):
    """Settings stored with each session."""

    title: str = ""
    save_session: bool = Field(default=True, alias="saveSession")
    api_temperature: float = Field(default=0.6, alias="APITemperature")
    continuous_dialogue: bool = Field(default=True, alias="continuousDialogue")
    model: ModelFamily = CHEAP_FAMILY


S = TypeVar("S", bound=SettingsModel)


def _alias_keys(cls: type[SettingsModel], payload: Mapping[str, Any]) -> dict[str, Any]:
    """Rewrite field-name keys to their persisted aliases."""
    aliases = {name: info.alias or name for name, info in cls.model_fields.items()}
    return {aliases.get(key, key): value for key, value in payload.items()}


def merge_settings(current: S, payload: Any) -> S:
    """Shallow-merge a settings payload onto `current`.

    Args:
        current: Settings record to start from.
        payload: Mapping of settings keys to values.

    Returns:
        A new settings record of the same type.

    Raises:
        SettingsError: If payload is not a mapping or a value has the wrong shape.
    """
    if not isinstance(payload, Mapping):
        raise SettingsError(f"expected an object, got {type(payload).__name__}")
    cls = type(current)
    merged = shallow_merge(current.to_payload(), _alias_keys(cls, payload))
    try:
        return cls.model_validate(merged)
    except ValidationError as e:
        raise SettingsError(str(e)) from e


def parse_settings(current: S, text: str) -> S:
    """Parse a serialized settings blob and merge it onto `current`.

    Raises:
        SettingsError: On malformed JSON or a payload of the wrong shape.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise SettingsError(f"invalid JSON: {e}") from e
    return merge_settings(current, payload)
