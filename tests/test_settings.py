"""Tests for settings records and merging."""

from __future__ import annotations

import pytest

from chatstate.core.messages import ChatMessage, MessageType, Role, default_message
from chatstate.core.settings import GlobalSettings, SessionSettings, merge_settings, parse_settings
from chatstate.errors import SettingsError


class TestMergeSettings:
    """Shallow merge of settings payloads."""

    def test_persisted_aliases_accepted(self) -> None:
        merged = merge_settings(GlobalSettings(), {"APIKey": "sk-1", "enterToSend": False})

        assert merged.api_key == "sk-1"
        assert merged.enter_to_send is False

    def test_field_names_accepted(self) -> None:
        merged = merge_settings(SessionSettings(), {"continuous_dialogue": False, "model": "gpt-4"})

        assert merged.continuous_dialogue is False
        assert merged.model == "gpt-4"

    def test_untouched_keys_keep_current_values(self) -> None:
        current = SessionSettings(title="Recipes", api_temperature=0.2)

        merged = merge_settings(current, {"saveSession": False})

        assert merged.title == "Recipes"
        assert merged.api_temperature == 0.2
        assert merged.save_session is False

    def test_unknown_keys_ignored(self) -> None:
        merged = merge_settings(GlobalSettings(), {"theme": "dark"})

        assert merged == GlobalSettings()

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(SettingsError):
            merge_settings(GlobalSettings(), ["APIKey", "x"])

    def test_wrong_shape_rejected(self) -> None:
        with pytest.raises(SettingsError):
            merge_settings(SessionSettings(), {"model": "llama-2"})

    def test_current_is_not_modified(self) -> None:
        current = SessionSettings()
        merge_settings(current, {"title": "changed"})

        assert current.title == ""


class TestParseSettings:
    """Parsing serialized settings blobs."""

    def test_valid_json(self) -> None:
        merged = parse_settings(GlobalSettings(), '{"password": "hunter2"}')

        assert merged.password == "hunter2"

    def test_malformed_json(self) -> None:
        with pytest.raises(SettingsError):
            parse_settings(GlobalSettings(), "{bad json")

    def test_payload_round_trips_through_aliases(self) -> None:
        settings = SessionSettings(title="t", model="gpt-4", continuous_dialogue=False)
        payload = settings.to_payload()

        assert payload["continuousDialogue"] is False
        assert merge_settings(SessionSettings(), payload) == settings


class TestMessages:
    """Chat message records."""

    def test_defaults_to_normal_type(self) -> None:
        message = ChatMessage(role="user", content="hi")

        assert message.role is Role.USER
        assert message.type is MessageType.NORMAL

    def test_messages_are_immutable(self) -> None:
        message = ChatMessage(role=Role.USER, content="hi")

        with pytest.raises(Exception):
            message.content = "changed"

    def test_default_message(self) -> None:
        greeting = default_message("Welcome")

        assert greeting.role is Role.ASSISTANT
        assert greeting.type is MessageType.DEFAULT
        assert greeting.to_dict() == {"role": "assistant", "content": "Welcome", "type": "default"}
