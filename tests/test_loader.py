"""Tests for session switching and the root controller."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from chatstate.config import Config
from chatstate.controller import ChatController, create_controller
from chatstate.core.messages import MessageType, assistant, error, user
from chatstate.core.models import DEFAULT_MAX_INPUT_TOKENS
from chatstate.session.loader import SessionLoader
from chatstate.session.storage import MemorySessionStorage, SessionState, YamlSessionStorage
from chatstate.state.store import ChatStore
from tests.utils import word_count


def _saved(
    storage: MemorySessionStorage,
    session_id: str,
    settings: dict | None = None,
    messages: list | None = None,
    last_visit: int = 1,
) -> None:
    storage.save_session_snapshot(
        SessionState(id=session_id, settings=settings, messages=messages, last_visit=last_visit)
    )


class TestSessionLoader:
    """Loading persisted sessions into the store."""

    def test_missing_session_keeps_messages(
        self, store: ChatStore, storage: MemorySessionStorage
    ) -> None:
        store.append_message(user("draft"))

        SessionLoader(store, storage).load("new-session")

        assert store.session_id == "new-session"
        assert store.message_list == (user("draft"),)

    def test_installs_messages_and_settings(
        self, store: ChatStore, storage: MemorySessionStorage
    ) -> None:
        _saved(
            storage,
            "s1",
            settings={"title": "Recipes", "model": "gpt-4", "continuousDialogue": False},
            messages=[user("q"), assistant("a")],
        )

        SessionLoader(store, storage).load("s1")

        assert store.session_id == "s1"
        assert store.session_settings.title == "Recipes"
        assert store.session_settings.model == "gpt-4"
        assert store.message_list == (user("q"), assistant("a"))
        assert store.valid_context == ()

    def test_unsaved_session_keeps_only_locked(
        self, store: ChatStore, storage: MemorySessionStorage
    ) -> None:
        pinned = user("system prompt", type=MessageType.LOCKED)
        _saved(
            storage,
            "s1",
            settings={"saveSession": False},
            messages=[pinned, user("q"), assistant("a")],
        )

        SessionLoader(store, storage).load("s1")

        assert store.message_list == (pinned,)

    def test_session_without_messages_keeps_current(
        self, store: ChatStore, storage: MemorySessionStorage
    ) -> None:
        store.append_message(user("keep me"))
        _saved(storage, "s1", settings={"title": "Empty"})

        SessionLoader(store, storage).load("s1")

        assert store.session_settings.title == "Empty"
        assert store.message_list == (user("keep me"),)

    def test_settings_merge_onto_current(
        self, store: ChatStore, storage: MemorySessionStorage
    ) -> None:
        store.set_field("session_settings.api_temperature", 0.1)
        _saved(storage, "s1", settings={"title": "T"})

        SessionLoader(store, storage).load("s1")

        assert store.session_settings.api_temperature == 0.1
        assert store.session_settings.title == "T"

    def test_malformed_global_settings_logged(
        self, store: ChatStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        storage = MemorySessionStorage(global_settings="{bad json")
        _saved(storage, "s1", messages=[user("hi")])

        with caplog.at_level(logging.ERROR, logger="chatstate"):
            SessionLoader(store, storage).load("s1")

        assert store.session_id == "s1"
        assert store.message_list == (user("hi"),)
        assert store.global_settings.api_key == ""
        assert "global settings" in caplog.text

    def test_malformed_session_settings_logged(
        self, store: ChatStore, storage: MemorySessionStorage, caplog: pytest.LogCaptureFixture
    ) -> None:
        _saved(storage, "s1", settings={"model": "not-a-model"}, messages=[user("hi")])

        with caplog.at_level(logging.ERROR, logger="chatstate"):
            SessionLoader(store, storage).load("s1")

        assert store.session_settings.model == "gpt-3.5"
        assert store.message_list == (user("hi"),)
        assert "s1" in caplog.text

    def test_switch_is_one_update(self, store: ChatStore, storage: MemorySessionStorage) -> None:
        _saved(storage, "s1", settings={"title": "One"}, messages=[user("first")])
        seen: list[tuple[str, str, int]] = []
        store.watch(
            "session_id",
            lambda sid: seen.append(
                (sid, store.session_settings.title, len(store.message_list))
            ),
        )

        SessionLoader(store, storage).load("s1")

        assert seen == [("s1", "One", 1)]

    def test_persisted_api_key_switches_budget_table(self, storage: MemorySessionStorage) -> None:
        store = ChatStore(max_input_tokens={"gpt-3.5": 100}, estimate_tokens=word_count)
        storage.write_persisted_global_settings(json.dumps({"APIKey": "sk-mine"}))

        assert store.remaining_token == DEFAULT_MAX_INPUT_TOKENS["gpt-3.5"]

        SessionLoader(store, storage).load("s1")

        assert store.global_settings.api_key == "sk-mine"
        assert store.remaining_token == 100


class TestControllerSwitching:
    """Session switches through the controller, including the index rebuild."""

    async def test_index_excludes_current_and_reserved(
        self, controller: ChatController, storage: MemorySessionStorage
    ) -> None:
        _saved(storage, "index", settings={"title": "Index"}, last_visit=9)
        _saved(storage, "s1", settings={"title": "One"}, last_visit=1)
        _saved(storage, "s2", settings={"title": "Two"}, last_visit=2)

        controller.load_session("s1")
        assert controller.search.rebuild_count == 0

        await controller.rebuilder.drain()

        assert [o.extra["id"] for o in controller.search.options] == ["s2"]

    async def test_rapid_switches_settle_on_last(
        self, controller: ChatController, storage: MemorySessionStorage
    ) -> None:
        _saved(storage, "s1", settings={"title": "One"}, messages=[user("one")])
        _saved(storage, "s2", settings={"title": "Two"}, messages=[user("two")])

        controller.load_session("s1")
        controller.load_session("s2")
        await controller.rebuilder.drain()

        assert controller.store.session_id == "s2"
        assert controller.store.message_list == (user("two"),)
        assert [o.extra["id"] for o in controller.search.options] == ["s1"]

    def test_switch_without_event_loop(
        self, controller: ChatController, storage: MemorySessionStorage
    ) -> None:
        _saved(storage, "s1", settings={"title": "Pasta"}, messages=[user("penne")])
        _saved(storage, "s2", settings={"title": "Tax"})

        controller.load_session("s2")

        assert [o.title for o in controller.search_sessions("penne")] == ["Pasta"]


class TestController:
    """Controller operations and persistence."""

    def test_streaming_flow(self, controller: ChatController) -> None:
        controller.set_input_content("what is two plus two")
        controller.append_message(user("what is two plus two"))
        controller.set_input_content("")
        controller.update_streaming_assistant_message("four")

        assert controller.store.current_message_token == 1

        message = controller.finalize_assistant_message()

        assert message == assistant("four")
        assert controller.store.context_token == 6

    def test_save_session(self, controller: ChatController, storage: MemorySessionStorage) -> None:
        controller.load_session("s1")
        controller.store.set_field("session_settings.title", "Saved")
        controller.append_message(user("hello"))

        state = controller.save_session()

        assert storage.load_session_snapshot("s1") == state
        assert state.settings["title"] == "Saved"
        assert state.messages == [user("hello")]
        assert state.last_visit > 0

    def test_save_unsaved_session_keeps_locked(self, controller: ChatController) -> None:
        pinned = user("pinned", type=MessageType.LOCKED)
        controller.store.set_field("session_settings.save_session", False)
        controller.append_message(pinned)
        controller.append_message(error("boom"))

        state = controller.save_session()

        assert state.messages == [pinned]

    def test_save_global_settings(
        self, controller: ChatController, storage: MemorySessionStorage
    ) -> None:
        controller.store.set_field("global_settings.api_key", "sk-1")

        controller.save_global_settings()

        assert json.loads(storage.read_persisted_global_settings())["APIKey"] == "sk-1"

    def test_default_message(self, tmp_path: Path, storage: MemorySessionStorage) -> None:
        controller = ChatController(
            Config(data_dir=tmp_path, default_message="Ask away"), storage
        )

        assert controller.default_message.content == "Ask away"
        assert controller.default_message.type is MessageType.DEFAULT
        assert controller.store.message_list == ()

    def test_configured_settings_applied(
        self, tmp_path: Path, storage: MemorySessionStorage
    ) -> None:
        config = Config(
            data_dir=tmp_path,
            global_settings={"enterToSend": False},
            session_settings={"model": "gpt-4"},
        )

        controller = ChatController(config, storage, estimate_tokens=word_count)

        assert controller.store.global_settings.enter_to_send is False
        assert controller.store.session_settings.model == "gpt-4"

    def test_bad_configured_settings_fall_back(
        self, tmp_path: Path, storage: MemorySessionStorage, caplog: pytest.LogCaptureFixture
    ) -> None:
        config = Config(data_dir=tmp_path, session_settings={"model": 42})

        with caplog.at_level(logging.ERROR, logger="chatstate"):
            controller = ChatController(config, storage, estimate_tokens=word_count)

        assert controller.store.session_settings.model == "gpt-3.5"
        assert "session settings" in caplog.text

    def test_create_controller_uses_yaml_storage(self, config: Config) -> None:
        controller = create_controller(config)

        assert isinstance(controller.storage, YamlSessionStorage)
        assert controller.storage.data_dir == config.data_dir
