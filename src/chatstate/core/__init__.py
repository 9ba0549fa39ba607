"""Core types: messages, settings, models, pricing and token counting."""

from chatstate.core.messages import ChatMessage, MessageType, Role
from chatstate.core.models import DEFAULT_MAX_INPUT_TOKENS, MODEL_TIERS, resolve_model
from chatstate.core.pricing import PRICE_TABLE, Price, token_cost
from chatstate.core.settings import GlobalSettings, SessionSettings, merge_settings, parse_settings
from chatstate.core.tokens import count_tokens, count_tokens_heuristic

__all__ = [
    "ChatMessage",
    "MessageType",
    "Role",
    "GlobalSettings",
    "SessionSettings",
    "merge_settings",
    "parse_settings",
    "DEFAULT_MAX_INPUT_TOKENS",
    "MODEL_TIERS",
    "resolve_model",
    "PRICE_TABLE",
    "Price",
    "token_cost",
    "count_tokens",
    "count_tokens_heuristic",
]
