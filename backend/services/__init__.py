"""Services for the AI-kun Fudosan LINE bot."""
from .history_store import (
    HistoryStore,
    HistoryStoreError,
    SupabaseHistoryStore,
    InMemoryHistoryStore,
    create_history_store,
)
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .line_client import LineMessagingClient, LineDeliveryError, verify_signature
from .conversation_handler import ConversationHandler
from .event_dispatcher import EventDispatcher, is_text_message

__all__ = ['HistoryStore', 'HistoryStoreError', 'SupabaseHistoryStore', 'InMemoryHistoryStore', 'create_history_store', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'LineMessagingClient', 'LineDeliveryError', 'verify_signature', 'ConversationHandler', 'EventDispatcher', 'is_text_message']
