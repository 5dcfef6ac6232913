"""
Dependency providers for the application.
Constructs singletons once and hands them to routes via FastAPI `Depends`.
"""
from langchain_core.language_models.chat_models import BaseChatModel

from croppredict.config import settings
from croppredict.services.generation import build_chat_model
from croppredict.services.history import HistoryStore

# Singletons - created once and reused
_llm = None
_history_store = None

def get_llm() -> BaseChatModel:
    """Get singleton chat model."""
    global _llm
    if _llm is None:
        _llm = build_chat_model()
    return _llm

def get_history_store() -> HistoryStore:
    """Get singleton history store."""
    global _history_store
    if _history_store is None:
        _history_store = HistoryStore(settings.HISTORY_DB_URL)
    return _history_store
