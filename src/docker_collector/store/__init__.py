"""Persistence for collector bookkeeping and container inventory."""

from .base import Sink
from .sqlite import DocumentStore, AsyncDocumentStore

__all__ = ["Sink", "DocumentStore", "AsyncDocumentStore"]
