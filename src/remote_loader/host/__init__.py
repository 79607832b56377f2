"""Narrow host seams: HTTP transport, key/value persistence and code activation."""

from remote_loader.host.activation import ModuleActivator
from remote_loader.host.http import AiohttpClient
from remote_loader.host.interfaces import CodeActivator, HttpClient, HttpResponse, KeyValueStore
from remote_loader.host.storage import InMemoryKeyValueStore, JsonFileKeyValueStore

__all__ = [
    "AiohttpClient",
    "CodeActivator",
    "HttpClient",
    "HttpResponse",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "ModuleActivator",
]
