# shared/themes_cosmos_client.py

from __future__ import annotations
import logging
import threading
from functools import lru_cache
from typing import Any, Dict, Optional

from azure.cosmos import CosmosClient, PartitionKey

from . import config
from .cosmos_client import get_client
from .theme_sampler import build_sampler


class RecordNotFound(Exception):
    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class ThemesStore:
    """
    Database, containers and sampler for the themes backend.

    Readiness comes in two one-time steps so the write path never depends
    on the read path:
      ensure_writable() -> database + extensions container (ExtensionUpsert)
      ensure_ready()    -> the above + themes container + installed sampler

    Each step talks to Cosmos only until it first succeeds. The client is
    built on first use, so creating the store is free.
    """

    def __init__(
        self,
        client: Optional[CosmosClient] = None,
        db_name: str = config.DB_NAME,
        themes_container: str = config.THEMES_CONTAINER,
        extensions_container: str = config.EXTENSIONS_CONTAINER,
        sampler_factory=build_sampler,
        client_factory=None,
    ):
        self._client = client
        self._client_factory = client_factory
        self._db_name = db_name
        self._themes_name = themes_container
        self._extensions_name = extensions_container
        self._sampler_factory = sampler_factory
        self._write_lock = threading.Lock()
        self._read_lock = threading.Lock()
        self._db = None
        self._writable = False
        self._ready = False
        self.themes = None
        self.extensions = None
        self.sampler = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def writable(self) -> bool:
        return self._writable

    def ensure_writable(self) -> "ThemesStore":
        if self._writable:
            return self
        with self._write_lock:
            if self._writable:
                return self
            self._db = self.ensure_database()
            self.extensions = self.ensure_container(self._db, self._extensions_name)
            self._writable = True
            logging.info("[store] writable: db=%s container=%s", self._db_name, self._extensions_name)
        return self

    def ensure_ready(self) -> "ThemesStore":
        if self._ready:
            return self
        self.ensure_writable()
        with self._read_lock:
            if self._ready:
                return self
            self.themes = self.ensure_container(self._db, self._themes_name)
            sampler = self._sampler_factory(self.themes)
            sampler.install()
            self.sampler = sampler
            self._ready = True
            logging.info("[store] ready: db=%s containers=%s,%s",
                         self._db_name, self._themes_name, self._extensions_name)
        return self

    # ----- container access -----
    @property
    def client(self) -> CosmosClient:
        if self._client is None:
            self._client = (self._client_factory or get_client)()
        return self._client

    def ensure_database(self):
        return self.client.create_database_if_not_exists(id=self._db_name)

    @staticmethod
    def ensure_container(db, name: str):
        return db.create_container_if_not_exists(id=name, partition_key=PartitionKey(path=config.PARTITION_KEY))

    @staticmethod
    def _first(container, query: str, name: str, value: Any) -> Optional[Dict[str, Any]]:
        items = list(container.query_items(
            query=query,
            parameters=[{"name": name, "value": value}],
            enable_cross_partition_query=True,
        ))
        return items[0] if items else None

    # ----- read helpers -----
    def random_theme_id(self) -> str:
        self.ensure_ready()
        theme_id = self.sampler.choose_theme_id()
        if not theme_id:
            raise RecordNotFound("theme", "<random>")
        return theme_id

    def get_theme(self, theme_id: str) -> Dict[str, Any]:
        self.ensure_ready()
        doc = self._first(self.themes, "SELECT TOP 1 * FROM c WHERE c.id = @themeId", "@themeId", theme_id)
        if not doc:
            raise RecordNotFound("theme", theme_id)
        return doc

    def get_extension(self, extension_id: str) -> Dict[str, Any]:
        """Extensions are joined on their extensionId field, not on id."""
        self.ensure_ready()
        if not extension_id:
            raise RecordNotFound("extension", "<missing extensionId>")
        doc = self._first(self.extensions, "SELECT TOP 1 * FROM c WHERE c.extensionId = @extensionId",
                          "@extensionId", extension_id)
        if not doc:
            raise RecordNotFound("extension", extension_id)
        return doc

    def random_theme_with_extension(self):
        theme = self.get_theme(self.random_theme_id())
        extension = self.get_extension(theme.get("extensionId"))
        return theme, extension

    # ----- write helper -----
    def upsert_extension(self, extension: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace by id."""
        self.ensure_writable()
        return self.extensions.upsert_item(body=extension)


@lru_cache(maxsize=1)
def get_store() -> ThemesStore:
    return ThemesStore()
