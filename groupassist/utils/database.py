# groupassist/utils/database.py
# GroupAssist: Telegram Group Assistant
# Copyright (C) 2025 Yael Demedetskaya <yaelkroy@gmail.com>
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
# ==================================================================================================
# === GroupAssist Storage ===
# ==================================================================================================
# Namespaced key-value and blob storage. Every piece of state the bot keeps between updates
# (access lists, cooldown timestamps, conversation context, deletion tasks, image payloads)
# lives behind these interfaces. Per-key writes are atomic, there are no multi-key transactions.
# ==================================================================================================

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import Column, LargeBinary, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


class KeyValueRecord(Base):
    __tablename__ = "kv_records"
    namespace = Column(String(64), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)


class BlobRecord(Base):
    __tablename__ = "blob_records"
    namespace = Column(String(64), primary_key=True)
    key = Column(String(255), primary_key=True)
    data = Column(LargeBinary, nullable=False)


class KeyValueStore:
    """JSON values addressed by string keys inside one logical namespace."""

    namespace: str = ""

    async def get(self, key: str) -> Any:
        raise NotImplementedError

    async def put(self, key: str, value: Any) -> bool:
        raise NotImplementedError

    async def delete(self, key: str) -> bool:
        raise NotImplementedError


class BlobStore:
    """Binary payloads (images) referenced from conversation context."""

    namespace: str = ""

    async def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError

    async def put(self, key: str, data: bytes) -> bool:
        raise NotImplementedError

    async def delete(self, key: str) -> bool:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Values are kept serialized so callers never share mutable state."""

    def __init__(self, namespace: str = "default"):
        self.namespace = namespace
        self.data: Dict[str, str] = {}

    async def get(self, key: str) -> Any:
        raw = self.data.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Stored value for '{self.namespace}:{key}' is not valid JSON: {e}")
            return None

    async def put(self, key: str, value: Any) -> bool:
        try:
            self.data[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize value for '{self.namespace}:{key}': {e}")
            return False
        return True

    async def delete(self, key: str) -> bool:
        self.data.pop(key, None)
        return True


class InMemoryBlobStore(BlobStore):
    def __init__(self, namespace: str = "image_data"):
        self.namespace = namespace
        self.data: Dict[str, bytes] = {}

    async def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    async def put(self, key: str, data: bytes) -> bool:
        self.data[key] = bytes(data)
        return True

    async def delete(self, key: str) -> bool:
        self.data.pop(key, None)
        return True


class SqlKeyValueStore(KeyValueStore):
    def __init__(self, session_factory: sessionmaker, namespace: str):
        self.Session = session_factory
        self.namespace = namespace

    async def get(self, key: str) -> Any:
        try:
            with self.Session() as s:
                record = s.get(KeyValueRecord, (self.namespace, key))
                raw = record.value if record is not None else None
        except SQLAlchemyError as e:
            logger.error(f"KV read failed for '{self.namespace}:{key}': {e}", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Stored value for '{self.namespace}:{key}' is not valid JSON: {e}")
            return None

    async def put(self, key: str, value: Any) -> bool:
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Cannot serialize value for '{self.namespace}:{key}': {e}")
            return False
        try:
            with self.Session() as s:
                s.merge(KeyValueRecord(namespace=self.namespace, key=key, value=raw))
                s.commit()
        except SQLAlchemyError as e:
            logger.error(f"KV write failed for '{self.namespace}:{key}': {e}", exc_info=True)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            with self.Session() as s:
                record = s.get(KeyValueRecord, (self.namespace, key))
                if record is not None:
                    s.delete(record)
                    s.commit()
        except SQLAlchemyError as e:
            logger.error(f"KV delete failed for '{self.namespace}:{key}': {e}", exc_info=True)
            return False
        return True


class SqlBlobStore(BlobStore):
    def __init__(self, session_factory: sessionmaker, namespace: str):
        self.Session = session_factory
        self.namespace = namespace

    async def get(self, key: str) -> Optional[bytes]:
        try:
            with self.Session() as s:
                record = s.get(BlobRecord, (self.namespace, key))
                return bytes(record.data) if record is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Blob read failed for '{self.namespace}:{key}': {e}", exc_info=True)
            return None

    async def put(self, key: str, data: bytes) -> bool:
        try:
            with self.Session() as s:
                s.merge(BlobRecord(namespace=self.namespace, key=key, data=bytes(data)))
                s.commit()
        except SQLAlchemyError as e:
            logger.error(f"Blob write failed for '{self.namespace}:{key}': {e}", exc_info=True)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            with self.Session() as s:
                record = s.get(BlobRecord, (self.namespace, key))
                if record is not None:
                    s.delete(record)
                    s.commit()
        except SQLAlchemyError as e:
            logger.error(f"Blob delete failed for '{self.namespace}:{key}': {e}", exc_info=True)
            return False
        return True


@dataclass
class Storage:
    """All logical namespaces the bot reads and writes."""

    bot_config: KeyValueStore
    cooldown: KeyValueStore
    context: KeyValueStore
    task_queue: KeyValueStore
    bot_message_ids: KeyValueStore
    system_init: KeyValueStore
    image_data: BlobStore


KV_NAMESPACES: Tuple[str, ...] = (
    "bot_config",
    "cooldown",
    "context",
    "task_queue",
    "bot_message_ids",
    "system_init",
)


def create_storage_engine(database_url: str):
    kwargs: Dict[str, Any] = {"future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # a single shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    Base.metadata.create_all(engine)
    return engine


def open_storage(database_url: str) -> Storage:
    engine = create_storage_engine(database_url)
    Session = sessionmaker(engine, expire_on_commit=False)
    logger.info(f"Storage initialized on {engine.url.drivername}.")
    stores = {name: SqlKeyValueStore(Session, name) for name in KV_NAMESPACES}
    return Storage(image_data=SqlBlobStore(Session, "image_data"), **stores)


def open_memory_storage() -> Storage:
    stores = {name: InMemoryKeyValueStore(name) for name in KV_NAMESPACES}
    return Storage(image_data=InMemoryBlobStore("image_data"), **stores)
