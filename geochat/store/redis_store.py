"""
Redis 문서 저장소

문서를 JSON 값으로 저장하고, 쓰기마다 Redis Pub/Sub으로 변경 이벤트를 발행합니다.
모든 쓰기는 WATCH/MULTI 낙관적 트랜잭션으로 수행되어 문서 단위 last-writer-wins와
원자적 read-modify-write를 보장합니다.

키 패턴:
    {prefix}:doc:{collection}:{doc_id}           문서 (JSON)
    {prefix}:ids:{collection}                    컬렉션 문서 ID 집합
    {prefix}:idx:{collection}:{field}:{value}    동등 조건 인덱스 집합
    {prefix}:changes:{collection}                변경 이벤트 채널
"""

import asyncio
import json
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as redis
from redis.exceptions import (
    AuthenticationError,
    ConnectionError as RedisConnectionError,
    NoPermissionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
    WatchError,
)

from geochat.core.config import settings
from geochat.core.errors import NotFoundException, PermissionDeniedException, UnavailableException
from geochat.core.logging import get_logger, log_store_operation, log_subscription_event
from geochat.domain.events import DocumentChanged
from geochat.store.base import (
    SERVER_TIMESTAMP,
    DocumentStore,
    Mutation,
    Query,
    SnapshotCallback,
    StoredDocument,
    sort_documents,
)
from geochat.store.subscription import ErrorCallback, Subscription
from geochat.utils.time_utils import Clock, now_millis, system_clock

logger = get_logger(__name__)

DEFAULT_INDEXED_FIELDS = ("room_id",)


class RedisDocumentStore(DocumentStore):
    """Redis 기반 문서 저장소"""

    def __init__(
        self,
        client: redis.Redis,
        prefix: Optional[str] = None,
        indexed_fields: Iterable[str] = DEFAULT_INDEXED_FIELDS,
        clock: Clock = system_clock,
        poll_interval: Optional[float] = None,
        max_retries: Optional[int] = None,
    ):
        self._redis = client
        self._prefix = prefix or settings.store_key_prefix
        self._indexed_fields = tuple(indexed_fields)
        self._clock = clock
        self._poll_interval = poll_interval if poll_interval is not None else settings.subscription_poll_interval
        self._max_retries = max_retries if max_retries is not None else settings.transaction_max_retries

    # =========================================================================
    # Key helpers
    # =========================================================================

    def _doc_key(self, collection: str, doc_id: str) -> str:
        return f"{self._prefix}:doc:{collection}:{doc_id}"

    def _ids_key(self, collection: str) -> str:
        return f"{self._prefix}:ids:{collection}"

    def _index_key(self, collection: str, field_name: str, value: Any) -> str:
        return f"{self._prefix}:idx:{collection}:{field_name}:{value}"

    def channel(self, collection: str) -> str:
        return f"{self._prefix}:changes:{collection}"

    @staticmethod
    def _indexable(value: Any) -> bool:
        return isinstance(value, (str, int)) and not isinstance(value, bool)

    def _resolve(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """SERVER_TIMESTAMP 값을 저장소 시계 기준 epoch 밀리초로 치환"""
        timestamp = None
        resolved = {}
        for key, value in data.items():
            if value is SERVER_TIMESTAMP:
                if timestamp is None:
                    timestamp = now_millis(self._clock)
                value = timestamp
            resolved[key] = value
        return resolved

    @asynccontextmanager
    async def _errors(self, operation: str, collection: str, doc_id: Optional[str] = None):
        """Redis 예외를 도메인 예외로 변환"""
        try:
            yield
        except (AuthenticationError, NoPermissionError) as e:
            logger.error(f"Store {operation} on {collection} refused: {e}")
            raise PermissionDeniedException(
                "Document store access refused",
                details={"operation": operation, "collection": collection, "doc_id": doc_id}
            ) from e
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.error(f"Store {operation} on {collection} failed: {e}")
            raise UnavailableException(
                "Document store unreachable",
                details={"operation": operation, "collection": collection, "doc_id": doc_id}
            ) from e
        except WatchError:
            raise
        except RedisError as e:
            logger.error(f"Store {operation} on {collection} errored: {e}")
            raise UnavailableException(
                "Document store error",
                details={"operation": operation, "collection": collection, "doc_id": doc_id}
            ) from e

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._errors("get", collection, doc_id):
            raw = await self._redis.get(self._doc_key(collection, doc_id))
        log_store_operation(logger, "get", collection, doc_id=doc_id, found=raw is not None)
        return json.loads(raw) if raw else None

    async def query(self, query: Query) -> List[StoredDocument]:
        start_time = time.perf_counter()
        collection = query.collection

        index_keys = [
            self._index_key(collection, name, value)
            for name, value in query.filters
            if name in self._indexed_fields and self._indexable(value)
        ]

        async with self._errors("query", collection):
            if index_keys:
                ids = await self._redis.sinter(index_keys)
            else:
                ids = await self._redis.smembers(self._ids_key(collection))

            ids = sorted(ids)
            raws = await self._redis.mget([self._doc_key(collection, doc_id) for doc_id in ids]) if ids else []

        documents = [
            StoredDocument(id=doc_id, data=json.loads(raw))
            for doc_id, raw in zip(ids, raws)
            if raw is not None
        ]
        documents = sort_documents([doc for doc in documents if query.matches(doc.data)], query)

        log_store_operation(
            logger,
            "query",
            collection,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            scanned=len(ids),
            returned=len(documents),
        )
        return documents

    # =========================================================================
    # Writes
    # =========================================================================

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self._write(collection, doc_id, lambda current: dict(data))
        return doc_id

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        if merge:
            await self._write(collection, doc_id, lambda current: {**(current or {}), **data})
        else:
            await self._write(collection, doc_id, lambda current: dict(data))

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        def merge_existing(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is None:
                raise NotFoundException(
                    "Document",
                    details={"collection": collection, "doc_id": doc_id}
                )
            return {**current, **data}

        await self._write(collection, doc_id, merge_existing)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._write(collection, doc_id, lambda current: None)

    async def transact(self, collection: str, doc_id: str, mutate: Mutation) -> Dict[str, Any]:
        return await self._write(collection, doc_id, mutate)

    async def _write(self, collection: str, doc_id: str, mutate) -> Optional[Dict[str, Any]]:
        """
        낙관적 트랜잭션으로 문서 쓰기

        WATCH 이후 다른 클라이언트가 문서를 변경하면 EXEC가 실패하므로
        현재 값을 다시 읽고 mutate를 재실행합니다.

        Args:
            collection: 컬렉션 이름
            doc_id: 문서 ID
            mutate: 현재 문서(또는 None)를 받아 새 문서(삭제 시 None)를 반환하는 함수

        Returns:
            저장된 문서 (삭제 시 None)
        """
        key = self._doc_key(collection, doc_id)
        start_time = time.perf_counter()

        async with self._errors("write", collection, doc_id):
            async with self._redis.pipeline(transaction=True) as pipe:
                for attempt in range(1, self._max_retries + 1):
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        before = json.loads(raw) if raw else None

                        after = mutate(before)
                        if after is not None:
                            after = self._resolve(after)

                        if before is None and after is None:
                            # 이미 없는 문서 삭제
                            await pipe.reset()
                            return None

                        pipe.multi()
                        self._stage(pipe, collection, doc_id, before, after)
                        await pipe.execute()

                        log_store_operation(
                            logger,
                            "delete" if after is None else "set",
                            collection,
                            doc_id=doc_id,
                            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                            attempts=attempt,
                        )
                        return after

                    except WatchError:
                        logger.debug(f"Write conflict on {key}, retrying (attempt {attempt})")
                        await pipe.reset()

        logger.error(f"Write on {key} abandoned after {self._max_retries} conflicting attempts")
        raise UnavailableException(
            "Document is under heavy contention",
            details={"collection": collection, "doc_id": doc_id, "attempts": self._max_retries}
        )

    def _stage(
        self,
        pipe,
        collection: str,
        doc_id: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
    ):
        """MULTI 블록에 문서/인덱스 변경과 변경 이벤트 발행을 적재"""
        key = self._doc_key(collection, doc_id)

        if after is None:
            pipe.delete(key)
            pipe.srem(self._ids_key(collection), doc_id)
        else:
            pipe.set(key, json.dumps(after, ensure_ascii=False))
            pipe.sadd(self._ids_key(collection), doc_id)

        for field_name in self._indexed_fields:
            old_value = before.get(field_name) if before else None
            new_value = after.get(field_name) if after else None
            if self._indexable(old_value) and old_value != new_value:
                pipe.srem(self._index_key(collection, field_name, old_value), doc_id)
            if self._indexable(new_value):
                pipe.sadd(self._index_key(collection, field_name, new_value), doc_id)

        event = DocumentChanged(
            collection=collection,
            doc_id=doc_id,
            op="delete" if after is None else "set",
            before=before,
            after=after,
            timestamp=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
        )
        pipe.publish(self.channel(collection), event.to_json())

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def watch(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        subscription = Subscription(query.describe(), on_snapshot, on_error)
        pubsub = self._redis.pubsub()

        try:
            # 초기 스냅샷 조회 전에 채널을 구독해야 그 사이의 변경을 놓치지 않음
            async with self._errors("watch", query.collection):
                await pubsub.subscribe(self.channel(query.collection))
            initial = await self.query(query)
            await subscription.deliver(initial)
        except Exception:
            await pubsub.aclose()
            raise

        subscription.start(self._feed(query, pubsub, subscription))
        log_subscription_event(logger, "established", subscription.name, initial_count=len(initial))
        return subscription

    async def _feed(self, query: Query, pubsub, subscription: Subscription):
        """변경 이벤트를 수신하여 쿼리 결과 전체를 다시 전달"""
        try:
            while True:
                async with self._errors("watch", query.collection):
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=self._poll_interval
                    )
                if message is None:
                    # some clients return immediately instead of blocking for the timeout
                    await asyncio.sleep(min(self._poll_interval, 0.01))
                    continue
                if message.get("type") != "message":
                    continue

                try:
                    event = DocumentChanged.from_json(message["data"])
                except (ValueError, TypeError, KeyError) as e:
                    logger.warning(f"Ignoring malformed change event on {subscription.name}: {e}")
                    continue

                if not (query.matches(event.before) or query.matches(event.after)):
                    continue

                snapshot = await self.query(query)
                await subscription.dispatch(snapshot)
        finally:
            try:
                await pubsub.unsubscribe()
                await pubsub.aclose()
            except Exception as e:
                logger.warning(f"Error closing pubsub for {subscription.name}: {e}")
