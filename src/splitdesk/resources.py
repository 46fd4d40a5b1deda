from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .api_client import ApiClient
from .errors import ClientError, NotFound, ValidationFailure
from .events import Observable
from .schemas import Resource, ResourceCreate, ResourceUpdate, parse_payload

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

Fields = Union[Mapping[str, Any], BaseModel]
PayloadT = TypeVar("PayloadT", bound=BaseModel)


def _validate(model: Type[PayloadT], fields: Fields) -> PayloadT:
    if isinstance(fields, model):
        return fields
    if isinstance(fields, BaseModel):
        fields = fields.model_dump(exclude_unset=True)
    try:
        return model.model_validate(fields)
    except ValidationError as e:
        raise ValidationFailure.from_pydantic(e) from e


# PUBLIC_INTERFACE
def unwrap_items(payload: Any) -> List[Any]:
    """
    Return the list of items from a collection response.

    Accepts a bare list or a pagination envelope ``{"items": [...], "total": n, ...}``.
    """
    if payload is None:
        return []
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("items"), list):
        return payload["items"]
    return parse_payload(_Collection, payload).items


class _Collection(BaseModel):
    items: List[Any]


class _KeyedLocks:
    """
    One asyncio.Lock per key, dropped once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: Dict[Any, Tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def hold(self, key: Any) -> AsyncIterator[None]:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    def busy(self, key: Any) -> bool:
        return key in self._locks


# PUBLIC_INTERFACE
class ResourceStore(Observable):
    """
    Optimistically-updated mirror of one user-scoped collection.

    The snapshot is ordered newest first. Local mutations become visible
    before the server answers and are rolled back if it refuses them.
    Subscribers are called as ``listener(snapshot)`` after every change.

    Reconciliation rules:
    - refresh: the most recently completed response replaces the snapshot.
    - create: the pending entry is replaced in place by the server's copy.
    - update: serialized per id; the server's representation wins.
    - delete: on failure the entry returns to its original position.
    """

    def __init__(self, api: ApiClient, collection: str = "todos") -> None:
        super().__init__()
        self._api = api
        self._collection = collection.strip("/")
        self._items: List[Resource] = []
        self._update_slots = _KeyedLocks()
        self._refresh_seq = 0
        # bumped by clear(); writes from calls started earlier are dropped
        self._generation = 0
        # bumped whenever the snapshot is replaced wholesale
        self._replacements = 0

    @property
    def collection(self) -> str:
        return self._collection

    @property
    def path(self) -> str:
        return f"{API_PREFIX}/{self._collection}/"

    def _item_path(self, resource_id: int) -> str:
        return f"{self.path}{resource_id}/"

    @property
    def snapshot(self) -> Tuple[Resource, ...]:
        return tuple(self._items)

    @property
    def pending(self) -> Tuple[Resource, ...]:
        return tuple(r for r in self._items if r.is_pending)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self.snapshot)

    def get(self, resource_id: int) -> Optional[Resource]:
        index = self._index_of_id(resource_id)
        return None if index is None else self._items[index]

    def is_updating(self, resource_id: int) -> bool:
        """True while an update for this id is in flight or queued."""
        return self._update_slots.busy(resource_id)

    def _index_of_id(self, resource_id: int) -> Optional[int]:
        for i, item in enumerate(self._items):
            if item.id is not None and item.id == resource_id:
                return i
        return None

    def _index_of_key(self, local_key: str) -> Optional[int]:
        for i, item in enumerate(self._items):
            if item.local_key == local_key:
                return i
        return None

    def _changed(self) -> None:
        self._notify(self.snapshot)

    def _replace_all(self, items: Iterable[Resource]) -> None:
        self._items = list(items)
        self._replacements += 1
        self._changed()

    # PUBLIC_INTERFACE
    def clear(self) -> None:
        """
        Forget the snapshot, e.g. when the session ends.

        Requests still in flight no longer touch the snapshot when they
        resolve, whether they succeed or fail.
        """
        self._generation += 1
        if self._items:
            self._replace_all([])

    # PUBLIC_INTERFACE
    async def refresh(self) -> Tuple[Resource, ...]:
        """
        Fetch the whole collection and replace the snapshot with it.

        Concurrent refreshes are not merged: whichever response arrives last
        becomes the snapshot. A response that arrives after clear() is
        discarded.
        """
        generation = self._generation
        self._refresh_seq += 1
        seq = self._refresh_seq
        payload = await self._api.request("GET", self.path)
        items = [parse_payload(Resource, item) for item in unwrap_items(payload)]
        if generation != self._generation:
            logger.debug("Discarding refresh of %s issued before the store was cleared", self.path)
            return self.snapshot
        if seq != self._refresh_seq:
            logger.debug("Refresh #%d of %s completed after #%d was issued", seq, self.path, self._refresh_seq)
        self._replace_all(items)
        return self.snapshot

    # PUBLIC_INTERFACE
    async def create(self, fields: Fields) -> Resource:
        """
        Insert a pending entry at the head, then create it on the server.

        Returns the server's copy, which has replaced the pending entry.
        On failure the pending entry is removed and the error re-raised.
        """
        data = _validate(ResourceCreate, fields)
        generation = self._generation
        pending = Resource.pending_from(data)
        self._items.insert(0, pending)
        self._changed()

        try:
            payload = await self._api.request("POST", self.path, data.model_dump(mode="json"))
            created = parse_payload(Resource, payload)
        except (ClientError, asyncio.CancelledError):
            index = self._index_of_key(pending.local_key)
            if generation == self._generation and index is not None:
                del self._items[index]
                self._changed()
            raise

        created = created.model_copy(update={"local_key": pending.local_key})
        if generation != self._generation:
            return created
        index = self._index_of_key(pending.local_key)
        if index is not None:
            self._items[index] = created
        else:
            # a refresh replaced the snapshot while the create was in flight
            existing = None if created.id is None else self._index_of_id(created.id)
            if existing is not None:
                return self._items[existing]
            self._items.insert(0, created)
        self._changed()
        return created

    # PUBLIC_INTERFACE
    async def update(self, resource_id: int, fields: Fields) -> Resource:
        """
        Apply ``fields`` to the entry locally, then on the server.

        A second update for the same id waits until the first has resolved
        before it is applied. On failure the entry reverts to its value from
        before this update, unless something else has replaced it since, and
        the error is re-raised.

        Raises:
            NotFound: no entry with this id in the snapshot.
        """
        data = _validate(ResourceUpdate, fields)
        if self._index_of_id(resource_id) is None:
            raise NotFound(resource_id)

        async with self._update_slots.hold(resource_id):
            index = self._index_of_id(resource_id)
            if index is None:
                raise NotFound(resource_id)
            generation = self._generation
            previous = self._items[index]
            optimistic = previous.model_copy(update=data.changes())
            self._items[index] = optimistic
            self._changed()

            try:
                payload = await self._api.request(
                    "PATCH", self._item_path(resource_id), data.model_dump(mode="json", exclude_unset=True)
                )
                updated = parse_payload(Resource, payload)
            except (ClientError, asyncio.CancelledError):
                index = self._index_of_id(resource_id)
                if generation == self._generation and index is not None and self._items[index] is optimistic:
                    self._items[index] = previous
                    self._changed()
                raise

            updated = updated.model_copy(update={"local_key": previous.local_key})
            index = self._index_of_id(resource_id)
            if generation == self._generation and index is not None:
                self._items[index] = updated
                self._changed()
            return updated

    # PUBLIC_INTERFACE
    async def delete(self, resource_id: int) -> None:
        """
        Remove the entry locally, then on the server.

        On failure the entry is put back at its original position and the
        error is re-raised. It stays out if the snapshot was replaced while
        the request was in flight.

        Raises:
            NotFound: no entry with this id in the snapshot.
        """
        index = self._index_of_id(resource_id)
        if index is None:
            raise NotFound(resource_id)
        replacements = self._replacements
        generation = self._generation
        removed = self._items.pop(index)
        self._changed()

        try:
            await self._api.request("DELETE", self._item_path(resource_id))
        except (ClientError, asyncio.CancelledError):
            untouched = generation == self._generation and replacements == self._replacements
            if untouched and self._index_of_id(resource_id) is None:
                self._items.insert(min(index, len(self._items)), removed)
                self._changed()
            raise
