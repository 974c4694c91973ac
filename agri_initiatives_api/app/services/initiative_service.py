"""
Business logic for initiatives.

Each initiative is one JSON document stored under ``initiative:<id>``
in the key-value store.  There are no secondary indexes, so listing is
a full prefix scan sorted in memory.

Reads are public.  Create, update and delete take a ``CallerIdentity``
that the API layer obtained from the auth provider before calling in;
any authenticated caller may edit or delete any initiative.  Writes are
a plain read-modify-write with no version check, so concurrent writers
to the same initiative race and the last write wins.

Store calls may be network round-trips, so they run in the threadpool
instead of on the event loop.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional, Union

import pydantic
from starlette.concurrency import run_in_threadpool

from ..core.errors import NotFoundError, ValidationError
from ..core.kv_store import KeyValueStore
from ..schemas.initiative import Initiative, InitiativeCreate, InitiativeUpdate
from ..schemas.user import CallerIdentity


logger = logging.getLogger(__name__)

INITIATIVE_PREFIX = "initiative:"
REQUIRED_FIELDS = ("title", "description", "category")
REQUIRED_MESSAGE = "Title, description, and category are required"


def initiative_key(initiative_id: str) -> str:
    return f"{INITIATIVE_PREFIX}{initiative_id}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def describe_validation_error(exc: pydantic.ValidationError) -> str:
    """Turn the first pydantic error into a one-line message."""
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or "body"
    return f"Invalid value for '{location}': {error.get('msg')}"


def parse_payload(model: type, payload: Any) -> Any:
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(describe_validation_error(e)) from e


class InitiativeService:
    """CRUD operations over initiative documents."""

    def __init__(self, store: KeyValueStore, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self.clock = clock or utcnow

    async def _load(self, initiative_id: str) -> Initiative:
        document = await run_in_threadpool(self.store.get, initiative_key(initiative_id))
        if document is None:
            raise NotFoundError("Initiative not found")
        return Initiative.model_validate(document)

    async def list_initiatives(self) -> List[Initiative]:
        """Return every initiative, newest ``createdAt`` first.

        Records created at the same instant are ordered by id (also
        descending) so the result is reproducible.
        """
        documents = await run_in_threadpool(self.store.get_by_prefix, INITIATIVE_PREFIX)
        initiatives = []
        for doc in documents:
            try:
                initiatives.append(Initiative.model_validate(doc))
            except pydantic.ValidationError as e:
                # One unreadable record must not hide all the others.
                logger.warning("Skipping unreadable initiative record: %s", describe_validation_error(e))
        initiatives.sort(key=lambda item: (item.created_at, item.id), reverse=True)
        return initiatives

    async def get_initiative(self, initiative_id: str) -> Initiative:
        """Return one initiative or raise ``NotFoundError``."""
        return await self._load(initiative_id)

    async def create_initiative(
        self,
        payload: Union[InitiativeCreate, Mapping[str, Any]],
        caller: CallerIdentity,
    ) -> Initiative:
        """Validate ``payload`` and store a new initiative.

        ``title``, ``description`` and ``category`` must be present and
        non-empty.  Counts and budget are coerced to non-negative
        integers.  The id, ``createdBy`` and both timestamps are
        assigned here; ``createdAt`` equals ``updatedAt``.
        """
        if isinstance(payload, Mapping):
            missing = [
                field for field in REQUIRED_FIELDS
                if payload.get(field) is None
                or (isinstance(payload.get(field), str) and not payload[field].strip())
            ]
            if missing:
                raise ValidationError(REQUIRED_MESSAGE)
        data: InitiativeCreate = parse_payload(InitiativeCreate, payload)

        now = self.clock()
        initiative = Initiative(
            id=str(uuid.uuid4()),
            created_by=caller.id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        await run_in_threadpool(self.store.set, initiative_key(initiative.id), initiative.to_document())
        logger.info("User %s created initiative %s ('%s')", caller.id, initiative.id, initiative.title)
        return initiative

    async def update_initiative(
        self,
        initiative_id: str,
        payload: Union[InitiativeUpdate, Mapping[str, Any]],
        caller: CallerIdentity,
    ) -> Initiative:
        """Merge the supplied fields into an existing initiative.

        ``id``, ``createdBy`` and ``createdAt`` are kept from the stored
        record whatever the payload says.  ``updatedAt`` always moves
        forward, even if the clock has not advanced since the last
        write.
        """
        existing = await self._load(initiative_id)
        data: InitiativeUpdate = parse_payload(InitiativeUpdate, payload)

        updated_at = self.clock()
        if updated_at <= existing.updated_at:
            updated_at = existing.updated_at + timedelta(microseconds=1)
        updated = existing.model_copy(update={**data.changes(), "updated_at": updated_at})
        # Re-validate the merged record before it is persisted.
        updated = Initiative.model_validate(updated.model_dump())
        await run_in_threadpool(self.store.set, initiative_key(initiative_id), updated.to_document())
        logger.info("User %s updated initiative %s", caller.id, initiative_id)
        return updated

    async def delete_initiative(self, initiative_id: str, caller: CallerIdentity) -> None:
        """Remove an initiative.

        Raises ``NotFoundError`` when nothing is stored under the id, so a
        second delete of the same initiative is reported as not found.
        """
        key = initiative_key(initiative_id)
        if await run_in_threadpool(self.store.get, key) is None:
            raise NotFoundError("Initiative not found")
        await run_in_threadpool(self.store.delete, key)
        logger.info("User %s deleted initiative %s", caller.id, initiative_id)
