import logging
from typing import Any, Mapping

from .models import ReportDraft, DraftUpdate
from modules.preferences.store import PreferenceStore, DRAFT
from modules.shared.errors import StorageError
from modules.shared.response import success_response, error_response
from modules.shared.streams import MappedSubscription

logger = logging.getLogger("drafts.manager")

# model field -> preference key
DRAFT_KEYS = {
    "type": "type",
    "description": "description",
    "location": "location",
    "image_url": "imageUrl",
}


def draft_from_snapshot(snapshot: Mapping[str, Any]) -> ReportDraft:
    values = {}
    for field, key in DRAFT_KEYS.items():
        value = snapshot.get(key)
        values[field] = value if isinstance(value, str) else ""
    return ReportDraft(**values)


class DraftCoordinator:
    """
    Mirrors report form edits into the draft namespace of the preference store.
    Each update is a single-key write; no validation happens here.
    """

    def __init__(self, preferences: PreferenceStore):
        self.preferences = preferences

    async def current(self) -> ReportDraft:
        return draft_from_snapshot(await self.preferences.snapshot(DRAFT))

    async def watch(self) -> MappedSubscription[ReportDraft]:
        return MappedSubscription(await self.preferences.read(DRAFT), draft_from_snapshot)

    async def update(self, field: str, value: str) -> None:
        if field in DRAFT_KEYS:
            key = DRAFT_KEYS[field]
        elif field in DRAFT_KEYS.values():
            key = field
        else:
            raise ValueError(f"Unknown draft field: {field!r}")
        await self.preferences.write(DRAFT, {key: value})

    async def update_type(self, value: str) -> None:
        await self.update("type", value)

    async def update_description(self, value: str) -> None:
        await self.update("description", value)

    async def update_location(self, value: str) -> None:
        await self.update("location", value)

    async def update_image_url(self, value: str) -> None:
        await self.update("image_url", value)

    async def clear(self) -> None:
        """Reset every draft field to the empty string in one write."""
        await self.preferences.write(DRAFT, {key: "" for key in DRAFT_KEYS.values()})
        logger.debug("Draft cleared")


async def get_draft(drafts: DraftCoordinator):
    """Return the persisted draft"""
    try:
        draft = await drafts.current()
        return success_response(draft, "Draft retrieved successfully")
    except StorageError as e:
        logger.error(f"Error reading draft: {e}")
        return error_response(str(e), 503)


async def update_draft(drafts: DraftCoordinator, update: DraftUpdate):
    """Persist each provided field with its own write, in form order"""
    changes = update.model_dump(exclude_none=True)
    if not changes:
        return error_response("Nothing to update", 400)
    logger.debug(f"Updating draft fields: {sorted(changes)}")
    try:
        for field in DRAFT_KEYS:
            if field in changes:
                await drafts.update(field, changes[field])
        return success_response(await drafts.current(), "Draft updated successfully")
    except StorageError as e:
        logger.error(f"Error updating draft: {e}")
        return error_response(str(e), 503)


async def clear_draft(drafts: DraftCoordinator):
    """Discard the draft"""
    try:
        await drafts.clear()
        return success_response(await drafts.current(), "Draft cleared successfully")
    except StorageError as e:
        logger.error(f"Error clearing draft: {e}")
        return error_response(str(e), 503)
