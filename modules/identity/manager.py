import logging
from typing import Any, Mapping, Optional

from .models import UserIdentity, IdentityUpdate
from modules.preferences.store import PreferenceStore, IDENTITY
from modules.shared.errors import StorageError
from modules.shared.response import success_response, error_response
from modules.shared.streams import MappedSubscription

logger = logging.getLogger("identity.manager")

NICKNAME_KEY = "nickname"
ANONYMOUS_KEY = "anonymous"


def identity_from_snapshot(snapshot: Mapping[str, Any]) -> UserIdentity:
    """Typed view of the identity namespace; absent keys take their defaults."""
    nickname = snapshot.get(NICKNAME_KEY)
    anonymous = snapshot.get(ANONYMOUS_KEY)
    return UserIdentity(
        nickname=nickname if isinstance(nickname, str) else "",
        anonymous=anonymous if isinstance(anonymous, bool) else True,
    )


class IdentityManager:
    """Reads and updates the reporter's nickname and anonymous flag."""

    def __init__(self, preferences: PreferenceStore):
        self.preferences = preferences

    async def current(self) -> UserIdentity:
        return identity_from_snapshot(await self.preferences.snapshot(IDENTITY))

    async def watch(self) -> MappedSubscription[UserIdentity]:
        return MappedSubscription(await self.preferences.read(IDENTITY), identity_from_snapshot)

    async def update_nickname(self, nickname: str) -> None:
        await self.preferences.write(IDENTITY, {NICKNAME_KEY: nickname})

    async def update_anonymous(self, anonymous: bool) -> None:
        await self.preferences.write(IDENTITY, {ANONYMOUS_KEY: anonymous})

    async def update(self, nickname: Optional[str] = None, anonymous: Optional[bool] = None) -> None:
        """Write whichever of the two settings are given, together."""
        values = {}
        if nickname is not None:
            values[NICKNAME_KEY] = nickname
        if anonymous is not None:
            values[ANONYMOUS_KEY] = anonymous
        if values:
            await self.preferences.write(IDENTITY, values)


async def get_identity(identity: IdentityManager):
    """Return the stored identity and the name reports will carry"""
    try:
        current = await identity.current()
        return success_response(
            {**current.model_dump(), "display_name": current.display_name},
            "Identity retrieved successfully",
        )
    except StorageError as e:
        logger.error(f"Error reading identity: {e}")
        return error_response(str(e), 503)


async def update_identity(identity: IdentityManager, update: IdentityUpdate):
    """Update nickname and/or anonymous flag"""
    logger.info(f"Updating identity: nickname set={update.nickname is not None}, anonymous={update.anonymous}")
    if update.nickname is None and update.anonymous is None:
        return error_response("Nothing to update", 400)
    try:
        await identity.update(nickname=update.nickname, anonymous=update.anonymous)
        current = await identity.current()
        return success_response(
            {**current.model_dump(), "display_name": current.display_name},
            "Identity updated successfully",
        )
    except StorageError as e:
        logger.error(f"Error updating identity: {e}")
        return error_response(str(e), 503)
