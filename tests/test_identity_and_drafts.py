import pytest

from modules.drafts.models import ReportDraft
from modules.identity.models import UserIdentity
from modules.preferences.store import DRAFT


@pytest.mark.parametrize(
    "nickname, anonymous, expected",
    [
        ("", True, "anonymous"),
        ("", False, "anonymous"),
        ("   ", False, "anonymous"),
        ("luz", True, "anonymous"),
        ("luz", False, "luz"),
    ],
)
def test_display_name(nickname, anonymous, expected):
    assert UserIdentity(nickname=nickname, anonymous=anonymous).display_name == expected


async def test_identity_defaults_on_first_access(identity):
    assert await identity.current() == UserIdentity(nickname="", anonymous=True)


async def test_identity_updates(identity):
    await identity.update_nickname("luz")
    await identity.update_anonymous(False)

    assert (await identity.current()).display_name == "luz"


async def test_identity_ignores_mistyped_stored_values(preferences, identity):
    await preferences.write("identity", {"nickname": 42, "anonymous": "no"})
    assert await identity.current() == UserIdentity()


async def test_identity_watch_emits_typed_snapshots(identity, next_item):
    watcher = await identity.watch()
    assert await next_item(watcher) == UserIdentity()

    await identity.update(nickname="luz", anonymous=False)

    assert await next_item(watcher) == UserIdentity(nickname="luz", anonymous=False)


async def test_each_draft_field_update_is_its_own_write(drafts, preferences, next_item):
    reader = await preferences.read(DRAFT)
    await next_item(reader)

    await drafts.update_type("Physical")
    await drafts.update_description("shouting")
    await drafts.update_image_url("https://img.example/1.jpg")

    assert await next_item(reader) == {"type": "Physical"}
    assert await next_item(reader) == {"type": "Physical", "description": "shouting"}
    assert (await next_item(reader))["imageUrl"] == "https://img.example/1.jpg"
    assert await drafts.current() == ReportDraft(
        type="Physical", description="shouting", image_url="https://img.example/1.jpg"
    )


async def test_draft_update_accepts_wire_field_names(drafts):
    await drafts.update("imageUrl", "u")
    assert (await drafts.current()).image_url == "u"


async def test_unknown_draft_field(drafts):
    with pytest.raises(ValueError):
        await drafts.update("nickname", "x")


async def test_clear_twice_leaves_an_empty_draft(drafts, next_item):
    await drafts.update_location("school")
    watcher = await drafts.watch()
    assert (await next_item(watcher)).location == "school"

    await drafts.clear()
    await drafts.clear()

    assert await next_item(watcher) == ReportDraft()
    # redundant writes may still emit
    assert await next_item(watcher) == ReportDraft()
    assert await drafts.current() == ReportDraft()
