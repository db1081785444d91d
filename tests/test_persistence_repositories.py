from __future__ import annotations

import asyncio

import pytest

from persistence import keys
from persistence.errors import ConflictError, NotFoundError, PermissionDeniedError, UserExistsError, ValidationError
from persistence.kv_store import JsonFileKeyValueStore
from persistence.repositories import KVUserRepository, KVVideoRepository, seed_default_creator


async def _open_store(tmp_path) -> JsonFileKeyValueStore:
    store = JsonFileKeyValueStore(tmp_path / "kv.json")
    await store.open()
    return store


def _video_fields(**overrides):
    fields = {
        "title": "Sunset timelapse",
        "description": "Golden hour over the bay",
        "genre": "Nature",
        "ageRating": "G",
        "uploadedBy": "ade",
        "videoUrl": "/media/sunset.mp4",
    }
    fields.update(overrides)
    return fields


def test_user_repository_create_lookup_and_authenticate(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        users = KVUserRepository(store)

        alice = await users.create(username="Alice", email="Alice@Example.com", password="s3cret", role="viewer")
        assert alice.password_hash and "s3cret" not in alice.password_hash
        assert "password_hash" not in alice.public_doc()

        assert await store.get(keys.username_key("alice")) == alice.id
        assert await store.get(keys.email_key("alice@example.com")) == alice.id
        assert (await users.get_by_username("ALICE")).id == alice.id
        assert (await users.get_by_email("alice@example.com")).id == alice.id

        assert (await users.authenticate("alice", "s3cret")).id == alice.id
        assert (await users.authenticate("alice@example.com", "s3cret")).id == alice.id
        assert await users.authenticate("alice", "wrong") is None
        assert await users.authenticate("nobody", "s3cret") is None

        with pytest.raises(UserExistsError):
            await users.create(username="alice", email="other@example.com", password="x", role="viewer")
        with pytest.raises(UserExistsError):
            await users.create(username="alice2", email="ALICE@example.com", password="x", role="viewer")
        # the failed email claim released the username it took first
        assert await store.get(keys.username_key("alice2")) is None

        with pytest.raises(ValidationError, match="Missing required fields"):
            await users.create(username="bob", email="", password="x", role="viewer")
        with pytest.raises(ValidationError, match="Invalid role"):
            await users.create(username="bob", email="bob@example.com", password="x", role="admin")

    asyncio.run(_run())


def test_user_repository_list_and_delete_all(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        users = KVUserRepository(store)
        await users.create(username="a", email="a@example.com", password="x", role="viewer")
        await users.create(username="b", email="b@example.com", password="x", role="streamer")
        await store.set(keys.user_videos_key("someone"), ["v1"])

        listed = await users.list_users()
        assert sorted(u.username for u in listed) == ["a", "b"]

        # two records + two lookups each + the videos index
        assert await users.delete_all() == 7
        assert await store.scan_prefix(keys.USER_PREFIX) == []
        assert await users.list_users() == []

    asyncio.run(_run())


def test_seed_default_creator_is_idempotent(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        users = KVUserRepository(store)

        user, created = await seed_default_creator(users, username="ade", email="ade@dayo.com", password="Password123")
        assert created is True
        assert user.role == "streamer"

        again, created_again = await seed_default_creator(
            users, username="ade", email="ade@dayo.com", password="Password123"
        )
        assert created_again is False
        assert again.id == user.id

    asyncio.run(_run())


def test_video_repository_create_and_indexes(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        videos = KVVideoRepository(store, base_url="http://localhost:3001")

        v1 = await videos.create(**_video_fields(uploaderId="u1"))
        v2 = await videos.create(**_video_fields(title="Second", thumbnail="/media/thumbnails/t.jpg"))

        assert await store.get(keys.ALL_VIDEOS_KEY) == [v2.id, v1.id]
        assert await store.get(keys.user_videos_key("u1")) == [v1.id]
        assert v1.publisher == v1.producer == v1.uploadedBy == "ade"
        assert v1.rating == 0 and v1.totalRatings == 0 and v1.views == 0 and v1.comments == []
        assert v1.thumbnail.startswith("https://")

        got = await videos.get(v2.id)
        assert got is not None and got.title == "Second"
        assert await videos.get("missing") is None

        page = await videos.list_videos()
        by_id = {v.id: v for v in page.videos}
        assert by_id[v2.id].videoUrl == "http://localhost:3001/media/sunset.mp4"
        assert by_id[v2.id].thumbnail == "http://localhost:3001/media/thumbnails/t.jpg"

        with pytest.raises(ValidationError):
            await videos.create(**_video_fields(title="   "))

    asyncio.run(_run())


def test_video_listing_sorts_searches_and_paginates(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        videos = KVVideoRepository(store)

        base = {
            "description": "desc",
            "genre": "Music",
            "ageRating": "PG",
            "publisher": "ade",
            "producer": "ade",
            "uploadedBy": "ade",
        }
        await store.set_many(
            [
                ("video:a", {**base, "id": "a", "title": "Alpha", "uploadDate": "2024-01-01T00:00:00Z"}),
                ("video:b", {**base, "id": "b", "title": "Bravo", "uploadDate": "2024-03-01T00:00:00Z"}),
                ("video:c", {**base, "id": "c", "title": "Charlie", "genre": "Drama", "uploadDate": "2024-02-01T00:00:00Z"}),
                # index keys under the same prefix are not videos
                ("video:views:a", 3),
            ]
        )

        page = await videos.list_videos(page=1, limit=2)
        assert [v.id for v in page.videos] == ["b", "c"]
        assert (page.total, page.page, page.limit, page.hasMore) == (3, 1, 2, True)

        page2 = await videos.list_videos(page=2, limit=2)
        assert [v.id for v in page2.videos] == ["a"]
        assert page2.hasMore is False

        drama = await videos.list_videos(search="DRAMA")
        assert [v.id for v in drama.videos] == ["c"]

        by_uploader = await videos.list_videos(search="ade")
        assert by_uploader.total == 3

        empty = await videos.list_videos(search="zzz")
        assert empty.videos == [] and empty.total == 0 and empty.hasMore is False

    asyncio.run(_run())


def test_views_ratings_and_comments(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        users = KVUserRepository(store)
        videos = KVVideoRepository(store)

        viewer = await users.create(username="v", email="v@example.com", password="x", role="viewer")
        viewer2 = await users.create(username="w", email="w@example.com", password="x", role="viewer")
        streamer = await users.create(username="s", email="s@example.com", password="x", role="streamer")
        video = await videos.create(**_video_fields())

        counts = await asyncio.gather(*(videos.record_view(video.id) for _ in range(10)))
        assert sorted(counts) == list(range(1, 11))
        with pytest.raises(NotFoundError):
            await videos.record_view("missing")

        rated = await videos.rate(viewer, video.id, 5)
        assert (rated.rating, rated.totalRatings) == (5, 1)
        rated = await videos.rate(viewer2, video.id, 2)
        assert (rated.rating, rated.totalRatings) == (3.5, 2)
        assert (await store.get(keys.rating_key(viewer.id, video.id)))["rating"] == 5

        with pytest.raises(ConflictError):
            await videos.rate(viewer, video.id, 4)
        with pytest.raises(PermissionDeniedError):
            await videos.rate(streamer, video.id, 4)
        for bad in (0, 6, 0.5, 5.5, "5", True, None):
            with pytest.raises(ValidationError):
                await videos.rate(viewer2, video.id, bad)

        viewer3 = await users.create(username="x", email="x@example.com", password="x", role="viewer")
        rated = await videos.rate(viewer3, video.id, 4.0)
        assert (rated.rating, rated.totalRatings) == (pytest.approx(11 / 3), 3)
        assert (await store.get(keys.rating_key(viewer3.id, video.id)))["rating"] == 4
        with pytest.raises(NotFoundError):
            await videos.rate(viewer, "missing", 3)

        first = await videos.add_comment(viewer, video.id, "  nice one  ")
        second = await videos.add_comment(streamer, video.id, "thanks")
        assert first.content == "nice one"
        assert first.timestamp == "just now"
        stored = await videos.get(video.id)
        assert [c.id for c in stored.comments] == [second.id, first.id]
        assert (await store.get(keys.comment_key(first.id)))["username"] == "v"

        with pytest.raises(ValidationError):
            await videos.add_comment(viewer, video.id, "   ")
        with pytest.raises(NotFoundError):
            await videos.add_comment(viewer, "missing", "hello")

    asyncio.run(_run())


def test_platform_stats(tmp_path):
    async def _run():
        store = await _open_store(tmp_path)
        users = KVUserRepository(store)
        videos = KVVideoRepository(store)

        viewer = await users.create(username="v", email="v@example.com", password="x", role="viewer")
        await users.create(username="s", email="s@example.com", password="x", role="streamer")
        await users.create(username="t", email="t@example.com", password="x", role="streamer")

        v1 = await videos.create(**_video_fields())
        v2 = await videos.create(**_video_fields(title="Other"))
        await videos.record_view(v1.id)
        await videos.record_view(v1.id)
        await videos.record_view(v2.id)
        await videos.rate(viewer, v2.id, 4)

        stats = await videos.stats()
        assert stats.model_dump() == {
            "totalVideos": 2,
            "totalViews": 3,
            "totalRatings": 1,
            "streamers": 2,
            "viewers": 1,
        }

    asyncio.run(_run())
