"""Tests for the loader-backed user cache."""

import pytest

from token_session import (
    FunctionUserLoader,
    IdentityUserLoader,
    InvalidArgument,
    NotConfigured,
    SerializationFailure,
    StoreUnavailable,
    User,
    UserLoader,
)


class RecordingLoader(UserLoader):
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    async def load_user(self, user_id):
        self.calls.append(user_id)
        if user_id == self.fail_on:
            raise LookupError(f"no user {user_id}")
        return User(id=user_id, detail={"name": user_id.upper()})


@pytest.mark.anyio
async def test_fill_requires_loader(builder):
    manager = builder.build()

    with pytest.raises(NotConfigured):
        await manager.fill_user("u1", 60)


@pytest.mark.anyio
async def test_fill_stores_serialised_user(builder, fake_redis):
    manager = builder.user_loader(RecordingLoader()).build()

    user = await manager.fill_user("u1", 60)

    assert user == User(id="u1", detail={"name": "U1"})
    assert fake_redis.raw("ts-u_u1") == '{"id": "u1", "detail": {"name": "U1"}}'
    assert await fake_redis.ttl("ts-u_u1") == 60


@pytest.mark.anyio
async def test_fill_uses_default_ttl_when_not_positive(builder, fake_redis):
    manager = builder.default_ttl(900).user_loader(RecordingLoader()).build()

    await manager.fill_user("u1", 0)

    assert await fake_redis.ttl("ts-u_u1") == 900


@pytest.mark.anyio
async def test_loader_returning_none_caches_identity(builder, fake_redis):
    manager = builder.user_loader(lambda user_id: None).build()

    user = await manager.fill_user("u1", 60)

    assert user == User(id="u1")
    assert fake_redis.raw("ts-u_u1") == '{"id": "u1", "detail": null}'


@pytest.mark.anyio
async def test_loaded_user_is_stored_under_requested_id(builder, fake_redis):
    manager = builder.user_loader(lambda user_id: User(id="someone-else", detail=1)).build()

    user = await manager.fill_user("u1", 60)

    assert user.id == "u1"
    assert fake_redis.raw("ts-u_someone-else") is None
    assert fake_redis.raw("ts-u_u1") is not None


@pytest.mark.anyio
async def test_loader_errors_propagate(builder, fake_redis):
    manager = builder.user_loader(RecordingLoader(fail_on="u1")).build()

    with pytest.raises(LookupError):
        await manager.fill_user("u1", 60)
    assert fake_redis.raw("ts-u_u1") is None


@pytest.mark.anyio
async def test_fill_rejects_invalid_id(builder):
    manager = builder.user_loader(IdentityUserLoader()).build()

    with pytest.raises(InvalidArgument):
        await manager.fill_user("", 60)


@pytest.mark.anyio
async def test_unserialisable_detail_is_reported(builder):
    manager = builder.user_loader(lambda user_id: User(id=user_id, detail={1, 2})).build()

    with pytest.raises(SerializationFailure):
        await manager.fill_user("u1", 60)


@pytest.mark.anyio
async def test_refresh_many_stops_at_first_error(builder, fake_redis):
    loader = RecordingLoader(fail_on="u2")
    manager = builder.user_loader(loader).build()

    with pytest.raises(LookupError):
        await manager.refresh_users(["u1", "u2", "u3"], 60)

    assert loader.calls == ["u1", "u2"]
    assert fake_redis.raw("ts-u_u1") is not None
    assert fake_redis.raw("ts-u_u3") is None


@pytest.mark.anyio
async def test_forget_only_removes_cached_user(builder, fake_redis):
    manager = builder.user_loader(RecordingLoader()).build()
    token = await manager.issue_token("u1", 60)
    await manager.fill_user("u1", 60)

    await manager.forget_user("u1")

    assert fake_redis.raw("ts-u_u1") is None
    assert await manager.list_user_tokens("u1") == [token]


@pytest.mark.anyio
async def test_corrupt_cached_user_is_reported(builder, fake_redis):
    manager = builder.user_loader(RecordingLoader()).build()
    token = await manager.issue_token("u1", 60)
    await fake_redis.set("ts-u_u1", "{broken")

    with pytest.raises(SerializationFailure):
        await manager.check_token_and_load_user(token, 60)


@pytest.mark.anyio
async def test_cache_write_failure_is_reported(builder, fake_redis):
    manager = builder.user_loader(RecordingLoader()).build()
    fake_redis.fail("set")

    with pytest.raises(StoreUnavailable):
        await manager.fill_user("u1", 60)


@pytest.mark.anyio
async def test_function_loader_accepts_sync_and_async():
    async def async_load(user_id):
        return User(id=user_id, detail="async")

    assert (await FunctionUserLoader(async_load).load_user("u1")).detail == "async"
    assert (await FunctionUserLoader(lambda user_id: User(id=user_id, detail="sync")).load_user("u1")).detail == "sync"
