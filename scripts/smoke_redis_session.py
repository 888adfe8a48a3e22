"""Quick smoke test for Redis-backed token sessions.

Run with REDIS_URL (or REDIS_HOSTS / REDIS_SENTINEL_MASTER) pointing at a
reachable Redis deployment.
"""

from __future__ import annotations

import asyncio
import os
import sys

from token_session import SessionManager, User, create_session_manager, verify_connection


class SmokeFailure(RuntimeError):
    pass


async def run_smoke() -> None:
    manager: SessionManager = create_session_manager(
        loader=lambda user_id: User(id=user_id, detail={"source": "smoke"}),
    )
    await verify_connection(manager.client)
    print("[+] Connected to Redis")

    await manager.revoke_user_tokens("smoke-user")
    first = await manager.issue_token("smoke-user", 5)
    user = await manager.check_token_and_load_user(first, 30)
    if user is None or user.detail != {"source": "smoke"}:
        raise SmokeFailure(f"Expected loaded user after issue, got {user!r}")
    print("[+] Token issued and user cache filled")

    second = await manager.issue_token("smoke-user", 5)
    tokens = await manager.list_user_tokens("smoke-user")
    expected = [second] if manager.settings.single_mode else [first, second]
    if sorted(tokens) != sorted(expected):
        raise SmokeFailure(f"Unexpected token index {tokens!r}")
    print("[+] Token index tracks issued tokens")

    await manager.revoke_token(second)
    if await manager.check_token(second) is not None:
        raise SmokeFailure("Revoked token still resolves")
    print("[+] Revoked token no longer resolves")

    print("[+] Waiting for TTL to expire...")
    await asyncio.sleep(6)

    if await manager.check_token(first) is not None:
        raise SmokeFailure("Token still valid after TTL expiry")
    if await manager.list_user_tokens("smoke-user"):
        raise SmokeFailure("Index still lists expired tokens")
    print("[+] Expired tokens swept from the index")

    await manager.forget_user("smoke-user")
    await manager.aclose()
    print("[✓] Redis session smoke test passed")


def main() -> int:
    if not (os.environ.get("REDIS_URL") or os.environ.get("REDIS_HOSTS")):
        print("ERROR: REDIS_URL or REDIS_HOSTS environment variable not set", file=sys.stderr)
        return 2

    try:
        asyncio.run(run_smoke())
    except SmokeFailure as exc:
        print(f"SMOKE FAILURE: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130
    except Exception as exc:  # pragma: no cover
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
