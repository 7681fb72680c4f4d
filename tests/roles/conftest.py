from __future__ import annotations

from typing import Iterable, Optional

import pytest

from modules.roles.catalog import GuildCatalog, parse_guild_catalog
from modules.roles.models import GuildState, Membership, TcnUser
from modules.roles.permissions import Permission
from modules.roles.reconciler import RoleReconciler

ALPHA = "100"
BETA = "200"
HUB = "300"

CATALOG_PAYLOAD = {
    "guilds": [
        {
            "id": ALPHA,
            "name": "Alpha Mains",
            "alias": "a",
            "roles": {
                "bot": "1001",
                "owner": "1002",
                "advisor": "1003",
                "voter": "1004",
                "permissions": {
                    ALPHA: {"MODERATOR": "1010", "THEORY": "1011", "ART": "1012"},
                },
            },
        },
        {
            "id": BETA,
            "name": "Beta Mains",
            "alias": "b",
            "single_color_role": True,
            "roles": {
                "bot": "2001",
                "owner": "2002",
                "advisor": "2003",
                "permissions": {
                    BETA: {"MODERATOR": "2010", "THEORY": "2011", "LEAKS": "2012"},
                },
            },
        },
        {
            "id": HUB,
            "name": "TCN Hub",
            "alias": "hub",
            "single_color_role": True,
            "roles": {
                "bot": "3001",
                "owner": "3002",
                "advisor": "3003",
                "voter": "3004",
                "permissions": {
                    ALPHA: {"MODERATOR": "3010", "THEORY": "3011"},
                    BETA: {"THEORY": "3021"},
                },
            },
        },
    ]
}


class FakeBackend:
    """In-memory TCN API double recording every write."""

    def __init__(
        self,
        users: Iterable[TcnUser] = (),
        guilds: Iterable[GuildState] = (),
    ) -> None:
        self.users = {user.id: user for user in users}
        self.guilds = {guild.id: guild for guild in guilds}
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.read_error: Exception | None = None
        self.list_error: Exception | None = None
        self.unlisted: set[str] = set()

    def add_user(self, user: TcnUser) -> TcnUser:
        self.users[user.id] = user
        return user

    def add_guild(self, guild: GuildState) -> GuildState:
        self.guilds[guild.id] = guild
        return guild

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if name in self.failing:
            raise RuntimeError(f"{name} exploded")

    async def get_user(self, user_id: str) -> Optional[TcnUser]:
        if self.read_error is not None:
            raise self.read_error
        return self.users.get(user_id)

    async def get_guild(self, guild_id: str) -> Optional[GuildState]:
        return self.guilds.get(guild_id)

    async def list_guilds(self) -> list[GuildState]:
        if self.list_error is not None:
            raise self.list_error
        return [guild for guild in self.guilds.values() if guild.id not in self.unlisted]

    async def put_guild_permissions(self, user_id: str, guild_id: str, bits: int) -> None:
        self._record("put_guild_permissions", user_id, guild_id, bits)

    async def add_committee(self, user_id: str, committee: Permission) -> None:
        self._record("add_committee", user_id, committee)

    async def remove_committee(self, user_id: str, committee: Permission) -> None:
        self._record("remove_committee", user_id, committee)

    async def patch_guild_holders(self, guild_id: str, *, voter, owner, advisor) -> None:
        self._record("patch_guild_holders", guild_id, voter, owner, advisor)


class FakePlatform:
    def __init__(self, memberships: Iterable[Membership] = ()) -> None:
        self.memberships = {(m.guild_id, m.user_id): m for m in memberships}
        self.edits: list[tuple[str, str, tuple[str, ...]]] = []
        self.failing_guilds: set[str] = set()

    def add_member(self, guild_id: str, user_id: str, *role_ids: str, bot: bool = False) -> Membership:
        membership = Membership.build(guild_id, user_id, role_ids, bot=bot)
        self.memberships[(membership.guild_id, membership.user_id)] = membership
        return membership

    async def get_membership(self, guild_id: str, user_id: str) -> Optional[Membership]:
        return self.memberships.get((guild_id, user_id))

    async def set_member_roles(self, guild_id: str, user_id: str, role_ids) -> None:
        self.edits.append((guild_id, user_id, tuple(role_ids)))
        if guild_id in self.failing_guilds:
            raise RuntimeError(f"discord refused edit in {guild_id}")


@pytest.fixture
def catalog() -> GuildCatalog:
    return parse_guild_catalog(CATALOG_PAYLOAD)


@pytest.fixture
def guild_states() -> dict[str, GuildState]:
    return {
        ALPHA: GuildState(id=ALPHA, name="Alpha Mains", owner_id="op"),
        BETA: GuildState(id=BETA, name="Beta Mains"),
        HUB: GuildState(id=HUB, name="TCN Hub"),
    }


@pytest.fixture
def backend(guild_states) -> FakeBackend:
    return FakeBackend(guilds=guild_states.values())


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def reconciler(backend, platform, catalog) -> RoleReconciler:
    return RoleReconciler(backend, platform, catalog)
