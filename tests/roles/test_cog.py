import asyncio
from types import SimpleNamespace

from modules.roles.cog import GUILD_NOT_FOUND, USER_NOT_REGISTERED, RolesCog
from modules.roles.eligibility import DENIED_INVOKE_GUILD, DENIED_INVOKE_NO_GUILD
from modules.roles.models import TcnUser
from modules.roles.permissions import Permission


def _cog(reconciler):
    return RolesCog(SimpleNamespace(), reconciler=reconciler)


def test_prepare_menu_resolves_guild_alias(reconciler, backend):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s"))

    menu, message = asyncio.run(_cog(reconciler).prepare_menu("op", "s", "a"))

    assert message is None
    assert menu.guild_id == "100"
    assert Permission.OWNER in menu.eligibility


def test_prepare_menu_unknown_guild(reconciler, backend):
    menu, message = asyncio.run(_cog(reconciler).prepare_menu("op", "s", "nowhere"))
    assert menu is None
    assert message == GUILD_NOT_FOUND


def test_prepare_menu_runs_invocation_gate(reconciler, backend):
    backend.add_user(TcnUser(id="op", voter_of="100"))
    backend.add_user(TcnUser(id="s"))
    cog = _cog(reconciler)

    assert asyncio.run(cog.prepare_menu("op", "s", None)) == (None, DENIED_INVOKE_NO_GUILD)
    assert asyncio.run(cog.prepare_menu("op", "s", "100")) == (None, DENIED_INVOKE_GUILD)


def test_prepare_menu_committee_without_guild(reconciler, backend):
    backend.add_user(TcnUser(id="op", observer=True))
    backend.add_user(TcnUser(id="s", exec=True))

    menu, message = asyncio.run(_cog(reconciler).prepare_menu("op", "s", None))

    assert message is None
    assert menu.guild_id is None
    assert menu.defaults == (Permission.EXEC,)


def test_prepare_menu_unregistered_subject(reconciler, backend):
    backend.add_user(TcnUser(id="op", owner_of="100"))

    menu, message = asyncio.run(_cog(reconciler).prepare_menu("op", "ghost", "100"))

    assert menu is None
    assert message == USER_NOT_REGISTERED


def test_prepare_menu_suggests_close_guild_names(reconciler, backend):
    menu, message = asyncio.run(_cog(reconciler).prepare_menu("op", "s", "be"))

    assert menu is None
    assert message.startswith(GUILD_NOT_FOUND)
    assert "Beta Mains (b)" in message
    assert "Alpha Mains" not in message
