import asyncio
import logging

import pytest

from modules.roles.eligibility import DENIED_NO_GUILD
from modules.roles.errors import ApiError, NotFoundError, ReconcileError, UnknownPermissionError
from modules.roles.intents import (
    PatchGuildStructuralRoles,
    RevokeCommittee,
    SetPermissionBits,
    UpdateMemberRoles,
)
from modules.roles.models import GuildState, TcnUser
from modules.roles.permissions import Permission


def _intents(report, kind):
    return [outcome.intent for outcome in report.outcomes if isinstance(outcome.intent, kind)]


def test_owner_grants_theory_and_voter_end_to_end(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s"))
    platform.add_member("100", "s", "42")
    platform.add_member("200", "s")

    report = asyncio.run(reconciler.reconcile("op", "s", "100", ["THEORY", "VOTER"]))

    assert report.ok
    assert report.summary() == "roles updated!"
    assert report.applied == (Permission.THEORY, Permission.VOTER)
    assert _intents(report, SetPermissionBits) == [
        SetPermissionBits("s", "100", int(Permission.THEORY))
    ]
    assert _intents(report, PatchGuildStructuralRoles) == [
        PatchGuildStructuralRoles("100", voter="s", owner="op", advisor=None)
    ]
    # Beta has no mapping for Alpha's THEORY and no voter role: untouched.
    assert platform.edits == [("100", "s", ("1004", "1011", "42"))]
    assert ("put_guild_permissions", "s", "100", int(Permission.THEORY)) in backend.calls
    assert ("patch_guild_holders", "100", "s", "op", None) in backend.calls


def test_committee_member_removes_exec(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", exec=True))
    backend.add_user(TcnUser(id="s", guilds={"100": 1}, exec=True))

    report = asyncio.run(reconciler.reconcile("op", "s", None, []))

    assert [outcome.intent for outcome in report.outcomes] == [
        RevokeCommittee("s", Permission.EXEC)
    ]
    assert backend.calls == [("remove_committee", "s", Permission.EXEC)]
    assert platform.edits == []


def test_existing_owner_cannot_be_made_owner_again(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", owner_of="200"))

    report = asyncio.run(reconciler.reconcile("op", "s", "100", ["OWNER"]))

    assert Permission.OWNER not in report.applied
    assert _intents(report, PatchGuildStructuralRoles) == []
    assert report.summary() == "roles already up to date"


def test_denial_is_reported_without_writes(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s"))

    report = asyncio.run(reconciler.reconcile("op", "s", None, ["EXEC"]))

    assert report.denial == DENIED_NO_GUILD
    assert report.summary() == DENIED_NO_GUILD
    assert not report.ok
    assert backend.calls == []


def test_missing_subject_and_guild_raise_not_found(reconciler, backend):
    backend.add_user(TcnUser(id="op", owner_of="100"))

    with pytest.raises(NotFoundError) as excinfo:
        asyncio.run(reconciler.reconcile("op", "ghost", "100", []))
    assert excinfo.value.kind == "user"

    backend.add_user(TcnUser(id="s"))
    with pytest.raises(NotFoundError) as excinfo:
        asyncio.run(reconciler.reconcile("op", "s", "999", []))
    assert excinfo.value.kind == "guild"


def test_failed_reads_abort_before_any_write(reconciler, backend):
    backend.read_error = RuntimeError("backend down")

    with pytest.raises(ReconcileError):
        asyncio.run(reconciler.reconcile("op", "s", "100", ["THEORY"]))
    assert backend.calls == []


def test_unknown_flag_names_are_rejected(reconciler):
    with pytest.raises(UnknownPermissionError):
        asyncio.run(reconciler.reconcile("op", "s", "100", ["WIZARD"]))


def test_write_failures_do_not_block_other_writes(reconciler, backend, platform, caplog):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s"))
    backend.failing.add("put_guild_permissions")
    platform.add_member("100", "s")

    with caplog.at_level(logging.WARNING, logger="tcn.roles.reconciler"):
        report = asyncio.run(reconciler.reconcile("op", "s", "100", ["MODERATOR", "ADVISOR"]))

    assert not report.ok
    assert len(report.failures) == 1
    failed = report.failures[0]
    assert isinstance(failed.intent, SetPermissionBits)
    assert "put_guild_permissions exploded" in failed.error
    # The structural patch and the Discord edit still went out.
    assert ("patch_guild_holders", "100", None, "op", "s") in backend.calls
    assert platform.edits == [("100", "s", ("1003", "1010"))]
    assert report.summary().startswith("roles partially updated: 1 of 3 writes failed")
    assert any(record.getMessage() == "role write failed" for record in caplog.records)


def test_discord_failure_is_reported_per_guild(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", guilds={"100": int(Permission.MODERATOR)}))
    platform.add_member("100", "s")
    platform.add_member("300", "s")
    platform.failing_guilds.add("300")

    report = asyncio.run(reconciler.reconcile("op", "s", "100", ["MODERATOR"]))

    updates = _intents(report, UpdateMemberRoles)
    assert sorted(update.guild_id for update in updates) == ["100", "300"]
    assert [outcome.intent.guild_id for outcome in report.failures] == ["300"]
    assert backend.calls == []


def test_reconcile_is_idempotent(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", guilds={"100": int(Permission.ART)}))
    platform.add_member("100", "s", "1012")

    report = asyncio.run(reconciler.reconcile("op", "s", "100", ["ART"]))

    assert report.outcomes == []
    assert report.ok
    assert report.trace_id


def test_menu_lists_eligible_flags_with_defaults(reconciler, backend):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", guilds={"100": int(Permission.DEV)}))

    menu = asyncio.run(reconciler.menu("op", "s", "100"))

    assert menu.denial is None
    entries = {flag: selected for flag, _, selected in menu.entries()}
    assert entries[Permission.DEV] is True
    assert entries[Permission.MODERATOR] is False
    assert Permission.OWNER in entries
    assert Permission.EXEC not in entries


def test_menu_without_guild_for_non_committee_operator(reconciler, backend):
    backend.add_user(TcnUser(id="s"))

    menu = asyncio.run(reconciler.menu("nobody", "s", None))

    assert menu.denial == DENIED_NO_GUILD
    assert menu.entries() == []


def test_advisor_elsewhere_keeps_hub_mirror_roles(reconciler, backend, platform):
    backend.add_guild(GuildState(id="200", name="Beta Mains", advisor_id="s"))
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", guilds={"200": int(Permission.THEORY)}, advisor_of="200"))
    platform.add_member("300", "s", "3021")

    report = asyncio.run(reconciler.reconcile("op", "s", "100", ["ADVISOR"]))

    assert [outcome.intent for outcome in report.outcomes] == [
        PatchGuildStructuralRoles("100", voter=None, owner="op", advisor="s")
    ]
    assert platform.edits == []


def test_failed_guild_listing_aborts_before_any_write(reconciler, backend, platform):
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", voter_of="300"))
    backend.list_error = ApiError(200, "GET", "/guilds", "unexpected guild list payload")
    platform.add_member("300", "s", "3004")

    with pytest.raises(ReconcileError):
        asyncio.run(reconciler.reconcile("op", "s", "100", ["THEORY"]))
    assert backend.calls == []
    assert platform.edits == []


def test_unlisted_guild_state_is_read_individually(reconciler, backend, platform):
    backend.add_guild(GuildState(id="300", name="TCN Hub", voter_id="s"))
    backend.unlisted.add("300")
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", voter_of="300"))
    platform.add_member("300", "s")

    report = asyncio.run(reconciler.reconcile("op", "s", "100", []))

    assert report.ok
    assert platform.edits == [("300", "s", ("3004",))]


def test_unknown_guild_state_leaves_structural_roles(reconciler, backend, platform):
    del backend.guilds["300"]
    backend.add_user(TcnUser(id="op", owner_of="100"))
    backend.add_user(TcnUser(id="s", guilds={"100": int(Permission.MODERATOR)}))
    platform.add_member("300", "s", "3002")

    report = asyncio.run(reconciler.reconcile("op", "s", "100", ["MODERATOR"]))

    assert report.ok
    assert platform.edits == [("300", "s", ("3002", "3010"))]
