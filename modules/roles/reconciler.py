"""Orchestrates eligibility, diffing, projection, and the fan-out of writes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from shared.logging import set_trace_id

from .catalog import GuildCatalog
from .diff import apply_plan, plan_central_writes
from .eligibility import Eligibility, current_selection, resolve_eligibility
from .errors import NotFoundError, ReconcileError
from .intents import BackendWriter, IntentOutcome, PlatformWriter, WriteIntent
from .models import GuildState, Membership, TcnUser
from .permissions import FlagLike, Permission, label, parse_flag
from .projector import project_all

__all__ = [
    "BackendReader",
    "PlatformReader",
    "RoleMenu",
    "ReconcileReport",
    "RoleReconciler",
]

log = logging.getLogger("tcn.roles.reconciler")


class BackendReader(BackendWriter, Protocol):
    async def get_user(self, user_id: str) -> Optional[TcnUser]: ...

    async def get_guild(self, guild_id: str) -> Optional[GuildState]: ...

    async def list_guilds(self) -> List[GuildState]: ...


class PlatformReader(PlatformWriter, Protocol):
    async def get_membership(self, guild_id: str, user_id: str) -> Optional[Membership]: ...


@dataclass(frozen=True, slots=True)
class RoleMenu:
    """What the interactive surface shows for one operator/subject/guild triple."""

    subject_id: str
    guild_id: Optional[str]
    eligibility: Eligibility
    defaults: Tuple[Permission, ...] = ()

    @property
    def denial(self) -> Optional[str]:
        return self.eligibility.denial

    def entries(self) -> List[Tuple[Permission, str, bool]]:
        return [
            (flag, label(flag), flag in self.defaults) for flag in self.eligibility.options
        ]


@dataclass(slots=True)
class ReconcileReport:
    subject_id: str
    guild_id: Optional[str]
    denial: Optional[str] = None
    applied: Tuple[Permission, ...] = ()
    outcomes: List[IntentOutcome] = field(default_factory=list)
    trace_id: str = ""

    @property
    def failures(self) -> List[IntentOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def ok(self) -> bool:
        return self.denial is None and not self.failures

    def summary(self) -> str:
        if self.denial is not None:
            return self.denial
        if not self.outcomes:
            return "roles already up to date"
        failures = self.failures
        if not failures:
            return "roles updated!"
        lines = [
            f"roles partially updated: {len(failures)} of {len(self.outcomes)} writes failed"
        ]
        for outcome in failures:
            lines.append(f"• {outcome.intent.describe()}: {outcome.error}")
        return "\n".join(lines)


def _summarize_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if not message:
        message = exc.__class__.__name__
    return " ".join(message.split())[:200]


class RoleReconciler:
    """Single entry point for menu rendering and reconciliation passes.

    The guild catalog is an immutable snapshot supplied at construction time;
    user, guild, and membership state is re-read on every call.
    """

    def __init__(
        self,
        api: BackendReader,
        platform: PlatformReader,
        catalog: GuildCatalog,
    ) -> None:
        self.api = api
        self.platform = platform
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def _read_context(
        self, operator_id: str, subject_id: str, guild_id: Optional[str]
    ) -> Tuple[Optional[TcnUser], TcnUser, Optional[GuildState]]:
        async def _no_guild() -> None:
            return None

        try:
            operator, subject, guild = await asyncio.gather(
                self.api.get_user(str(operator_id)),
                self.api.get_user(str(subject_id)),
                self.api.get_guild(str(guild_id)) if guild_id is not None else _no_guild(),
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ReconcileError(f"initial reads failed: {_summarize_exception(exc)}") from exc

        if subject is None:
            raise NotFoundError("user", subject_id)
        if guild_id is not None and guild is None:
            raise NotFoundError("guild", guild_id)
        return operator, subject, guild

    async def _read_projection_inputs(
        self, subject_id: str
    ) -> Tuple[Dict[str, GuildState], Dict[str, Membership]]:
        configs = list(self.catalog)
        try:
            states, *memberships = await asyncio.gather(
                self.api.list_guilds(),
                *(self.platform.get_membership(config.id, str(subject_id)) for config in configs),
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ReconcileError(
                f"membership reads failed: {_summarize_exception(exc)}"
            ) from exc
        state_map = {state.id: state for state in states}
        membership_map = {
            config.id: membership
            for config, membership in zip(configs, memberships)
            if membership is not None
        }
        missing = [guild_id for guild_id in membership_map if guild_id not in state_map]
        if missing:
            state_map.update(await self._read_missing_states(missing))
        return state_map, membership_map

    async def _read_missing_states(self, guild_ids: Sequence[str]) -> Dict[str, GuildState]:
        try:
            found = await asyncio.gather(*(self.api.get_guild(guild_id) for guild_id in guild_ids))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ReconcileError(f"guild reads failed: {_summarize_exception(exc)}") from exc
        unknown = [guild_id for guild_id, state in zip(guild_ids, found) if state is None]
        if unknown:
            # Structural roles in these guilds are left as they are.
            log.warning(
                "configured guilds missing from backend",
                extra={"guilds": ",".join(unknown)},
            )
        return {state.id: state for state in found if state is not None}

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------
    async def menu(
        self, operator_id: str, subject_id: str, guild_id: Optional[str]
    ) -> RoleMenu:
        operator, subject, guild = await self._read_context(operator_id, subject_id, guild_id)
        eligibility = resolve_eligibility(operator, subject, guild.id if guild else None)
        return RoleMenu(
            subject_id=subject.id,
            guild_id=guild.id if guild else None,
            eligibility=eligibility,
            defaults=current_selection(subject, guild, eligibility.options),
        )

    async def reconcile(
        self,
        operator_id: str,
        subject_id: str,
        guild_id: Optional[str],
        requested: Iterable[FlagLike],
    ) -> ReconcileReport:
        """Bring the backend and every guild membership in line with ``requested``.

        Raises ``NotFoundError``/``ReconcileError`` only for the initial reads;
        write failures are reported per intent on the returned report.
        """

        requested_flags = [parse_flag(value) for value in requested]
        trace = set_trace_id()
        report = ReconcileReport(
            subject_id=str(subject_id),
            guild_id=str(guild_id) if guild_id is not None else None,
            trace_id=trace,
        )

        operator, subject, guild = await self._read_context(operator_id, subject_id, guild_id)
        eligibility = resolve_eligibility(operator, subject, guild.id if guild else None)
        if eligibility.denial is not None:
            log.info(
                "role reconcile denied",
                extra={
                    "operator_id": str(operator_id),
                    "subject_id": subject.id,
                    "guild_id": report.guild_id,
                    "denial": eligibility.denial,
                },
            )
            report.denial = eligibility.denial
            return report

        plan = plan_central_writes(subject, guild, eligibility, requested_flags)
        report.applied = plan.applied
        dropped = [flag.name for flag in requested_flags if flag not in plan.applied]
        if dropped:
            log.info(
                "requested flags not eligible, ignored",
                extra={"subject_id": subject.id, "flags": ",".join(dropped)},
            )

        states, memberships = await self._read_projection_inputs(subject.id)
        if plan.guild is not None:
            states[plan.guild.id] = plan.guild
        updated = apply_plan(subject, plan)
        intents: List[WriteIntent] = list(plan.intents)
        intents.extend(project_all(updated, self.catalog, states, memberships))

        report.outcomes = await self._dispatch(intents)
        log.info(
            "role reconcile complete",
            extra={
                "operator_id": str(operator_id),
                "subject_id": subject.id,
                "guild_id": report.guild_id,
                "intents": len(report.outcomes),
                "failed": len(report.failures),
                "memberships": len(memberships),
            },
        )
        return report

    async def _dispatch(self, intents: Sequence[WriteIntent]) -> List[IntentOutcome]:
        if not intents:
            return []
        results = await asyncio.gather(
            *(intent.apply(self.api, self.platform) for intent in intents),
            return_exceptions=True,
        )
        outcomes: List[IntentOutcome] = []
        for intent, result in zip(intents, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log.warning(
                    "role write failed",
                    exc_info=result,
                    extra={"intent": intent.describe(), "target": intent.target},
                )
                outcomes.append(
                    IntentOutcome(intent=intent, ok=False, error=_summarize_exception(result))
                )
            else:
                outcomes.append(IntentOutcome(intent=intent, ok=True))
        return outcomes

