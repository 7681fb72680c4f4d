"""Static guild catalog: role mappings and per-guild policy flags."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .errors import GuildCatalogError, UnknownPermissionError
from .permissions import PLAIN_FLAGS, Permission, parse_flag

__all__ = [
    "RoleCatalog",
    "GuildConfig",
    "GuildCatalog",
    "parse_guild_catalog",
    "load_guild_catalog",
]

log = logging.getLogger("tcn.roles.catalog")


def _normalize_text(value: object) -> str:
    return str(value or "").strip()


def _optional_id(value: object) -> Optional[str]:
    text = _normalize_text(value)
    return text or None


@dataclass(frozen=True, slots=True)
class RoleCatalog:
    """Discord role ids owned by the engine in a single guild."""

    bot: Optional[str] = None
    owner: Optional[str] = None
    advisor: Optional[str] = None
    voter: Optional[str] = None
    # source guild id -> flag name -> role id in this guild
    permissions: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    @property
    def managed(self) -> frozenset[str]:
        ids = {role for role in (self.bot, self.owner, self.advisor, self.voter) if role}
        for mapping in self.permissions.values():
            ids.update(mapping.values())
        return frozenset(ids)

    def permission_role(self, source_guild_id: str, flag: Permission) -> Optional[str]:
        mapping = self.permissions.get(str(source_guild_id)) or {}
        return mapping.get(flag.name)


@dataclass(frozen=True, slots=True)
class GuildConfig:
    id: str
    name: str
    alias: str = ""
    single_color_role: bool = False
    roles: RoleCatalog = field(default_factory=RoleCatalog)


def _parse_permission_roles(raw: object, *, guild_id: str) -> Dict[str, Dict[str, str]]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise GuildCatalogError(f"guild {guild_id}: roles.permissions must be an object")
    parsed: Dict[str, Dict[str, str]] = {}
    for source_id, mapping in raw.items():
        if not isinstance(mapping, Mapping):
            raise GuildCatalogError(
                f"guild {guild_id}: permissions for {source_id} must be an object"
            )
        entries: Dict[str, str] = {}
        for flag_name, role_id in mapping.items():
            try:
                flag = parse_flag(flag_name)
            except UnknownPermissionError as exc:
                raise GuildCatalogError(f"guild {guild_id}: {exc}") from exc
            if flag not in PLAIN_FLAGS:
                raise GuildCatalogError(
                    f"guild {guild_id}: {flag.name} cannot be mapped as a permission role"
                )
            role = _optional_id(role_id)
            if role:
                entries[flag.name] = role
        if entries:
            parsed[_normalize_text(source_id)] = entries
    return parsed


def _parse_guild(entry: object, index: int) -> GuildConfig:
    if not isinstance(entry, Mapping):
        raise GuildCatalogError(f"guild entry #{index} must be an object")
    guild_id = _normalize_text(entry.get("id"))
    if not guild_id:
        raise GuildCatalogError(f"guild entry #{index} is missing an id")
    roles = entry.get("roles") or {}
    if not isinstance(roles, Mapping):
        raise GuildCatalogError(f"guild {guild_id}: roles must be an object")
    catalog = RoleCatalog(
        bot=_optional_id(roles.get("bot")),
        owner=_optional_id(roles.get("owner")),
        advisor=_optional_id(roles.get("advisor")),
        voter=_optional_id(roles.get("voter")),
        permissions=_parse_permission_roles(roles.get("permissions"), guild_id=guild_id),
    )
    return GuildConfig(
        id=guild_id,
        name=_normalize_text(entry.get("name")) or guild_id,
        alias=_normalize_text(entry.get("alias") or entry.get("character")).lower(),
        single_color_role=bool(entry.get("single_color_role") or entry.get("singleColorRole")),
        roles=catalog,
    )


class GuildCatalog:
    """Immutable snapshot of every configured guild, in file order."""

    def __init__(self, guilds: Sequence[GuildConfig] = ()) -> None:
        ordered: Dict[str, GuildConfig] = {}
        for guild in guilds:
            if guild.id in ordered:
                raise GuildCatalogError(f"duplicate guild id {guild.id}")
            ordered[guild.id] = guild
        self._guilds: Tuple[GuildConfig, ...] = tuple(ordered.values())
        self._by_id = ordered

    def __iter__(self) -> Iterator[GuildConfig]:
        return iter(self._guilds)

    def __len__(self) -> int:
        return len(self._guilds)

    def __contains__(self, guild_id: object) -> bool:
        return str(guild_id) in self._by_id

    def get(self, guild_id: object) -> Optional[GuildConfig]:
        if guild_id is None:
            return None
        return self._by_id.get(str(guild_id))

    def search(self, query: str, *, limit: int = 25) -> List[GuildConfig]:
        """Guilds whose name or alias starts with ``query`` (case-insensitive)."""

        needle = _normalize_text(query).lower()
        matches = [
            guild
            for guild in self._guilds
            if guild.name.lower().startswith(needle) or guild.alias.startswith(needle)
        ]
        return matches[:limit]

    def resolve(self, query: str) -> Optional[GuildConfig]:
        """Resolve a guild by id, exact name, or alias."""

        text = _normalize_text(query)
        if not text:
            return None
        direct = self.get(text)
        if direct is not None:
            return direct
        lowered = text.lower()
        for guild in self._guilds:
            if guild.name.lower() == lowered or (guild.alias and guild.alias == lowered):
                return guild
        return None


def parse_guild_catalog(payload: object) -> GuildCatalog:
    if isinstance(payload, Mapping):
        entries = payload.get("guilds")
    else:
        entries = payload
    if not isinstance(entries, (list, tuple)):
        raise GuildCatalogError("guild catalog must be a list or an object with a 'guilds' list")
    return GuildCatalog([_parse_guild(entry, index) for index, entry in enumerate(entries)])


def load_guild_catalog(path: Path | str) -> GuildCatalog:
    """Load the guild catalog from a JSON file."""

    catalog_path = Path(path)
    try:
        with catalog_path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError as exc:
        raise GuildCatalogError(f"guild catalog not found: {catalog_path}") from exc
    except json.JSONDecodeError as exc:
        raise GuildCatalogError(f"guild catalog is not valid JSON: {exc}") from exc
    catalog = parse_guild_catalog(payload)
    log.info(
        "guild catalog loaded",
        extra={"path": str(catalog_path), "guilds": len(catalog)},
    )
    return catalog
