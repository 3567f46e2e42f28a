"""OpenStack (Nova/Neutron FWaaS) orphan cleanup and key pair caching."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import structlog

from node_lifecycle.cache import KeyedCache
from node_lifecycle.compute.models import ResourceRef
from node_lifecycle.compute.naming import GroupNamingConvention, firewall_policy_name
from node_lifecycle.config.models import LifecycleConfig

logger = structlog.get_logger()

FIREWALL_POLICY = "firewall_policy"
FIREWALL_RULE = "firewall_rule"
KEY_PAIR = "key_pair"


@dataclass(frozen=True, slots=True)
class RegionAndName:
    """Cache key for per-region named resources such as key pairs."""

    region: str
    name: str

    @property
    def slash_encoded(self) -> str:
        return f"{self.region}/{self.name}"

    @classmethod
    def from_slash_encoded(cls, value: str) -> RegionAndName:
        region, sep, name = value.partition("/")
        if not sep or not region or not name:
            msg = f"expected region/name, got {value!r}"
            raise ValueError(msg)
        return cls(region=region, name=name)


@runtime_checkable
class FirewallApi(Protocol):
    async def list_policies(self) -> list[Mapping[str, Any]]:
        """Policies as mappings with ``id``, ``name``, ``shared``, ``firewall_rules``."""
        ...

    async def delete_policy(self, policy_id: str) -> None: ...

    async def delete_rule(self, rule_id: str) -> None: ...


@runtime_checkable
class KeyPairApi(Protocol):
    async def list_key_pairs(self) -> list[Mapping[str, Any]]: ...

    async def create_key_pair(self, name: str) -> Mapping[str, Any]: ...

    async def delete_key_pair(self, name: str) -> None: ...


class KeyPairStore:
    """Per-region key pairs cached under their group's shared name.

    A key pair created for a group is installed with ``put`` straight after
    creation so concurrent nodes of that group reuse it.
    """

    def __init__(
        self,
        api: KeyPairApi,
        region: str,
        *,
        cache: KeyedCache[RegionAndName, Mapping[str, Any]],
        naming: GroupNamingConvention | None = None,
    ) -> None:
        self._api = api
        self._region = region
        self._cache = cache
        self._naming = naming or GroupNamingConvention()

    @property
    def cache(self) -> KeyedCache[RegionAndName, Mapping[str, Any]]:
        return self._cache

    def key_for_group(self, group: str) -> RegionAndName:
        return RegionAndName(self._region, self._naming.shared_name_for_group(group))

    async def create_for_group(self, group: str) -> Mapping[str, Any]:
        key_pair = await self._create(group)
        self._cache.put(self.key_for_group(group), key_pair)
        return key_pair

    async def get_for_group(self, group: str) -> Mapping[str, Any]:
        """Return the group's key pair, creating it once if not yet cached."""
        return await self._cache.get(
            self.key_for_group(group), lambda _: self._create(group)
        )

    async def _create(self, group: str) -> Mapping[str, Any]:
        key_pair = await self._api.create_key_pair(self._naming.name_for(group))
        logger.info(
            "keypair.created", region=self._region, group=group, name=key_pair.get("name")
        )
        return key_pair


class FirewallAndKeyPairOrphans:
    """Finds the firewall policy, its rules and group key pairs left by a node.

    Key pairs are only reported once ``group_in_use`` says no other node of
    the group remains.
    """

    def __init__(
        self,
        firewall: FirewallApi,
        key_pairs: KeyPairApi,
        region: str,
        *,
        naming: GroupNamingConvention | None = None,
        group_in_use: Callable[[str], Awaitable[bool]] | None = None,
    ) -> None:
        self._firewall = firewall
        self._key_pairs = key_pairs
        self._region = region
        self._naming = naming or GroupNamingConvention()
        self._group_in_use = group_in_use

    async def list_orphans(self, name: str) -> list[ResourceRef]:
        refs: list[ResourceRef] = []
        policy_name = firewall_policy_name(name, self._naming.prefix)
        for policy in await self._firewall.list_policies():
            if policy.get("shared") or policy.get("name") != policy_name:
                continue
            refs.append(ResourceRef(kind=FIREWALL_POLICY, id=policy["id"], name=policy_name))
            # Policy first, then its rules.
            for rule_id in policy.get("firewall_rules") or []:
                refs.append(ResourceRef(kind=FIREWALL_RULE, id=rule_id))

        group = self._naming.group_in_name(name)
        if group is None:
            return refs
        if self._group_in_use is not None and await self._group_in_use(group):
            logger.debug("orphans.group_in_use", region=self._region, group=group)
            return refs

        matches = self._naming.contains_group(group)
        cache_key = RegionAndName(self._region, self._naming.shared_name_for_group(group))
        for key_pair in await self._key_pairs.list_key_pairs():
            key_name = key_pair.get("name", "")
            if matches(key_name):
                refs.append(
                    ResourceRef(kind=KEY_PAIR, id=key_name, name=key_name, cache_key=cache_key)
                )
        return refs

    async def delete_orphan(self, ref: ResourceRef) -> None:
        if ref.kind == FIREWALL_POLICY:
            await self._firewall.delete_policy(ref.id)
        elif ref.kind == FIREWALL_RULE:
            await self._firewall.delete_rule(ref.id)
        elif ref.kind == KEY_PAIR:
            await self._key_pairs.delete_key_pair(ref.id)
        else:
            msg = f"Unknown orphan kind: {ref.kind}"
            raise ValueError(msg)
        logger.info("orphans.deleted", region=self._region, kind=ref.kind, orphan_id=ref.id)


def key_pair_store(api: KeyPairApi, region: str, config: LifecycleConfig) -> KeyPairStore:
    cache: KeyedCache[RegionAndName, Mapping[str, Any]] = KeyedCache(
        config.cache.key_pair_ttl_seconds, name="key_pairs"
    )
    return KeyPairStore(
        api, region, cache=cache, naming=GroupNamingConvention(config.naming_prefix)
    )
