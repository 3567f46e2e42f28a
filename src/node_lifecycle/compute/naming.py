"""Group-encoded node names and the firewall names derived from them."""

from __future__ import annotations

import re
import secrets
from collections.abc import Callable

DEFAULT_PREFIX = "nodes"


class GroupNamingConvention:
    """Encodes a group into resource names as ``{prefix}-{group}-{suffix}``.

    Shared resources of a group (key pairs, security groups) use the bare
    ``{prefix}-{group}`` form.
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX, delimiter: str = "-") -> None:
        if not prefix:
            msg = "naming prefix must not be empty"
            raise ValueError(msg)
        self.prefix = prefix
        self.delimiter = delimiter
        self._unique = re.compile(
            rf"^{re.escape(prefix + delimiter)}(?P<group>.+){re.escape(delimiter)}[0-9a-f]+$"
        )

    def shared_name_for_group(self, group: str) -> str:
        return f"{self.prefix}{self.delimiter}{group}"

    def name_for(self, group: str, suffix: str | None = None) -> str:
        """Build a unique name for a member of *group*.

        A random three-digit hex suffix is used unless one is given.
        """
        suffix = suffix if suffix is not None else secrets.token_hex(2)[:3]
        return f"{self.shared_name_for_group(group)}{self.delimiter}{suffix}"

    def group_in_name(self, name: str) -> str | None:
        """Extract the group from a unique name, or None if it does not match."""
        match = self._unique.match(name)
        return match.group("group") if match else None

    def contains_group(self, group: str) -> Callable[[str], bool]:
        """Predicate matching the shared name of *group* and its unique names."""
        shared = self.shared_name_for_group(group)

        def _matches(name: str) -> bool:
            return name == shared or self.group_in_name(name) == group

        return _matches


def firewall_policy_name(name: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Name of the per-node firewall policy created alongside node *name*."""
    return f"{prefix}-fw-policy-{name}"


def firewall_rule_name(name: str, port: int, prefix: str = DEFAULT_PREFIX) -> str:
    """Name of the inbound rule opening *port* for node *name*."""
    return f"{prefix}-fw-rule-{name}_port-{port}"
