"""
Canon/Alias Resolver.

Resolves deprecated identifiers to canonical ones. Leniency narrows by
tier once the sunset date has passed:

    id state                       prCore  release  promotion
    canonical                      PASS    PASS     PASS
    alias, today <= sunset         PASS    PASS     PASS
    alias, today > sunset          WARN    WARN     FAIL
    deprecated prefix, no alias    per E_ALIAS_UNKNOWN mode matrix

(the last two rows follow the engine registry, so the table above is the
default schedule, not hard-coded here)

resolve() takes `today` explicitly and never reads the clock.
"""

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import parse_model
from opsgate.schema import AliasCanon, AliasResolution, Disposition, GateResult, Tier
from opsgate.timeutil import parse_date

logger = logging.getLogger(__name__)

TOKEN_NAME = "ALIAS_CANON_OK"
FAIL_SIGNAL_CODE = "E_ALIAS_CANON_INVALID"

ID_INVALID = "E_ALIAS_ID_INVALID"
ALIAS_UNKNOWN = "E_ALIAS_UNKNOWN"
NAMESPACE_UNKNOWN = "E_ALIAS_NAMESPACE_UNKNOWN"
SUNSET_EXPIRED = "E_ALIAS_SUNSET_EXPIRED"
MAP_INVALID = "E_ALIAS_MAP_INVALID"
SUNSET_ENFORCED = "E_ALIAS_SUNSET_ENFORCED"

DEPRECATED_WARNING = "ALIAS_DEPRECATED"


class AliasResolver:
    """
    Sunset-aware resolver over one AliasCanon.

    Usage:
        resolver = AliasResolver(canon)
        resolution = resolver.resolve("deprecated.save", "release", date(2026, 1, 1))
        if resolution.ok:
            run(resolution.canonical_id)

    Attributes:
        canon: The AliasCanon document
        enforce_sunset: Expired aliases FAIL in every tier
    """

    def __init__(
        self,
        canon: AliasCanon | dict[str, Any],
        resolver: DispositionResolver | None = None,
        enforce_sunset: bool = False,
    ) -> None:
        self.canon = parse_model(canon, AliasCanon, path="aliasCanon")
        self.resolver = resolver or DispositionResolver()
        self.enforce_sunset = enforce_sunset

    def _is_deprecated(self, identifier: str) -> bool:
        return any(identifier.startswith(prefix) for prefix in self.canon.deprecated_prefixes)

    def _failure(
        self,
        identifier: str,
        code: str,
        tier: Tier,
        deprecated: bool = False,
    ) -> AliasResolution:
        return AliasResolution(
            input_id=identifier,
            ok=False,
            canonical_id=None,
            disposition=self.resolver.resolve(code, tier),
            tier=tier,
            deprecated=deprecated,
            fail_signal_code=code,
        )

    def resolve(self, identifier: Any, tier: Tier | str, today: date | str) -> AliasResolution:
        """
        Resolve one identifier.

        Args:
            identifier: Canonical or deprecated id
            tier: Pipeline tier
            today: Current date, passed in by the caller

        Returns:
            AliasResolution; ok is False for ids that can never resolve
            and for expired aliases whose disposition is FAIL

        Raises:
            TierError: If tier cannot be parsed
            DateFormatError: If today is not a valid date
        """
        tier = Tier.parse(tier)
        today = parse_date(today)
        identifier = identifier.strip() if isinstance(identifier, str) else ""

        if not identifier:
            return self._failure("", ID_INVALID, tier)

        if identifier.startswith(self.canon.canonical_prefix):
            return AliasResolution(
                input_id=identifier,
                ok=True,
                canonical_id=identifier,
                disposition=Disposition.PASS,
                tier=tier,
            )

        deprecated = self._is_deprecated(identifier)
        target = self.canon.alias_map.get(identifier)
        if target is None:
            code = ALIAS_UNKNOWN if deprecated else NAMESPACE_UNKNOWN
            logger.debug("No alias for %s (%s)", identifier, code)
            return self._failure(identifier, code, tier, deprecated=deprecated)

        if today <= self.canon.sunset_date_utc:
            return AliasResolution(
                input_id=identifier,
                ok=True,
                canonical_id=target,
                disposition=Disposition.PASS,
                tier=tier,
                deprecated=True,
                warnings=[DEPRECATED_WARNING],
            )

        if self.enforce_sunset:
            disposition = Disposition.FAIL
        else:
            disposition = self.resolver.resolve(SUNSET_EXPIRED, tier)
        ok = disposition is not Disposition.FAIL
        logger.debug("Alias %s expired on %s: %s in %s", identifier, self.canon.sunset_date_utc, disposition.value, tier.value)
        return AliasResolution(
            input_id=identifier,
            ok=ok,
            canonical_id=target if ok else None,
            disposition=disposition,
            tier=tier,
            deprecated=True,
            sunset_expired=True,
            fail_signal_code=SUNSET_EXPIRED,
            warnings=[DEPRECATED_WARNING, SUNSET_EXPIRED],
        )

    def map_issues(self) -> IssueCollector:
        """Alias map entries whose target is not canonical, or whose key already is."""
        issues = IssueCollector()
        prefix = self.canon.canonical_prefix
        for alias_id in sorted(self.canon.alias_map):
            target = self.canon.alias_map[alias_id]
            if not target.startswith(prefix):
                issues.add(MAP_INVALID, f"aliasMap.{alias_id}", f"target {target} does not start with {prefix}")
            if alias_id.startswith(prefix):
                issues.add(MAP_INVALID, f"aliasMap.{alias_id}", f"alias {alias_id} is already canonical")
        return issues

    def resolve_many(
        self,
        identifiers: Iterable[Any],
        tier: Tier | str,
        today: date | str,
    ) -> GateResult:
        """
        Resolve a batch of ids into one GateResult.

        Each failed or warned resolution contributes an issue under its own
        code, so the aggregate disposition is the worst of them.
        """
        tier = Tier.parse(tier)
        issues = self.map_issues()
        resolutions = []
        for index, identifier in enumerate(identifiers):
            resolution = self.resolve(identifier, tier, today)
            resolutions.append(resolution.to_output())
            if resolution.fail_signal_code:
                issues.add(
                    resolution.fail_signal_code,
                    f"ids[{index}]",
                    f"{resolution.input_id or '<empty>'}: {resolution.disposition.value}",
                )

        if self.enforce_sunset:
            expired = [r for r in resolutions if r["sunsetExpired"]]
            if expired:
                issues.add(SUNSET_ENFORCED, "enforceSunset", f"{len(expired)} alias(es) past sunset")

        return self.resolver.evaluate(
            check="alias",
            token_name=TOKEN_NAME,
            fail_signal_code=FAIL_SIGNAL_CODE,
            tier=tier,
            issues=issues.sorted(),
            details={
                "today": parse_date(today).isoformat(),
                "sunsetDateUtc": self.canon.sunset_date_utc.isoformat(),
                "resolutions": resolutions,
            },
        )
