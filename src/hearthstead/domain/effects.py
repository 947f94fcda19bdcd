"""Effect aggregation for houses, guilds and religions."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from .catalog import EFFECT_KINDS, AdjacencyRule, CatalogEntry
from .enums import EffectKind


class ActiveModifierSet(Mapping[str, int | float]):
    """Read-only ``effect_key -> total`` map with the kind of each key."""

    __slots__ = ("_kinds", "_values")

    def __init__(
        self,
        values: Mapping[str, int | float] | None = None,
        kinds: Mapping[str, EffectKind] | None = None,
    ) -> None:
        self._values = dict(values or {})
        self._kinds = {key: (kinds or {}).get(key, EFFECT_KINDS.get(key, EffectKind.FLAT))
                       for key in self._values}

    def __getitem__(self, key: str) -> int | float:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ActiveModifierSet({self._values!r})"

    def kind(self, key: str) -> EffectKind:
        return self._kinds[key]

    def as_dict(self) -> dict[str, int | float]:
        return dict(self._values)

    def apply(self, key: str, base: float) -> float:
        """Apply the accumulated ``key`` modifier to ``base``."""
        if key not in self._values:
            return base
        return apply_modifier(base, self._values[key], self._kinds[key])


@dataclass(frozen=True, slots=True)
class ModifierSource:
    """One line of a modifier breakdown."""

    source: str
    effect_key: str
    value: int | float


def aggregate(
    active_entries: Iterable[CatalogEntry],
    adjacency_rules: Iterable[AdjacencyRule] = (),
    *,
    active_types: Iterable[str] | None = None,
) -> ActiveModifierSet:
    """Sum entry effects and satisfied adjacency bonuses.

    Args:
        active_entries: Entries currently active for one subject; duplicates
            count once per occurrence
        adjacency_rules: Rules tested against ``active_types``
        active_types: Entity types present for the subject (room types for a
            house); defaults to the keys of ``active_entries``

    Returns:
        ActiveModifierSet whose values do not depend on iteration order
    """
    entries = list(active_entries)
    totals: dict[str, int | float] = {}
    kinds: dict[str, EffectKind] = {}

    for entry in entries:
        for effect in entry.effects:
            totals[effect.key] = totals.get(effect.key, 0) + effect.value
            kinds[effect.key] = effect.kind

    present = frozenset(active_types) if active_types is not None else frozenset(
        entry.key for entry in entries
    )
    for rule in adjacency_rules:
        if rule.satisfied_by(present):
            totals[rule.effect_key] = totals.get(rule.effect_key, 0) + rule.value
            kinds[rule.effect_key] = rule.kind

    # Insertion order follows the caller's iteration; sort so equal inputs give equal reprs.
    ordered = {key: totals[key] for key in sorted(totals)}
    return ActiveModifierSet(ordered, kinds)


def effect_sources(
    labelled_entries: Iterable[tuple[str, CatalogEntry]],
    adjacency_rules: Iterable[AdjacencyRule] = (),
    *,
    active_types: Iterable[str] = (),
) -> list[ModifierSource]:
    """Per-source breakdown of what :func:`aggregate` would sum."""
    sources = [
        ModifierSource(source=label, effect_key=effect.key, value=effect.value)
        for label, entry in labelled_entries
        for effect in entry.effects
    ]
    present = frozenset(active_types)
    sources.extend(
        ModifierSource(
            source=f"Adjacency: {rule.description}",
            effect_key=rule.effect_key,
            value=rule.value,
        )
        for rule in adjacency_rules
        if rule.satisfied_by(present)
    )
    return sources


def apply_modifier(base: float, value: float, kind: EffectKind) -> float:
    """Apply a modifier of the given kind to a base amount."""
    if kind is EffectKind.PERCENT:
        return base * (1 + value / 100)
    return base + value
