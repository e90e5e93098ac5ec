"""Fit-mode strategies: how entities are partitioned into models.

A strategy is selected once per run and maps every entity to a partition
key. The engine trains one model per key and scores each OOS row with the
model of its entity's key.
"""

from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Union

from config.walk_forward import FitMode, UnassignedPolicy

POOLED_KEY = "__pooled__"


class FitModeStrategy:
    """Base class; subclasses define ``partition_key``."""

    mode: FitMode

    def partition_key(self, entity: Hashable) -> Optional[Hashable]:
        """
        Partition key for an entity.

        Returns:
            Key of the model that scores this entity, or None when the
            entity is excluded from the run
        """
        raise NotImplementedError

    def partitions(self, entities: Iterable[Hashable]) -> Dict[Hashable, List[Hashable]]:
        """Group entities by partition key, dropping excluded entities."""
        grouped: Dict[Hashable, List[Hashable]] = {}
        for entity in entities:
            key = self.partition_key(entity)
            if key is not None:
                grouped.setdefault(key, []).append(entity)
        return grouped

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class PooledFit(FitModeStrategy):
    """One model across all entities."""

    mode = FitMode.POOLED

    def partition_key(self, entity):
        return POOLED_KEY


class PerSymbolFit(FitModeStrategy):
    """One independent model per entity."""

    mode = FitMode.PER_SYMBOL

    def partition_key(self, entity):
        return ("symbol", entity)


class PerGroupFit(FitModeStrategy):
    """
    One model per caller-supplied group of entities.

    Entities missing from the mapping are fitted alone (``per_symbol``
    fallback) or excluded, depending on ``unassigned_policy``.
    """

    mode = FitMode.PER_GROUP

    def __init__(
        self,
        groups: Mapping[Hashable, Sequence[Hashable]],
        unassigned_policy: Union[UnassignedPolicy, str] = UnassignedPolicy.PER_SYMBOL,
    ):
        if not groups:
            raise ValueError("PerGroupFit requires a non-empty group mapping")

        self.unassigned_policy = UnassignedPolicy(unassigned_policy)
        self._entity_to_group: Dict[Hashable, Hashable] = {}
        for group, members in groups.items():
            for entity in members:
                if entity in self._entity_to_group and self._entity_to_group[entity] != group:
                    raise ValueError(
                        f"Entity {entity!r} assigned to both {self._entity_to_group[entity]!r} and {group!r}"
                    )
                self._entity_to_group[entity] = group

    def partition_key(self, entity):
        group = self._entity_to_group.get(entity)
        if group is not None:
            return ("group", group)
        if self.unassigned_policy == UnassignedPolicy.PER_SYMBOL:
            return ("symbol", entity)
        return None

    def __repr__(self) -> str:
        n_groups = len(set(self._entity_to_group.values()))
        return f"PerGroupFit(groups={n_groups}, unassigned={self.unassigned_policy.value})"


def build_fit_mode(
    mode: Union[FitMode, str],
    groups: Optional[Mapping[Hashable, Sequence[Hashable]]] = None,
    unassigned_policy: Union[UnassignedPolicy, str] = UnassignedPolicy.PER_SYMBOL,
) -> FitModeStrategy:
    """
    Select the fit-mode strategy for a run.

    Args:
        mode: pooled, per_symbol or per_group
        groups: Group -> entities mapping (per_group only)
        unassigned_policy: per_group treatment of unmapped entities

    Returns:
        FitModeStrategy instance
    """
    mode = FitMode(mode)
    if mode == FitMode.POOLED:
        return PooledFit()
    if mode == FitMode.PER_SYMBOL:
        return PerSymbolFit()
    if groups is None:
        raise ValueError("fit_mode per_group requires a group mapping")
    return PerGroupFit(groups, unassigned_policy)
