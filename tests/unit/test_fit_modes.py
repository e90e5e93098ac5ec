"""Unit tests for fit-mode strategies."""

import pytest

from config.walk_forward import FitMode
from training.fit_modes import POOLED_KEY, PerGroupFit, PerSymbolFit, PooledFit, build_fit_mode


class TestFitModes:
    """Test suite for entity partitioning."""

    def test_pooled_single_partition(self):
        partitions = PooledFit().partitions(["AAA", "BBB", "CCC"])

        assert partitions == {POOLED_KEY: ["AAA", "BBB", "CCC"]}

    def test_per_symbol_one_partition_each(self):
        partitions = PerSymbolFit().partitions(["AAA", "BBB"])

        assert partitions == {("symbol", "AAA"): ["AAA"], ("symbol", "BBB"): ["BBB"]}

    def test_per_group_with_fallback(self):
        strategy = PerGroupFit({"tech": ["AAA", "BBB"]}, unassigned_policy="per_symbol")
        partitions = strategy.partitions(["AAA", "BBB", "CCC"])

        assert partitions == {("group", "tech"): ["AAA", "BBB"], ("symbol", "CCC"): ["CCC"]}

    def test_per_group_exclude_unassigned(self):
        strategy = PerGroupFit({"tech": ["AAA"]}, unassigned_policy="exclude")

        assert strategy.partition_key("CCC") is None
        assert strategy.partitions(["AAA", "CCC"]) == {("group", "tech"): ["AAA"]}

    def test_entity_in_two_groups_rejected(self):
        with pytest.raises(ValueError, match="assigned to both"):
            PerGroupFit({"a": ["AAA"], "b": ["AAA"]})

    def test_empty_groups_rejected(self):
        with pytest.raises(ValueError):
            PerGroupFit({})

    def test_build_fit_mode(self):
        assert isinstance(build_fit_mode("pooled"), PooledFit)
        assert isinstance(build_fit_mode(FitMode.PER_SYMBOL), PerSymbolFit)
        assert isinstance(build_fit_mode("per_group", groups={"g": ["AAA"]}), PerGroupFit)

    def test_per_group_requires_mapping(self):
        with pytest.raises(ValueError, match="group mapping"):
            build_fit_mode("per_group")

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            build_fit_mode("per_sector")
