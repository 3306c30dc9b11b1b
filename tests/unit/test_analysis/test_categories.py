#!/usr/bin/env python3
"""Unit tests for the category hierarchy helpers."""

import pytest

from finsync.analysis.categories import (
    build_category_tree,
    find_cycles,
    get_category_descendants,
    validate_category_hierarchy,
)
from finsync.core.models import Category


def cat(category_id, parent=None, status="Active"):
    return Category(category_id=category_id, name=category_id, parent_category_id=parent, status=status)


@pytest.mark.unit
class TestDescendants:
    """Test breadth-first descendant lookup."""

    def test_descendants(self):
        """Test a three-level tree."""
        categories = [cat("ROOT"), cat("A", "ROOT"), cat("B", "ROOT"), cat("A1", "A")]
        assert get_category_descendants(categories, "ROOT") == ["A", "B", "A1"]

    def test_cycle_terminates(self, caplog):
        """Test that a cyclic parent chain does not loop forever."""
        categories = [cat("A", "C"), cat("B", "A"), cat("C", "B")]
        assert sorted(get_category_descendants(categories, "A")) == ["B", "C"]
        assert "cycle" in caplog.text

    def test_depth_bound(self):
        """Test that traversal stops at the maximum depth."""
        categories = [cat("L0")] + [cat(f"L{i}", f"L{i - 1}") for i in range(1, 10)]
        assert get_category_descendants(categories, "L0", max_depth=3) == ["L1", "L2", "L3"]

    def test_active_only(self):
        """Test that inactive children can be excluded."""
        categories = [cat("ROOT"), cat("A", "ROOT", status="Inactive")]
        assert get_category_descendants(categories, "ROOT", active_only=True) == []


@pytest.mark.unit
class TestCategoryTree:
    """Test forest construction."""

    def test_roots_include_orphans(self):
        """Test that a category with an uncached parent becomes a root."""
        tree = build_category_tree([cat("ROOT"), cat("A", "ROOT"), cat("ORPHAN", "GONE")])
        assert [node.category_id for node in tree] == ["ROOT", "ORPHAN"]
        assert [child.category_id for child in tree[0].children] == ["A"]
        assert tree[0].children[0].depth == 1

    def test_cycle_only_categories_are_excluded(self):
        """Test that categories reachable only through a cycle have no place in the tree."""
        tree = build_category_tree([cat("ROOT"), cat("X", "Y"), cat("Y", "X")])
        assert [node.category_id for node in tree] == ["ROOT"]

    def test_truncated_at_max_depth(self):
        """Test depth truncation."""
        categories = [cat("L0")] + [cat(f"L{i}", f"L{i - 1}") for i in range(1, 5)]
        tree = build_category_tree(categories, max_depth=2)
        assert tree[0].children[0].children == []


@pytest.mark.unit
class TestValidation:
    """Test hierarchy problem reporting."""

    def test_sound_hierarchy(self):
        """Test no problems for a clean tree."""
        assert validate_category_hierarchy([cat("ROOT"), cat("A", "ROOT")]) == []

    def test_reports_cycles_and_unknown_parents(self):
        """Test each problem type."""
        problems = validate_category_hierarchy([cat("X", "Y"), cat("Y", "X"), cat("O", "GONE")])
        assert any(p.startswith("Category cycle:") for p in problems)
        assert "Category O has unknown parent GONE" in problems

    def test_find_cycles(self):
        """Test cycle extraction."""
        cycles = find_cycles([cat("A", "B"), cat("B", "A"), cat("C", "A")])
        assert len(cycles) == 1
        assert sorted(cycles[0]) == ["A", "B"]

    def test_reports_excessive_depth(self):
        """Test the nesting bound."""
        categories = [cat("L0")] + [cat(f"L{i}", f"L{i - 1}") for i in range(1, 5)]
        problems = validate_category_hierarchy(categories, max_depth=3)
        assert "Category L3 is nested deeper than 3 levels" in problems
