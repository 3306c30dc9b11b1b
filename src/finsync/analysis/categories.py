#!/usr/bin/env python3
"""
Category Hierarchy

Categories form a tree through parent_category_id. The remote is expected to
reject cycles, but a stale cache can still present one, so every traversal
here carries a visited set and a depth bound and stops at either.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.models import Category

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


@dataclass
class CategoryNode:
    category: Category
    depth: int = 0
    children: list["CategoryNode"] = field(default_factory=list)

    @property
    def category_id(self) -> str:
        return self.category.category_id


def index_children(categories: Iterable[Category], active_only: bool = False) -> dict[str | None, list[Category]]:
    """Group categories by parent id (None for top-level categories)."""
    children: dict[str | None, list[Category]] = defaultdict(list)
    for category in categories:
        if active_only and not category.is_active:
            continue
        children[category.parent_category_id].append(category)
    return children


def get_category_descendants(
    categories: Iterable[Category],
    category_id: str,
    max_depth: int = DEFAULT_MAX_DEPTH,
    active_only: bool = False,
) -> list[str]:
    """
    Ids of every category below category_id, breadth first.

    Stops descending at max_depth levels and never revisits a category, so a
    cyclic parent chain terminates.
    """
    children = index_children(categories, active_only=active_only)
    visited = {category_id}
    result: list[str] = []
    frontier = [category_id]
    depth = 0
    while frontier and depth < max_depth:
        next_frontier = []
        for parent_id in frontier:
            for child in children.get(parent_id, []):
                if child.category_id in visited:
                    logger.warning(f"Category cycle detected at {child.category_id}; not descending")
                    continue
                visited.add(child.category_id)
                result.append(child.category_id)
                next_frontier.append(child.category_id)
        frontier = next_frontier
        depth += 1
    return result


def build_category_tree(
    categories: Iterable[Category], max_depth: int = DEFAULT_MAX_DEPTH, active_only: bool = False
) -> list[CategoryNode]:
    """
    Build the category forest.

    Roots are categories without a parent or whose parent is not cached.
    Categories that only sit on a cycle have no root above them and are left
    out of the tree (validate_category_hierarchy reports them).
    """
    categories = [c for c in categories if c.is_active or not active_only]
    known = {c.category_id for c in categories}
    children = index_children(categories)
    roots = [c for c in categories if c.parent_category_id is None or c.parent_category_id not in known]

    visited: set[str] = set()

    def build(category: Category, depth: int) -> CategoryNode:
        visited.add(category.category_id)
        node = CategoryNode(category=category, depth=depth)
        if depth + 1 >= max_depth:
            if children.get(category.category_id):
                logger.warning(f"Category tree deeper than {max_depth} below {category.category_id}; truncated")
            return node
        for child in children.get(category.category_id, []):
            if child.category_id in visited:
                continue
            node.children.append(build(child, depth + 1))
        return node

    return [build(root, 0) for root in roots]


def find_cycles(categories: Iterable[Category]) -> list[list[str]]:
    """Every parent-chain cycle, each as the list of category ids on it."""
    parent = {c.category_id: c.parent_category_id for c in categories}
    cycles: list[list[str]] = []
    settled: set[str] = set()
    for start in parent:
        path: list[str] = []
        on_path: set[str] = set()
        current: str | None = start
        while current is not None and current in parent and current not in settled:
            if current in on_path:
                cycles.append(path[path.index(current) :])
                break
            on_path.add(current)
            path.append(current)
            current = parent[current]
        settled.update(path)
    return cycles


def validate_category_hierarchy(categories: Iterable[Category], max_depth: int = DEFAULT_MAX_DEPTH) -> list[str]:
    """
    Check the hierarchy and return a list of problems (empty when sound).

    Reports cycles, parents missing from the cache and chains deeper than
    max_depth.
    """
    categories = list(categories)
    by_id = {c.category_id: c for c in categories}
    errors = []

    cycles = find_cycles(categories)
    for cycle in cycles:
        errors.append(f"Category cycle: {' -> '.join(cycle + [cycle[0]])}")

    on_cycle = {category_id for cycle in cycles for category_id in cycle}
    for category in categories:
        parent_id = category.parent_category_id
        if parent_id is not None and parent_id not in by_id:
            errors.append(f"Category {category.category_id} has unknown parent {parent_id}")
        if category.category_id in on_cycle:
            continue
        depth = 0
        current = category
        while current.parent_category_id in by_id and depth < max_depth:
            current = by_id[current.parent_category_id]
            depth += 1
            if current.category_id in on_cycle:
                break
        if depth >= max_depth:
            errors.append(f"Category {category.category_id} is nested deeper than {max_depth} levels")

    return errors
