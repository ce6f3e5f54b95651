from __future__ import annotations

import logging
from typing import Iterable, Iterator

from domain.errors import CycleError, NotFoundError, ValidationError
from domain.models import Category

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " > "


class CategoryTree:
    """
    Arena of categories keyed by id.

    Parent and child links are stored as ids on the nodes themselves; the tree
    only resolves them. Removing a link never deletes a node.
    """

    def __init__(self, categories: Iterable[Category] | None = None) -> None:
        self._nodes: dict[str, Category] = {}
        for category in categories or []:
            self._nodes[category.id] = category
        self._relink()

    def _relink(self) -> None:
        # Rebuild child sets from parent ids; stores only persist the parent side.
        for node in self._nodes.values():
            node.child_ids = {cid for cid in node.child_ids if cid in self._nodes}
        for node in self._nodes.values():
            if node.parent_id is None:
                continue
            parent = self._nodes.get(node.parent_id)
            if parent is None:
                node.parent_id = None
            else:
                parent.child_ids.add(node.id)
        for node in self._nodes.values():
            seen = {node.id}
            current = node
            while current.parent_id is not None:
                if current.parent_id in seen:
                    logger.warning("Broke category cycle child=%s parent=%s", current.id, current.parent_id)
                    self._nodes[current.parent_id].child_ids.discard(current.id)
                    current.parent_id = None
                    break
                seen.add(current.parent_id)
                current = self._nodes[current.parent_id]

    # ---- arena ----
    def add(self, category: Category, parent: Category | str | None = None) -> Category:
        """Register ``category``; an id already in the arena returns the stored node."""
        if category is not None and category.id in self._nodes:
            return self._nodes[category.id]
        return self.insert(category, parent)[0]

    def insert(self, category: Category, parent: Category | str | None = None) -> list[Category]:
        """
        Register a new node under ``parent`` (or its own ``parent_id``) and adopt
        the known ids in its ``child_ids``. Adopted children leave their previous
        parent. Returns every node whose links changed, the new node first.
        Nothing is modified when a check fails.
        """
        if category is None:
            raise ValidationError("Category cannot be None")
        if category.id in self._nodes:
            raise ValidationError(f"Category already registered: {category.id}")
        if parent is not None:
            parent_node = self.require(parent)
        elif category.parent_id is not None:
            parent_node = self._nodes.get(category.parent_id)
        else:
            parent_node = None

        adopted = [self._nodes[cid] for cid in sorted(category.child_ids) if cid in self._nodes]
        if parent_node is not None:
            lineage = {parent_node.id} | {a.id for a in self.ancestors(parent_node)}
            for child in adopted:
                if child.id in lineage:
                    raise CycleError(
                        f"Cannot create circular reference: {child.name!r} is an ancestor of {category.name!r}"
                    )

        self._nodes[category.id] = category
        category.parent_id = parent_node.id if parent_node is not None else None
        category.child_ids = {child.id for child in adopted}
        touched = [category]
        if parent_node is not None:
            parent_node.child_ids.add(category.id)
            touched.append(parent_node)
        for child in adopted:
            previous = self._nodes.get(child.parent_id) if child.parent_id is not None else None
            if previous is not None:
                previous.child_ids.discard(child.id)
                touched.append(previous)
            child.parent_id = category.id
            touched.append(child)
        return list({node.id: node for node in touched}.values())

    def discard(self, category: Category | str) -> list[Category]:
        """Drop a node from the arena. Returns the nodes whose links changed."""
        node = self._nodes.pop(self._id_of(category), None)
        if node is None:
            return []
        touched: list[Category] = []
        if node.parent_id is not None and node.parent_id in self._nodes:
            parent = self._nodes[node.parent_id]
            parent.child_ids.discard(node.id)
            touched.append(parent)
        node.parent_id = None
        for child_id in node.child_ids:
            child = self._nodes.get(child_id)
            if child is not None:
                child.parent_id = None
                touched.append(child)
        node.child_ids = set()
        return touched

    def get(self, category_id: str) -> Category | None:
        return self._nodes.get(category_id)

    def require(self, category: Category | str) -> Category:
        node = self._nodes.get(self._id_of(category))
        if node is None:
            raise NotFoundError(f"Category not found: {self._id_of(category)}")
        return node

    def __contains__(self, category: object) -> bool:
        if isinstance(category, Category):
            return category.id in self._nodes
        return category in self._nodes

    def __iter__(self) -> Iterator[Category]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    # ---- structure ----
    def add_subcategory(self, parent: Category | str, child: Category | str) -> None:
        parent_node = self.require(parent)
        child_node = self.require(child)
        if parent_node.id == child_node.id:
            raise CycleError("Cannot add category as subcategory of itself")
        if self.is_descendant(parent_node, child_node):
            raise CycleError(
                f"Cannot create circular reference: {child_node.name!r} is an ancestor of {parent_node.name!r}"
            )

        if child_node.parent_id is not None and child_node.parent_id != parent_node.id:
            previous = self._nodes.get(child_node.parent_id)
            if previous is not None:
                previous.child_ids.discard(child_node.id)
        child_node.parent_id = parent_node.id
        parent_node.child_ids.add(child_node.id)

    def remove_subcategory(self, parent: Category | str, child: Category | str) -> bool:
        parent_node = self.require(parent)
        child_id = self._id_of(child)
        if child_id not in parent_node.child_ids:
            return False
        parent_node.child_ids.discard(child_id)
        child_node = self._nodes.get(child_id)
        if child_node is not None:
            child_node.parent_id = None
        return True

    def parent(self, category: Category | str) -> Category | None:
        node = self.require(category)
        if node.parent_id is None:
            return None
        return self._nodes.get(node.parent_id)

    def children(self, category: Category | str) -> list[Category]:
        node = self.require(category)
        return [self._nodes[cid] for cid in node.child_ids if cid in self._nodes]

    def ancestors(self, category: Category | str) -> list[Category]:
        """Nearest parent first."""
        chain: list[Category] = []
        seen: set[str] = set()
        current = self.parent(category)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            chain.append(current)
            current = self._nodes.get(current.parent_id) if current.parent_id else None
        return chain

    def all_descendants(self, category: Category | str) -> set[Category]:
        node = self.require(category)
        found: set[Category] = set()
        stack = list(node.child_ids)
        while stack:
            child = self._nodes.get(stack.pop())
            if child is None or child in found:
                continue
            found.add(child)
            stack.extend(child.child_ids)
        return found

    def is_descendant(self, category: Category | str, ancestor: Category | str) -> bool:
        ancestor_id = self._id_of(ancestor)
        return any(node.id == ancestor_id for node in self.ancestors(category))

    def in_subtree(self, category: Category | str, root: Category | str) -> bool:
        """True when ``category`` is ``root`` or one of its descendants."""
        category_id = self._id_of(category)
        root_id = self._id_of(root)
        if category_id == root_id:
            return True
        if category_id not in self._nodes or root_id not in self._nodes:
            return False
        return self.is_descendant(category_id, root_id)

    def subtree_ids(self, category: Category | str) -> set[str]:
        node = self.require(category)
        return {node.id} | {d.id for d in self.all_descendants(node)}

    def full_path(self, category: Category | str, separator: str = PATH_SEPARATOR) -> str:
        node = self.require(category)
        names = [a.name for a in reversed(self.ancestors(node))]
        names.append(node.name)
        return separator.join(names)

    def is_root(self, category: Category | str) -> bool:
        return self.require(category).is_root

    def is_leaf(self, category: Category | str) -> bool:
        return self.require(category).is_leaf

    def roots(self) -> list[Category]:
        return [node for node in self._nodes.values() if node.parent_id is None]

    def find_by_parent(self, parent_id: str | None) -> list[Category]:
        return [node for node in self._nodes.values() if node.parent_id == parent_id]

    def find_by_name(self, name: str) -> Category | None:
        """Case-insensitive convenience lookup; names are not unique."""
        wanted = (name or "").strip().lower()
        for node in self._nodes.values():
            if node.name.lower() == wanted:
                return node
        return None

    @staticmethod
    def _id_of(category: Category | str) -> str:
        return category.id if isinstance(category, Category) else str(category)
