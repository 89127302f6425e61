"""Study folder hierarchy: CRUD, tree queries and note counts."""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.config import get_settings
from mindsy.db.models import Job, JobStatus, StudyNode, StudyNodeType

settings = get_settings()
logger = logging.getLogger(__name__)

# Depth cap used when the caller does not give one
UNBOUNDED_DEPTH = 100


class StudyNodeError(ValueError):
    """Invalid study node operation (bad parent, cycle, bad type)."""


class StudyNodeNotFound(LookupError):
    """Node is absent or belongs to another user."""


def node_to_dict(node: StudyNode, **extra) -> dict:
    """Serialize a study node row for API responses."""
    data = {
        "id": node.id,
        "user_id": node.user_id,
        "parent_id": node.parent_id,
        "name": node.name,
        "type": node.type.value,
        "description": node.description,
        "color": node.color,
        "icon": node.icon,
        "sort_order": node.sort_order,
        "is_pinned": node.is_pinned,
        "metadata": node.node_metadata or {},
        "created_at": node.created_at.isoformat() if node.created_at else None,
        "updated_at": node.updated_at.isoformat() if node.updated_at else None,
    }
    data.update(extra)
    return data


class StudyNodeService:
    """Service for the per-user forest of study folders."""

    async def list_nodes(self, db: AsyncSession, user_id: str) -> list[StudyNode]:
        """All of a user's nodes, flat, ordered by ``sort_order`` then name."""
        result = await db.execute(
            select(StudyNode)
            .where(StudyNode.user_id == user_id)
            .order_by(StudyNode.sort_order, StudyNode.name)
        )
        return list(result.scalars().all())

    async def get_node(self, db: AsyncSession, user_id: str, node_id: str) -> StudyNode:
        result = await db.execute(
            select(StudyNode).where(StudyNode.id == node_id, StudyNode.user_id == user_id)
        )
        node = result.scalar_one_or_none()
        if node is None:
            raise StudyNodeNotFound(f"Study node {node_id} not found")
        return node

    async def create_node(
        self,
        db: AsyncSession,
        user_id: str,
        name: str,
        node_type: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        sort_order: int = 0,
        metadata: Optional[dict] = None,
    ) -> StudyNode:
        """Create a node. The parent, when given, must exist and be owned by the user."""
        if node_type not in settings.study_node_types:
            raise StudyNodeError(f"Invalid study node type: {node_type}")

        if parent_id:
            try:
                await self.get_node(db, user_id, parent_id)
            except StudyNodeNotFound:
                raise StudyNodeError("Parent study node not found")

        node = StudyNode(
            user_id=user_id,
            parent_id=parent_id or None,
            name=name,
            type=StudyNodeType(node_type),
            description=description or None,
            color=color or None,
            icon=icon or None,
            sort_order=sort_order,
            node_metadata=metadata or {},
        )
        db.add(node)
        await db.flush()
        return node

    async def assert_can_reparent(
        self, db: AsyncSession, user_id: str, node_id: str, new_parent_id: Optional[str]
    ):
        """Reject a parent change that would put a node under itself.

        Walks the ancestor chain of the proposed parent; meeting ``node_id``
        on the way means the move would close a cycle.
        """
        if new_parent_id is None:
            return
        if new_parent_id == node_id:
            raise StudyNodeError("A study node cannot be its own parent")

        try:
            current = await self.get_node(db, user_id, new_parent_id)
        except StudyNodeNotFound:
            raise StudyNodeError("Parent study node not found")

        seen = set()
        while current.parent_id is not None:
            if current.parent_id == node_id:
                raise StudyNodeError("Moving a study node under its own descendant creates a cycle")
            if current.parent_id in seen:
                break
            seen.add(current.parent_id)
            current = await self.get_node(db, user_id, current.parent_id)

    async def update_node(
        self, db: AsyncSession, user_id: str, node_id: str, fields: dict
    ) -> StudyNode:
        """Apply a partial update. ``fields`` only holds keys the caller sent."""
        node = await self.get_node(db, user_id, node_id)
        # name and type are required columns; null means "leave as is"
        for key in ("name", "type"):
            if key in fields and fields[key] is None:
                fields.pop(key)

        if "parent_id" in fields and fields["parent_id"] != node.parent_id:
            await self.assert_can_reparent(db, user_id, node_id, fields["parent_id"])
        if "type" in fields:
            if fields["type"] not in settings.study_node_types:
                raise StudyNodeError(f"Invalid study node type: {fields['type']}")
            fields["type"] = StudyNodeType(fields["type"])
        if "metadata" in fields:
            fields["node_metadata"] = fields.pop("metadata") or {}

        for key, value in fields.items():
            setattr(node, key, value)
        node.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return node

    async def delete_node(self, db: AsyncSession, user_id: str, node_id: str) -> int:
        """Delete a node and its whole subtree. Jobs inside are unfiled, not deleted.

        Returns the number of nodes removed.
        """
        await self.get_node(db, user_id, node_id)
        descendants = await self.get_descendants(db, user_id, node_id)
        ids = [node_id] + [d["id"] for d in descendants]

        await db.execute(
            update(Job)
            .where(Job.user_id == user_id, Job.study_node_id.in_(ids))
            .values(study_node_id=None)
        )
        await db.execute(
            delete(StudyNode).where(StudyNode.user_id == user_id, StudyNode.id.in_(ids))
        )
        logger.info(f"Deleted study node {node_id} with {len(ids) - 1} descendants")
        return len(ids)

    async def get_children(self, db: AsyncSession, user_id: str, node_id: str) -> list[StudyNode]:
        result = await db.execute(
            select(StudyNode)
            .where(StudyNode.user_id == user_id, StudyNode.parent_id == node_id)
            .order_by(StudyNode.sort_order, StudyNode.name)
        )
        return list(result.scalars().all())

    async def get_descendants(
        self,
        db: AsyncSession,
        user_id: str,
        node_id: str,
        max_depth: Optional[int] = None,
    ) -> list[dict]:
        """Every node below ``node_id`` with its depth (children are depth 1)."""
        max_depth = max_depth or UNBOUNDED_DEPTH
        if settings.recursive_queries_enabled:
            pairs = await self._descendants_cte(db, user_id, node_id, max_depth)
        else:
            pairs = await self._descendants_by_level(db, user_id, node_id, max_depth)
        return [node_to_dict(node, depth=depth) for node, depth in pairs]

    async def _descendants_cte(
        self, db: AsyncSession, user_id: str, node_id: str, max_depth: int
    ) -> list[tuple[StudyNode, int]]:
        tree = (
            select(StudyNode.id, literal(1).label("depth"))
            .where(StudyNode.parent_id == node_id, StudyNode.user_id == user_id)
            .cte("descendants", recursive=True)
        )
        parent = tree.alias("parent")
        tree = tree.union_all(
            select(StudyNode.id, (parent.c.depth + 1).label("depth"))
            .join(parent, StudyNode.parent_id == parent.c.id)
            .where(StudyNode.user_id == user_id, parent.c.depth < max_depth)
        )

        result = await db.execute(
            select(StudyNode, tree.c.depth)
            .join(tree, StudyNode.id == tree.c.id)
            .order_by(tree.c.depth, StudyNode.sort_order, StudyNode.name)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def _descendants_by_level(
        self, db: AsyncSession, user_id: str, node_id: str, max_depth: int
    ) -> list[tuple[StudyNode, int]]:
        found: list[tuple[StudyNode, int]] = []
        seen = {node_id}
        frontier = [node_id]
        depth = 0

        while frontier and depth < max_depth:
            depth += 1
            result = await db.execute(
                select(StudyNode)
                .where(StudyNode.user_id == user_id, StudyNode.parent_id.in_(frontier))
                .order_by(StudyNode.sort_order, StudyNode.name)
            )
            level = [n for n in result.scalars().all() if n.id not in seen]
            seen.update(n.id for n in level)
            found.extend((n, depth) for n in level)
            frontier = [n.id for n in level]

        return found

    async def get_node_path(self, db: AsyncSession, user_id: str, node_id: str) -> list[StudyNode]:
        """Breadcrumb from the root down to ``node_id``."""
        node = await self.get_node(db, user_id, node_id)
        path = [node]
        seen = {node.id}
        while node.parent_id is not None and node.parent_id not in seen:
            node = await self.get_node(db, user_id, node.parent_id)
            seen.add(node.id)
            path.append(node)
        path.reverse()
        return path

    async def _completed_counts(self, db: AsyncSession, user_id: str) -> dict[str, int]:
        result = await db.execute(
            select(Job.study_node_id, func.count())
            .where(
                Job.user_id == user_id,
                Job.status == JobStatus.COMPLETED,
                Job.study_node_id.is_not(None),
            )
            .group_by(Job.study_node_id)
        )
        return {node_id: count for node_id, count in result.all()}

    async def get_pinned(self, db: AsyncSession, user_id: str) -> list[dict]:
        """Pinned nodes followed by their descendants, annotated for a sidebar."""
        nodes = await self.list_nodes(db, user_id)
        counts = await self._completed_counts(db, user_id)
        children = defaultdict(list)
        for node in nodes:
            children[node.parent_id].append(node)

        out: list[dict] = []
        emitted: set[str] = set()

        def visit(node: StudyNode, depth: int):
            if node.id in emitted:
                return
            emitted.add(node.id)
            out.append(
                node_to_dict(
                    node,
                    depth=depth,
                    has_children=bool(children.get(node.id)),
                    note_count=counts.get(node.id, 0),
                )
            )
            for child in children.get(node.id, []):
                visit(child, depth + 1)

        for node in nodes:
            if node.is_pinned:
                visit(node, 0)
        return out

    async def get_tree_with_counts(self, db: AsyncSession, user_id: str) -> dict:
        """Nested tree with direct and subtree counts of completed notes."""
        nodes = await self.list_nodes(db, user_id)
        counts = await self._completed_counts(db, user_id)

        by_id = {
            n.id: node_to_dict(n, note_count=counts.get(n.id, 0), children=[]) for n in nodes
        }
        roots = []
        for node in nodes:
            item = by_id[node.id]
            if node.parent_id and node.parent_id in by_id:
                by_id[node.parent_id]["children"].append(item)
            else:
                roots.append(item)

        def total(item: dict) -> int:
            item["total_note_count"] = item["note_count"] + sum(total(c) for c in item["children"])
            return item["total_note_count"]

        for root in roots:
            total(root)

        flat = [{k: v for k, v in item.items() if k != "children"} for item in by_id.values()]
        return {"nodes": roots, "flat": flat}

    async def subtree_ids(self, db: AsyncSession, user_id: str, node_id: str) -> list[str]:
        """``node_id`` plus the ids of all its descendants."""
        descendants = await self.get_descendants(db, user_id, node_id)
        return [node_id] + [d["id"] for d in descendants]


# Singleton instance
study_node_service = StudyNodeService()
