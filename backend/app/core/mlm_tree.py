# app/core/mlm_tree.py
"""
Read-only queries over the binary referral tree.

Ancestry walks use a recursive CTE over users.referred_by_id; downline walks
go level by level with one IN query per level. Both are bounded by a depth
argument.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from sqlalchemy import Integer, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.models.user import User

# Upper bound for "walk to the root" queries.
ANCESTRY_HARD_LIMIT = 1000


@dataclass
class TreeNode:
    id: uuid.UUID
    unique_user_id: str
    name: str
    referral_code: Optional[str]
    total_earnings: Decimal
    depth: int
    left: Optional["TreeNode"] = None
    right: Optional["TreeNode"] = None
    has_children: bool = False


@dataclass
class DownlineMember:
    user: User
    depth: int
    parent_id: uuid.UUID
    position: str  # "left" | "right"


@dataclass
class DirectDownline:
    left: Optional[User] = None
    right: Optional[User] = None
    members: list[User] = field(default_factory=list)


async def get_ancestry_chain(
    db: AsyncSession,
    user_id: uuid.UUID,
    max_level: Optional[int] = None,
) -> list[User]:
    """
    Ancestors of `user_id`, nearest first:
      [0] = level 1 (placing parent), [1] = level 2, ...
    Stops at the root or after `max_level` levels.
    """
    limit = max_level if max_level is not None else ANCESTRY_HARD_LIMIT
    if limit <= 0:
        return []

    chain = (
        select(
            User.id.label("id"),
            User.referred_by_id.label("referred_by_id"),
            literal_column("0", Integer).label("level"),
        )
        .where(User.id == user_id)
        .cte("ancestry", recursive=True)
    )
    prev = chain.alias("prev")
    parent = aliased(User)
    chain = chain.union_all(
        select(
            parent.id,
            parent.referred_by_id,
            (prev.c.level + 1).label("level"),
        )
        .where(parent.id == prev.c.referred_by_id)
        .where(prev.c.level < limit)
    )

    stmt = (
        select(User)
        .join(chain, User.id == chain.c.id)
        .where(chain.c.level > 0)
        .order_by(chain.c.level.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def is_in_ancestry(db: AsyncSession, candidate_id: uuid.UUID, of_user_id: uuid.UUID) -> bool:
    """True when `candidate_id` is `of_user_id` itself or one of its ancestors."""
    if candidate_id == of_user_id:
        return True
    chain = await get_ancestry_chain(db, of_user_id)
    return any(u.id == candidate_id for u in chain)


async def _load_level(db: AsyncSession, ids: list[uuid.UUID]) -> dict[uuid.UUID, User]:
    if not ids:
        return {}
    rows = (await db.execute(select(User).where(User.id.in_(ids)))).scalars().all()
    return {u.id: u for u in rows}


async def get_direct_downline(db: AsyncSession, user_id: uuid.UUID) -> DirectDownline:
    user = await db.get(User, user_id)
    if user is None:
        return DirectDownline()

    ids = [cid for cid in (user.left_child_id, user.right_child_id) if cid is not None]
    loaded = await _load_level(db, ids)
    left = loaded.get(user.left_child_id) if user.left_child_id else None
    right = loaded.get(user.right_child_id) if user.right_child_id else None
    return DirectDownline(left=left, right=right, members=[u for u in (left, right) if u is not None])


async def get_complete_downline(
    db: AsyncSession,
    user_id: uuid.UUID,
    max_depth: int = 20,
) -> list[DownlineMember]:
    """All descendants in level order (left before right), at most `max_depth` levels deep."""
    root = await db.get(User, user_id)
    if root is None:
        return []

    members: list[DownlineMember] = []
    frontier: list[User] = [root]
    depth = 0
    while frontier and depth < max_depth:
        slots: list[tuple[uuid.UUID, str, uuid.UUID]] = []
        for node in frontier:
            if node.left_child_id is not None:
                slots.append((node.id, "left", node.left_child_id))
            if node.right_child_id is not None:
                slots.append((node.id, "right", node.right_child_id))

        loaded = await _load_level(db, [child_id for _, _, child_id in slots])
        next_frontier: list[User] = []
        for parent_id, position, child_id in slots:
            child = loaded.get(child_id)
            if child is None:
                continue
            members.append(DownlineMember(user=child, depth=depth + 1, parent_id=parent_id, position=position))
            next_frontier.append(child)

        frontier = next_frontier
        depth += 1

    return members


def _to_node(user: User, depth: int) -> TreeNode:
    return TreeNode(
        id=user.id,
        unique_user_id=user.unique_user_id,
        name=user.profile_name or user.name,
        referral_code=user.referral_code,
        total_earnings=user.total_earnings or Decimal("0.00"),
        depth=depth,
        has_children=user.left_child_id is not None or user.right_child_id is not None,
    )


async def get_descendant_tree(
    db: AsyncSession,
    user_id: uuid.UUID,
    max_depth: int = 5,
) -> Optional[TreeNode]:
    """
    Nested snapshot rooted at `user_id` for tree visualization.
    Nodes at depth `max_depth - 1` keep has_children but no expanded children.
    """
    root = await db.get(User, user_id)
    if root is None or max_depth <= 0:
        return None

    root_node = _to_node(root, 0)
    frontier: list[tuple[User, TreeNode]] = [(root, root_node)]
    depth = 0
    while frontier and depth + 1 < max_depth:
        child_ids = [
            cid
            for user, _ in frontier
            for cid in (user.left_child_id, user.right_child_id)
            if cid is not None
        ]
        loaded = await _load_level(db, child_ids)

        next_frontier: list[tuple[User, TreeNode]] = []
        for user, node in frontier:
            if user.left_child_id in loaded:
                child = loaded[user.left_child_id]
                node.left = _to_node(child, depth + 1)
                next_frontier.append((child, node.left))
            if user.right_child_id in loaded:
                child = loaded[user.right_child_id]
                node.right = _to_node(child, depth + 1)
                next_frontier.append((child, node.right))

        frontier = next_frontier
        depth += 1

    return root_node
