"""Study node (folder hierarchy) API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mindsy.auth.security import AuthenticatedUser, require_user
from mindsy.db.session import get_db
from mindsy.schemas.schemas import StudyNodeCreate, StudyNodeUpdate
from mindsy.services.study_nodes import (
    StudyNodeError,
    StudyNodeNotFound,
    node_to_dict,
    study_node_service,
)

router = APIRouter(tags=["Study Nodes"])


def _not_found(e: StudyNodeNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get(
    "/api/studies/nodes",
    summary="List study nodes",
    description="All of the caller's study nodes, flat, ordered by sort order and name.",
)
async def list_nodes(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    nodes = await study_node_service.list_nodes(db, user.id)
    return {"data": {"nodes": [node_to_dict(n) for n in nodes]}}


@router.post(
    "/api/studies/nodes",
    status_code=status.HTTP_201_CREATED,
    summary="Create a study node",
)
async def create_node(
    body: StudyNodeCreate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    try:
        node = await study_node_service.create_node(
            db,
            user.id,
            name=body.name,
            node_type=body.type,
            parent_id=body.parent_id,
            description=body.description,
            color=body.color,
            icon=body.icon,
            sort_order=body.sort_order,
            metadata=body.metadata,
        )
        await db.commit()
    except StudyNodeError as e:
        raise _bad_request(e)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A study node with this name already exists here",
        )
    return {"data": {"node": node_to_dict(node)}}


@router.patch(
    "/api/studies/nodes",
    summary="Update a study node",
    description="Partial update. Changing parent_id is rejected if it would create a cycle.",
)
async def update_node(
    body: StudyNodeUpdate,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    fields = body.model_dump(exclude_unset=True, exclude={"id"})
    try:
        node = await study_node_service.update_node(db, user.id, body.id, fields)
        await db.commit()
    except StudyNodeNotFound as e:
        raise _not_found(e)
    except StudyNodeError as e:
        raise _bad_request(e)
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A study node with this name already exists here",
        )
    return {"data": {"node": node_to_dict(node)}}


@router.delete(
    "/api/studies/nodes",
    summary="Delete a study node",
    description="Deletes the node and its subtree. Notes inside are kept and unfiled.",
)
async def delete_node(
    id: Optional[str] = Query(None, description="Node to delete"),
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Node ID is required")
    try:
        deleted = await study_node_service.delete_node(db, user.id, id)
        await db.commit()
    except StudyNodeNotFound as e:
        raise _not_found(e)
    return {"data": {"success": True, "deleted": deleted}}


@router.get("/api/studies/nodes/{node_id}/children", summary="Direct children of a node")
async def node_children(
    node_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    try:
        await study_node_service.get_node(db, user.id, node_id)
    except StudyNodeNotFound as e:
        raise _not_found(e)
    children = await study_node_service.get_children(db, user.id, node_id)
    return {"data": {"nodes": [node_to_dict(n) for n in children]}}


@router.get("/api/studies/nodes/{node_id}/descendants", summary="All descendants of a node")
async def node_descendants(
    node_id: str,
    max_depth: Optional[int] = Query(None, ge=1, description="Levels below the node to include"),
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    try:
        await study_node_service.get_node(db, user.id, node_id)
    except StudyNodeNotFound as e:
        raise _not_found(e)
    nodes = await study_node_service.get_descendants(db, user.id, node_id, max_depth)
    return {"data": {"nodes": nodes}}


@router.get("/api/studies/nodes/{node_id}/path", summary="Breadcrumb to a node")
async def node_path(
    node_id: str,
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    try:
        path = await study_node_service.get_node_path(db, user.id, node_id)
    except StudyNodeNotFound as e:
        raise _not_found(e)
    return {"data": {"path": [node_to_dict(n) for n in path]}}


@router.get(
    "/api/studies/pinned",
    summary="Pinned nodes",
    description="Pinned nodes and their descendants with depth, has_children and note_count.",
)
async def pinned_nodes(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    nodes = await study_node_service.get_pinned(db, user.id)
    return {"data": {"nodes": nodes}}


@router.get(
    "/api/study-nodes/with-counts",
    summary="Study tree with note counts",
    description="Nested tree; note_count counts completed notes in the node, total_note_count includes descendants.",
)
async def nodes_with_counts(
    db: AsyncSession = Depends(get_db),
    user: AuthenticatedUser = Depends(require_user),
):
    tree = await study_node_service.get_tree_with_counts(db, user.id)
    return {"data": tree}
