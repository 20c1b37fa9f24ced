"""Releases, changelog and launch checklist API endpoints."""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import models, schemas
from ...actions import launch_checklist, releases
from ...models import ChangelogVisibility
from ...results import ActionContext
from ..dependencies import form_data, get_context, get_current_user, get_db, load_product_for_member, respond

logger = logging.getLogger("prodflow-core.releases")

router = APIRouter(tags=["releases"])


def _release_for_member(db: Session, user: models.User, release_id: UUID) -> models.Release:
    release = (
        db.query(models.Release)
        .filter(models.Release.id == release_id, models.Release.deleted_at.is_(None))
        .first()
    )
    if release is None:
        raise HTTPException(status_code=404, detail="Release not found")
    load_product_for_member(db, user, release.product_id)
    return release


@router.get("/products/{product_id}/releases", response_model=list[schemas.ReleaseResponse])
def list_releases(
    product_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return [schemas.ReleaseResponse.model_validate(r) for r in releases.list_releases(db, product_id)]


@router.post("/products/{product_id}/releases", response_model=schemas.ReleaseResponse, status_code=201)
def create_release(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    """
    Plan a release.

    - **name**, **version**: Required
    - **type**: MAJOR, MINOR (default), PATCH or HOTFIX
    - **featureIds**: JSON array of the product's feature ids to link
    """
    return respond(releases.create_release(ctx, product_id, form), schemas.ReleaseResponse)


@router.get("/releases/{release_id}", response_model=schemas.ReleaseResponse)
def get_release(
    release_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return schemas.ReleaseResponse.model_validate(_release_for_member(db, user, release_id))


@router.put("/releases/{release_id}", response_model=schemas.ReleaseResponse)
def update_release(release_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(releases.update_release(ctx, release_id, form), schemas.ReleaseResponse)


@router.put("/releases/{release_id}/status", response_model=schemas.ReleaseResponse)
def update_release_status(
    release_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(releases.update_release_status(ctx, release_id, form), schemas.ReleaseResponse)


@router.post("/releases/{release_id}/deploy", response_model=schemas.ReleaseResponse)
def deploy_release(release_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(releases.deploy_release(ctx, release_id), schemas.ReleaseResponse)


@router.post("/releases/{release_id}/features", response_model=schemas.FeatureResponse)
def add_feature_to_release(
    release_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(releases.add_feature_to_release(ctx, release_id, form), schemas.FeatureResponse)


@router.delete("/releases/{release_id}", status_code=204)
def delete_release(release_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(releases.delete_release(ctx, release_id))


# Changelog endpoints

@router.get("/products/{product_id}/changelog", response_model=list[schemas.ChangelogResponse])
def list_changelogs(
    product_id: UUID,
    visibility: Optional[ChangelogVisibility] = Query(None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    load_product_for_member(db, user, product_id)
    return releases.list_changelogs(db, product_id, visibility=visibility)


@router.post("/products/{product_id}/changelog", response_model=schemas.ChangelogResponse, status_code=201)
def create_changelog(product_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(releases.create_changelog(ctx, product_id, form), schemas.ChangelogResponse)


# Launch checklist endpoints

@router.get("/releases/{release_id}/checklist", response_model=list[schemas.ChecklistItemResponse])
def list_checklist(
    release_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _release_for_member(db, user, release_id)
    return launch_checklist.list_checklist(db, release_id)


@router.get("/releases/{release_id}/checklist/progress", response_model=schemas.ChecklistProgress)
def checklist_progress(
    release_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _release_for_member(db, user, release_id)
    return launch_checklist.checklist_progress(db, release_id)


@router.post("/releases/{release_id}/checklist", response_model=schemas.ChecklistItemResponse, status_code=201)
def create_checklist_item(
    release_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    return respond(launch_checklist.create_checklist_item(ctx, release_id, form), schemas.ChecklistItemResponse)


@router.post(
    "/releases/{release_id}/checklist/template",
    response_model=list[schemas.ChecklistItemResponse],
    status_code=201,
)
def create_checklist_from_template(
    release_id: UUID,
    form: dict = Depends(form_data),
    ctx: ActionContext = Depends(get_context),
):
    """
    Add a template's items.

    - **template**: BASIC (8 items), COMPREHENSIVE (19) or ENTERPRISE (31)
    """
    return respond(
        launch_checklist.create_checklist_from_template(ctx, release_id, form),
        schemas.ChecklistItemResponse,
    )


@router.put("/checklist-items/{item_id}", response_model=schemas.ChecklistItemResponse)
def update_checklist_item(item_id: UUID, form: dict = Depends(form_data), ctx: ActionContext = Depends(get_context)):
    return respond(launch_checklist.update_checklist_item(ctx, item_id, form), schemas.ChecklistItemResponse)


@router.post("/checklist-items/{item_id}/toggle", response_model=schemas.ChecklistItemResponse)
def toggle_checklist_item(item_id: UUID, ctx: ActionContext = Depends(get_context)):
    return respond(launch_checklist.toggle_checklist_item(ctx, item_id), schemas.ChecklistItemResponse)


@router.delete("/checklist-items/{item_id}", status_code=204)
def delete_checklist_item(item_id: UUID, ctx: ActionContext = Depends(get_context)):
    respond(launch_checklist.delete_checklist_item(ctx, item_id))
