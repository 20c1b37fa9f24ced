"""Customer discovery actions: customers, interviews and insights."""
import logging
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import MANAGERS, WRITERS, require_role
from ..errors import NotFoundError
from ..forms import parse_form
from ..models import InterviewStatus
from ..results import ActionContext, action
from .common import apply_changes, get_live, get_product

logger = logging.getLogger("prodflow-core.interviews")


def _load_interview(db: Session, interview_id: UUID) -> tuple[models.Interview, UUID]:
    interview = get_live(db, models.Interview, interview_id, "Interview not found")
    product = get_product(db, interview.product_id)
    return interview, product.organization_id


def list_customers(db: Session, product_id: UUID) -> list[models.Customer]:
    return (
        db.query(models.Customer)
        .filter(models.Customer.product_id == product_id, models.Customer.deleted_at.is_(None))
        .order_by(models.Customer.name)
        .all()
    )


def list_interviews(db: Session, product_id: UUID) -> list[models.Interview]:
    return (
        db.query(models.Interview)
        .filter(models.Interview.product_id == product_id, models.Interview.deleted_at.is_(None))
        .order_by(models.Interview.scheduled_at)
        .all()
    )


def list_insights(db: Session, product_id: UUID) -> list[models.Insight]:
    return (
        db.query(models.Insight)
        .filter(models.Insight.product_id == product_id, models.Insight.deleted_at.is_(None))
        .order_by(models.Insight.created_at.desc())
        .all()
    )


@action("Failed to create customer")
def create_customer(ctx: ActionContext, product_id: UUID, form) -> models.Customer:
    data = parse_form(schemas.CustomerCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, WRITERS)

    customer = models.Customer(product_id=product.id, **data.model_dump())
    db.add(customer)
    db.flush()

    ctx.audit(product.organization_id, "CUSTOMER_CREATED", "CUSTOMER", customer.id,
              metadata={"name": customer.name})
    ctx.revalidate(f"/products/{product.id}/customers")
    return customer


@action("Failed to schedule interview")
def create_interview(ctx: ActionContext, product_id: UUID, form) -> models.Interview:
    """Schedule an interview with one of the product's customers; the actor conducts it."""
    data = parse_form(schemas.InterviewCreate, form)
    db = ctx.db
    product = get_product(db, product_id)
    require_role(db, ctx.user_id, product.organization_id, MANAGERS)

    customer = get_live(db, models.Customer, data.customer_id, "Customer not found")
    if customer.product_id != product.id:
        raise NotFoundError("Customer not found")

    interview = models.Interview(
        product_id=product.id,
        conductor_id=ctx.user_id,
        status=InterviewStatus.SCHEDULED,
        **data.model_dump(),
    )
    db.add(interview)
    db.flush()

    ctx.audit(product.organization_id, "INTERVIEW_CREATED", "INTERVIEW", interview.id,
              metadata={"title": interview.title, "customerId": str(customer.id)})
    ctx.revalidate(f"/products/{product.id}/interviews")
    return interview


@action("Failed to update interview")
def update_interview(ctx: ActionContext, interview_id: UUID, form) -> models.Interview:
    data = parse_form(schemas.InterviewUpdate, form)
    db = ctx.db
    interview, organization_id = _load_interview(db, interview_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    changes = apply_changes(interview, data.model_dump(exclude_unset=True))
    db.flush()

    ctx.audit(organization_id, "INTERVIEW_UPDATED", "INTERVIEW", interview.id, changes=changes)
    ctx.revalidate(f"/products/{interview.product_id}/interviews", f"/interviews/{interview.id}")
    return interview


@action("Failed to delete interview")
def delete_interview(ctx: ActionContext, interview_id: UUID) -> None:
    db = ctx.db
    interview, organization_id = _load_interview(db, interview_id)
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    interview.soft_delete()
    ctx.audit(organization_id, "INTERVIEW_DELETED", "INTERVIEW", interview.id,
              metadata={"title": interview.title})
    ctx.revalidate(f"/products/{interview.product_id}/interviews")


@action("Failed to create insight")
def create_insight(ctx: ActionContext, form) -> models.Insight:
    """Record an insight from an interview; it belongs to the interview's product."""
    data = parse_form(schemas.InsightCreate, form)
    db = ctx.db
    interview, organization_id = _load_interview(db, data.interview_id)
    require_role(db, ctx.user_id, organization_id, WRITERS)

    insight = models.Insight(product_id=interview.product_id, **data.model_dump())
    db.add(insight)
    db.flush()

    ctx.audit(organization_id, "INSIGHT_CREATED", "INSIGHT", insight.id,
              metadata={"title": insight.title, "interviewId": str(interview.id)})
    ctx.revalidate(f"/products/{interview.product_id}/insights", f"/interviews/{interview.id}")
    return insight


@action("Failed to delete insight")
def delete_insight(ctx: ActionContext, insight_id: UUID) -> None:
    db = ctx.db
    insight = get_live(db, models.Insight, insight_id, "Insight not found")
    organization_id = get_product(db, insight.product_id).organization_id
    require_role(db, ctx.user_id, organization_id, MANAGERS)

    insight.soft_delete()
    ctx.audit(organization_id, "INSIGHT_DELETED", "INSIGHT", insight.id, metadata={"title": insight.title})
    ctx.revalidate(f"/products/{insight.product_id}/insights")
