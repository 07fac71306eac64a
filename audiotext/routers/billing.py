# audiotext/routers/billing.py
from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from audiotext.context import AppContext
from audiotext.db.crud import ActivityLogRepository, UserRepository
from audiotext.db.models import PlanType, User
from audiotext.errors import NotImplementedFeature, ValidationFailure
from audiotext.responses import ok
from audiotext.security import AuthContext, get_context, get_current_auth, get_db

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])

LIVE_STATUSES = ("active", "trialing", "past_due")


class CheckoutBody(BaseModel):
    plan: Literal["pro", "enterprise"]


def _require_billing(
    auth: AuthContext = Depends(get_current_auth),
    ctx: AppContext = Depends(get_context),
) -> AppContext:
    # resolved after auth so anonymous callers get 401, not 501
    if not ctx.billing.configured:
        raise NotImplementedFeature("Billing is not configured")
    return ctx


def _pick_subscription(subs) -> Optional[Dict[str, Any]]:
    live = [s for s in subs if s.get("status") in LIVE_STATUSES]
    if not live:
        return None
    return max(live, key=lambda s: s.get("created") or 0)


def _price_of(sub: Dict[str, Any]) -> Optional[str]:
    items = (sub.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


async def _sync_subscription(ctx: AppContext, users: UserRepository, user: User) -> User:
    """Pick up a subscription created through Stripe Checkout that we have not stored yet."""
    if user.subscription_id or not user.stripe_customer_id:
        return user
    sub = _pick_subscription(await ctx.billing.list_customer_subscriptions(user.stripe_customer_id))
    if sub is None:
        return user
    plan = ctx.billing.plan_for_price(_price_of(sub))
    changes = {"subscription_id": sub["id"], "subscription_status": sub.get("status")}
    if plan:
        changes["plan_type"] = PlanType(plan)
    log.info("synced subscription user=%s sub=%s plan=%s", user.id, sub["id"], plan)
    return await run_in_threadpool(users.update, user, **changes)


@router.post("/checkout")
async def checkout(
    body: CheckoutBody,
    ctx: AppContext = Depends(_require_billing),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    price_id = ctx.billing.price_for(body.plan)
    users = UserRepository(db)
    user = await run_in_threadpool(users.find_by_id, auth.user.id)

    if not user.stripe_customer_id:
        customer = await ctx.billing.create_customer(user.email, user.name, {"userId": user.id})
        user = await run_in_threadpool(users.update, user, stripe_customer_id=customer["id"])

    base = ctx.settings.frontend_url.rstrip("/")
    session = await ctx.billing.create_checkout_session(
        user.stripe_customer_id,
        price_id,
        success_url=f"{base}/billing/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/pricing",
        metadata={"userId": user.id, "plan": body.plan},
    )
    log.info("checkout user=%s plan=%s session=%s", user.id, body.plan, session.get("id"))
    return ok({"sessionId": session.get("id"), "url": session.get("url")})


@router.get("/subscription")
async def subscription(
    ctx: AppContext = Depends(_require_billing),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    users = UserRepository(db)
    user = await run_in_threadpool(users.find_by_id, auth.user.id)
    user = await _sync_subscription(ctx, users, user)
    details = None
    if user.subscription_id:
        details = await ctx.billing.get_subscription(user.subscription_id)
    return ok({
        "planType": user.plan_type.value,
        "subscriptionStatus": user.subscription_status,
        "subscription": details,
    })


@router.post("/cancel")
async def cancel(
    ctx: AppContext = Depends(_require_billing),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    users = UserRepository(db)
    user = await run_in_threadpool(users.find_by_id, auth.user.id)
    user = await _sync_subscription(ctx, users, user)
    if not user.subscription_id:
        raise ValidationFailure("No active subscription")

    result = await ctx.billing.cancel_subscription(user.subscription_id)
    status = result.get("status", "canceled")
    await run_in_threadpool(
        users.update,
        user,
        subscription_status=status,
        subscription_id=None,
        plan_type=PlanType.free,
    )
    await run_in_threadpool(
        ActivityLogRepository(db).record, user.id, "subscription_cancel", "Subscription canceled"
    )
    return ok({"status": status}, message="Subscription canceled")
