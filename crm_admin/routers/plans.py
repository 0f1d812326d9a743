from fastapi import APIRouter

from crm_admin.core.config import PAYMENT_PLAN_IDS

router = APIRouter(prefix="/api/subscription-plans", tags=["plans"])


@router.get("")
def list_subscription_plans():
    plans = []
    for key, plan_id in PAYMENT_PLAN_IDS.items():
        tier, interval = key.split("_", 1)
        plans.append({"tier": tier, "interval": interval, "planId": plan_id or None})
    return {"plans": plans}
