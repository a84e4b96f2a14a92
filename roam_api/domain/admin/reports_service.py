"""Admin financial and reporting service"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...shared.formatting import isoformat, percent_change
from .repository import AdminRepository
from .schemas import PAYOUT_ACTIONS, PayoutUpdate

logger = logging.getLogger(__name__)


def summarize_transactions(transactions) -> dict:
    return {
        "revenue": sum(t.gross_payment_amount or 0 for t in transactions),
        "platform_fees": sum(t.platform_fee or 0 for t in transactions),
        "net_amount": sum(t.net_payment_amount or 0 for t in transactions),
    }


class ReportsService:
    """Service for revenue, payouts and platform metrics"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AdminRepository

    # ------------------------------------------------------------------
    # Financial
    # ------------------------------------------------------------------

    def get_financial_stats(self, date_range: int = 30) -> dict:
        today = date.today()
        start = today - timedelta(days=date_range)
        previous_start = start - timedelta(days=date_range)

        current = summarize_transactions(self.repo.get_transactions(self.db, start, today))
        previous = summarize_transactions(self.repo.get_transactions(self.db, previous_start, start, inclusive_end=False))
        revenue_change = percent_change(current["revenue"], previous["revenue"])
        pending = self.repo.list_payouts(self.db, "pending")
        period = f"Last {date_range} days"

        return {
            "success": True,
            "data": {
                "totalRevenue": {"amount": current["revenue"], "change": revenue_change, "period": period},
                "pendingPayouts": {
                    "amount": sum(p.amount or 0 for p in pending),
                    "count": len(pending),
                    "change": 0,
                },
                "platformFees": {
                    "amount": current["platform_fees"],
                    "change": percent_change(current["platform_fees"], previous["platform_fees"]),
                    "period": period,
                },
                "netAmount": {"amount": current["net_amount"], "period": period},
                "activeSubscriptions": {"count": self.repo.count_active_subscriptions(self.db)},
            },
        }

    def list_payouts(self, status: str = "all") -> dict:
        payouts = self.repo.list_payouts(self.db, status)
        return {
            "success": True,
            "data": [
                {
                    "id": payout.id,
                    "business_id": payout.business_id,
                    "business_name": payout.business.business_name if payout.business else "Unknown",
                    "amount": payout.amount or 0,
                    "status": payout.status,
                    "requested_at": isoformat(payout.requested_at),
                    "processed_at": isoformat(payout.processed_at),
                    "notes": payout.notes,
                }
                for payout in payouts
            ],
        }

    def update_payout(self, payout_id: str, body: PayoutUpdate) -> dict:
        if body.action not in PAYOUT_ACTIONS:
            raise HTTPException(status_code=400, detail='Invalid action. Must be "approve" or "reject"')
        payout = self.repo.get_payout(self.db, payout_id)
        if not payout:
            raise HTTPException(status_code=404, detail="Payout request not found")

        status = "approved" if body.action == "approve" else "rejected"
        payout.status = status
        payout.processed_at = datetime.utcnow()
        if body.notes is not None:
            payout.notes = body.notes
        try:
            self.repo.save(self.db, payout)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update payout {payout_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update payout status")

        logger.info(f"💸 Payout {payout_id} {status}")
        return {"success": True, "message": f"Payout {status} successfully"}

    def get_revenue_series(self, days: int = 30) -> dict:
        """Daily revenue for the last ``days`` days, zero-filled"""
        today = date.today()
        start = today - timedelta(days=days - 1)
        daily = defaultdict(lambda: {"revenue": 0.0, "bookings": 0, "fees": 0.0})
        for transaction in self.repo.get_transactions(self.db, start, today):
            day = daily[transaction.payment_date]
            day["revenue"] += transaction.gross_payment_amount or 0
            day["fees"] += transaction.platform_fee or 0
            if transaction.transaction_type == "initial_booking":
                day["bookings"] += 1

        series = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            series.append({"date": day.isoformat(), **daily.get(day, {"revenue": 0, "bookings": 0, "fees": 0})})
        return {"success": True, "data": series}

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get_report_metrics(self, date_range: int = 30) -> dict:
        now = datetime.utcnow()
        start = now - timedelta(days=date_range)
        previous_start = start - timedelta(days=date_range)
        period = f"Last {date_range} days"

        users = self.repo.count_new_users(self.db, start, now)
        previous_users = self.repo.count_new_users(self.db, previous_start, start)
        amounts = self.repo.get_booking_amounts(self.db, start, now)
        previous_amounts = self.repo.get_booking_amounts(self.db, previous_start, start)
        ratings = self.repo.get_ratings(self.db, start, now)
        previous_ratings = self.repo.get_ratings(self.db, previous_start, start)

        avg_rating = sum(ratings) / len(ratings) if ratings else 0
        previous_avg = sum(previous_ratings) / len(previous_ratings) if previous_ratings else 0

        return {
            "success": True,
            "data": {
                "totalUsers": {"count": users, "change": percent_change(users, previous_users), "period": period},
                "totalBookings": {
                    "count": len(amounts),
                    "change": percent_change(len(amounts), len(previous_amounts)),
                    "period": period,
                },
                "totalRevenue": {
                    "amount": sum(amounts),
                    "change": percent_change(sum(amounts), sum(previous_amounts)),
                    "period": period,
                },
                "avgRating": {
                    "rating": round(avg_rating, 2),
                    "change": percent_change(avg_rating, previous_avg),
                    "period": period,
                },
            },
        }
