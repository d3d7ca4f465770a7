"""
Admin dashboard aggregation over job rows.
"""

import logging
import math
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..core.scheduling import parse_timestamp

logger = logging.getLogger(__name__)

MONTHS_SHOWN = 6
RECENT_JOBS = 5


def _amount(value: Any) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(amount) else amount


def _label(service_type: Optional[str]) -> str:
    return (service_type or "unknown").replace("_", " ").title()


def _month_keys(now: datetime, count: int) -> List[str]:
    year, month = now.year, now.month
    keys = []
    for _ in range(count):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def completion_days(job: Dict[str, Any]) -> Optional[int]:
    scheduled = parse_timestamp(job.get("scheduled_date"))
    completed = parse_timestamp(job.get("completed_date"))
    if not scheduled or not completed:
        return None
    diff = (completed - scheduled).total_seconds() / 86400
    return max(0, math.ceil(diff))


def build_dashboard(jobs: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    jobs = list(jobs)
    now = now or datetime.now(timezone.utc)
    total = len(jobs)

    completed = [j for j in jobs if j.get("status") == "completed"]
    pending = [j for j in jobs if j.get("status") == "pending"]
    total_revenue = sum(_amount(j.get("final_amount")) for j in completed)
    avg_job_value = total_revenue / len(completed) if completed else 0

    durations = [d for d in (completion_days(j) for j in completed) if d is not None]
    avg_completion = round(sum(durations) / len(durations), 1) if durations else 0

    months = {key: {"month": datetime.strptime(key, "%Y-%m").strftime("%b %Y"), "key": key, "jobs": 0, "revenue": 0.0}
              for key in _month_keys(now, MONTHS_SHOWN)}
    for job in jobs:
        created = parse_timestamp(job.get("created_at"))
        if not created:
            continue
        bucket = months.get(f"{created.year:04d}-{created.month:02d}")
        if bucket is None:
            continue
        bucket["jobs"] += 1
        if job.get("status") == "completed":
            bucket["revenue"] += _amount(job.get("final_amount"))

    services = Counter(_label(j.get("service_type")) for j in jobs)
    statuses = Counter(j.get("status") or "unknown" for j in jobs)
    referrals = Counter(j.get("referral_source") or "Not specified" for j in jobs)
    referral_sources = [
        {"source": source, "count": count, "percentage": round(count / total * 100, 1)}
        for source, count in referrals.items()
    ]
    referral_sources.sort(key=lambda r: r["count"], reverse=True)

    newest = sorted(jobs, key=lambda j: parse_timestamp(j.get("created_at")) or datetime.min.replace(tzinfo=timezone.utc),
                    reverse=True)
    recent = [
        {
            "id": j.get("id"),
            "client": j.get("client_name"),
            "service": _label(j.get("service_type")),
            "status": j.get("status"),
            "amount": _amount(j.get("quoted_amount")) or _amount(j.get("final_amount")),
            "date": j.get("created_at"),
        }
        for j in newest[:RECENT_JOBS]
    ]

    return {
        "totalJobs": total,
        "pendingJobs": len(pending),
        "completedJobs": len(completed),
        "totalRevenue": total_revenue,
        "avgJobValue": avg_job_value,
        "avgCompletionTime": avg_completion,
        "monthlyJobs": list(months.values()),
        "serviceBreakdown": [{"service": s, "count": c} for s, c in services.most_common()],
        "statusBreakdown": [{"status": s, "count": c} for s, c in statuses.most_common()],
        "referralSources": referral_sources,
        "recentJobs": recent,
    }


def build_weekly_report(new_jobs: Iterable[Dict[str, Any]], total_jobs: int) -> Dict[str, Any]:
    new_jobs = list(new_jobs)
    revenue = sum(_amount(j.get("final_amount")) or _amount(j.get("quoted_amount")) for j in new_jobs)
    return {
        "newJobs": len(new_jobs),
        "weeklyRevenue": revenue,
        "totalJobs": total_jobs,
        "statusCounts": dict(Counter(j.get("status") or "unknown" for j in new_jobs)),
        "jobs": new_jobs,
    }


class DashboardService:
    def __init__(self, store, notifications=None, default_recipient: str = "info@njreap.com"):
        self.store = store
        self.notifications = notifications
        self.default_recipient = default_recipient

    def overview(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        jobs = self.store.list_jobs()
        logger.info(f"Building dashboard from {len(jobs)} jobs")
        return build_dashboard(jobs, now)

    def send_weekly_report(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        settings = self.store.get_admin_settings()
        if settings.get("weekly_reports_enabled") is False:
            logger.info("Weekly reports are disabled")
            return {"message": "Weekly reports are disabled"}

        now = now or datetime.now(timezone.utc)
        since = (now - timedelta(days=7)).isoformat()
        report = build_weekly_report(self.store.jobs_created_since(since), len(self.store.list_jobs()))
        recipients = settings.get("notification_emails") or [self.default_recipient]
        result = self.notifications.send_weekly_report(report, recipients)
        logger.info(f"Weekly report sent to {len(recipients)} recipients")
        return {**result, "newJobs": report["newJobs"], "weeklyRevenue": report["weeklyRevenue"]}
