"""
Supabase persistence for jobs, pricing rows, discount codes and admin lookups.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from supabase import Client, create_client  # type: ignore

from ..exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    StoreError,
    ValidationFailedError,
)
from ..models import JobCreate, JobStatus

logger = logging.getLogger(__name__)

REQUIRED_JOB_FIELDS = ("client_name", "client_email", "property_address")

# Used only when status transitions are enforced
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.QUOTED, JobStatus.ACCEPTED, JobStatus.IN_PROGRESS, JobStatus.CANCELLED},
    JobStatus.QUOTED: {JobStatus.PENDING, JobStatus.ACCEPTED, JobStatus.CANCELLED},
    JobStatus.ACCEPTED: {JobStatus.IN_PROGRESS, JobStatus.INVOICE_SENT, JobStatus.CANCELLED},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED, JobStatus.INVOICE_SENT, JobStatus.CANCELLED},
    JobStatus.COMPLETED: {JobStatus.INVOICE_SENT, JobStatus.INVOICE_PAID},
    JobStatus.INVOICE_SENT: {JobStatus.INVOICE_PAID, JobStatus.COMPLETED, JobStatus.CANCELLED},
    JobStatus.INVOICE_PAID: set(),
    JobStatus.CANCELLED: {JobStatus.PENDING},
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_status(value: Any) -> JobStatus:
    try:
        return JobStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in JobStatus)
        raise ValidationFailedError(f"Invalid status '{value}'. Allowed: {allowed}")


def check_transition(current: Optional[str], new: JobStatus) -> None:
    if current is None or current == new.value:
        return
    current_status = parse_status(current)
    if new not in ALLOWED_TRANSITIONS[current_status]:
        raise ValidationFailedError(f"Cannot change status from {current_status.value} to {new.value}")


def create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    if not url or not key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required")
    client = create_client(url, key)
    logger.info(f"Supabase client initialized with URL: {url}")
    return client


class JobStore:
    def __init__(self, client: Optional[Client] = None, enforce_transitions: bool = False):
        self.supabase = client or create_supabase_client()
        self.enforce_transitions = enforce_transitions

    # ------------------------------------------------------------------ jobs

    def create_job(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        missing = [f for f in REQUIRED_JOB_FIELDS if not payload.get(f)]
        if missing:
            raise ValidationFailedError(f"Missing required fields: {', '.join(missing)}")
        try:
            job = JobCreate(**payload)
        except ValidationError as e:
            raise ValidationFailedError("Invalid job data", response=e.errors(include_url=False))

        row = job.model_dump(mode="json", exclude_none=True)
        try:
            result = self.supabase.table("jobs").insert(row).execute()
        except Exception as e:
            logger.error(f"Error creating job record: {e}")
            raise StoreError("Failed to create job record", response=str(e))
        created = (result.data or [None])[0]
        logger.info(f"Job record created: {created.get('id') if created else None}")
        return created or row

    def get_job(self, job_id: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table("jobs").select("*").eq("id", job_id).limit(1).execute()
        except Exception as e:
            logger.error(f"Error fetching job {job_id}: {e}")
            raise StoreError("Failed to fetch job", response=str(e))
        if not result.data:
            raise NotFoundError(f"Job {job_id} not found")
        return result.data[0]

    def update_job(self, job_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
        if not job_id:
            raise ValidationFailedError("Missing jobId")
        data = {k: v for k, v in (update_data or {}).items() if k not in ("id", "created_at")}
        if not data:
            raise ValidationFailedError("No fields to update")

        if "status" in data:
            new_status = parse_status(data["status"])
            data["status"] = new_status.value
            if self.enforce_transitions:
                current = self.get_job(job_id)
                check_transition(current.get("status"), new_status)
            if new_status == JobStatus.COMPLETED and not data.get("completed_date"):
                data["completed_date"] = _now_iso()

        data["updated_at"] = _now_iso()
        try:
            result = self.supabase.table("jobs").update(data).eq("id", job_id).execute()
        except Exception as e:
            logger.error(f"Error updating job {job_id}: {e}")
            raise StoreError("Failed to update job", response=str(e))
        if not result.data:
            raise NotFoundError(f"Job {job_id} not found")
        logger.info(f"Job {job_id} updated: {sorted(data)}")
        return result.data[0]

    def list_jobs(self) -> List[Dict[str, Any]]:
        """All jobs, newest first. Uses the privileged function, then a direct query."""
        try:
            result = self.supabase.rpc("get_admin_jobs", {}).execute()
            if result.data is not None:
                return list(result.data)
        except Exception as e:
            logger.warning(f"get_admin_jobs failed, falling back to direct query: {e}")
        try:
            result = self.supabase.table("jobs").select("*").order("created_at", desc=True).execute()
        except Exception as e:
            logger.error(f"Error fetching jobs: {e}")
            raise StoreError("Failed to fetch jobs", response=str(e))
        return list(result.data or [])

    def jobs_created_since(self, since_iso: str) -> List[Dict[str, Any]]:
        try:
            result = self.supabase.table("jobs").select("*").gte("created_at", since_iso).execute()
        except Exception as e:
            logger.error(f"Error fetching recent jobs: {e}")
            raise StoreError("Failed to fetch report data", response=str(e))
        return list(result.data or [])

    # --------------------------------------------------------------- pricing

    def prices_for_tier(self, tier: str) -> Dict[str, float]:
        result = self.supabase.table("service_pricing").select("*").eq("tier_name", tier).execute()
        return {row["service_id"]: row["price"] for row in (result.data or []) if row.get("service_id")}

    def get_discount_code(self, code: str) -> Optional[Dict[str, Any]]:
        result = (
            self.supabase.table("discount_codes")
            .select("*")
            .eq("code", code.upper())
            .eq("is_active", True)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    # ----------------------------------------------------------------- admin

    def verify_admin(self, access_token: Optional[str]) -> Dict[str, Any]:
        """Resolve a bearer token to a user and require the admin role."""
        if not access_token:
            raise AuthenticationError("Missing authorization header")
        try:
            response = self.supabase.auth.get_user(access_token)
        except Exception as e:
            logger.info(f"Token verification failed: {e}")
            raise AuthenticationError("Invalid token")
        user = getattr(response, "user", None)
        if user is None:
            raise AuthenticationError("Invalid token")

        try:
            result = self.supabase.table("profiles").select("role").eq("id", user.id).limit(1).execute()
        except Exception as e:
            logger.error(f"Error fetching profile for {user.id}: {e}")
            raise AuthorizationError("Admin access required")
        profile = result.data[0] if result.data else {}
        if profile.get("role") != "admin":
            raise AuthorizationError("Admin access required")
        return {"id": user.id, "email": getattr(user, "email", None), "role": "admin"}

    def get_admin_settings(self) -> Dict[str, Any]:
        try:
            result = (
                self.supabase.table("admin_settings")
                .select("notification_emails, weekly_reports_enabled")
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.warning(f"Could not load admin settings: {e}")
            return {}
        return result.data[0] if result.data else {}
