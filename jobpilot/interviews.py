"""Attach interview snapshots to applications."""

import logging
from typing import Any, Iterable, Optional

import requests
from pydantic import ValidationError

from .errors import MergeWarning, SaveError, error_message
from .models import Application, InterviewInfo, InterviewLookup, LookupStatus

logger = logging.getLogger(__name__)

INTERVIEWS = "/interviews"


def resolve_application_id(payload: dict[str, Any]) -> Optional[int]:
    """Find which application an interview payload belongs to.

    Current servers nest the id as `job: {"id": ...}`; some send `job` as a
    bare id, and older ones use a flat `applicationId`. Checked in that order.
    """
    job = payload.get("job")
    if isinstance(job, dict) and job.get("id") is not None:
        return _as_int(job["id"])
    if job is not None and not isinstance(job, dict):
        resolved = _as_int(job)
        if resolved is not None:
            return resolved
    return _as_int(payload.get("applicationId"))


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def first_record(data: Any) -> Optional[dict[str, Any]]:
    """Accept a single object or a list of them and return the first one."""
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict) and data:
        return data
    return None


def snapshot_from_payload(payload: dict[str, Any], application_id: int) -> InterviewInfo:
    return InterviewInfo(
        application_id=application_id,
        date=payload.get("date"),
        interviewer=payload.get("interviewer"),
        prep_notes=payload.get("prepNotes"),
    )


class InterviewAssociator:
    """Fetches and saves interviews on behalf of an application store."""

    def __init__(self, gateway, store):
        self.gateway = gateway
        self.store = store

    def merge_all(self, applications: Iterable[Application]) -> int:
        """Overlay every known interview onto the given applications.

        Failure to fetch the interview list is logged and otherwise ignored.
        Returns the number of snapshots attached.
        """
        by_id = {app.id: app for app in applications}

        try:
            data = self.gateway.get(INTERVIEWS)
        except requests.RequestException as e:
            warning = MergeWarning(error_message(e, "Failed to fetch interviews"))
            logger.warning(f"Fetch interviews skipped: {warning}")
            return 0

        if not isinstance(data, list):
            logger.warning(f"Fetch interviews skipped: unexpected payload {type(data).__name__}")
            return 0

        attached = 0
        for payload in data:
            if not isinstance(payload, dict):
                continue
            app_id = resolve_application_id(payload)
            app = by_id.get(app_id)
            if app is None:
                logger.debug(f"Dropping interview for unknown application {app_id}")
                continue
            try:
                app.interview = snapshot_from_payload(payload, app.id)
            except ValidationError as e:
                logger.warning(f"Skipping malformed interview for application {app.id}: {e}")
                continue
            attached += 1

        logger.info(f"Merged {attached} interviews into {len(by_id)} applications")
        return attached

    def fetch_one(self, application_id: int) -> InterviewLookup:
        """Load the interview for one application."""
        try:
            data = self.gateway.get(f"{INTERVIEWS}/job/{application_id}")
        except requests.RequestException as e:
            message = error_message(e, "Failed to fetch interview")
            self.store.error = message
            logger.error(f"Failed to fetch interview for application {application_id}: {message}")
            return InterviewLookup(status=LookupStatus.ERROR, error=message)

        payload = first_record(data)
        if payload is None:
            return InterviewLookup(status=LookupStatus.NOT_FOUND)

        try:
            snapshot = snapshot_from_payload(
                payload, resolve_application_id(payload) or application_id
            )
        except ValidationError as e:
            message = "Failed to fetch interview"
            self.store.error = message
            logger.error(f"Malformed interview for application {application_id}: {e}")
            return InterviewLookup(status=LookupStatus.ERROR, error=message)

        app = self.store.get(application_id)
        if app is not None:
            app.interview = snapshot
        return InterviewLookup(status=LookupStatus.FOUND, interview=snapshot)

    def save(self, application_id: int, interview: InterviewInfo) -> InterviewInfo:
        """Create or replace the interview for an application."""
        payload = {
            "job": {"id": application_id},
            "date": interview.date,
            "interviewer": interview.interviewer,
            "prepNotes": interview.prep_notes,
        }
        try:
            self.gateway.post(INTERVIEWS, payload)
        except requests.RequestException as e:
            message = error_message(e, "Failed to save interview")
            self.store.error = message
            raise SaveError(message) from e

        snapshot = InterviewInfo(
            application_id=application_id,
            date=interview.date,
            interviewer=interview.interviewer,
            prep_notes=interview.prep_notes,
        )
        app = self.store.get(application_id)
        if app is not None:
            app.interview = snapshot
        logger.info(f"Saved interview for application {application_id}")
        return snapshot
