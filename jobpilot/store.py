"""In-memory application collection kept in sync with the backend."""

import logging
import threading
from concurrent.futures import Future
from typing import Any, Optional, Union

import requests
from pydantic import ValidationError

from .errors import DeleteError, FetchError, UpdateError, error_message
from .interviews import InterviewAssociator
from .models import Application
from .session import SessionContext

logger = logging.getLogger(__name__)

JOBS = "/jobs"


class ApplicationStore:
    """Owns the ordered application list, its loading flag and error slot.

    Remote writes are applied locally only after the backend acknowledges
    them. `add_application` is the one exception: it appends immediately.
    """

    def __init__(
        self,
        gateway,
        context: SessionContext,
        show_all_when_anonymous: bool = False,
    ):
        self.gateway = gateway
        self.context = context
        self.show_all_when_anonymous = show_all_when_anonymous
        self.interviews = InterviewAssociator(gateway, self)

        self.applications: list[Application] = []
        self.loading = False
        self.error: Optional[str] = None

        self._flight_lock = threading.Lock()
        self._in_flight: Optional[Future] = None

    def get(self, application_id: int) -> Optional[Application]:
        for app in self.applications:
            if app.id == application_id:
                return app
        return None

    def fetch_applications(self) -> list[Application]:
        """Reload applications and their interviews.

        Callers arriving while a cycle is running wait for that cycle and get
        its result instead of starting another one.
        """
        with self._flight_lock:
            flight = self._in_flight
            leader = flight is None
            if leader:
                flight = self._in_flight = Future()

        if not leader:
            logger.info("Joining in-flight application fetch")
            return flight.result()

        try:
            result = self._run_fetch_cycle()
        except BaseException as e:
            flight.set_exception(e)
            raise
        else:
            flight.set_result(result)
            return result
        finally:
            with self._flight_lock:
                self._in_flight = None

    def _run_fetch_cycle(self) -> list[Application]:
        self.loading = True
        self.error = None
        try:
            try:
                data = self.gateway.get(JOBS)
            except requests.RequestException as e:
                self.error = error_message(e, "Failed to fetch applications")
                logger.error(f"Failed to fetch applications: {self.error}")
                raise FetchError(self.error) from e

            if not isinstance(data, list):
                self.error = "Failed to fetch applications"
                logger.error(f"Unexpected /jobs payload: {type(data).__name__}")
                raise FetchError(self.error)

            visible = self._visible(self._parse(data))
            for app in visible:
                app.interview = None
            visible.sort(key=lambda app: app.id)
            self.applications = visible
            logger.info(f"Fetched {len(visible)} applications")

            self.interviews.merge_all(visible)
            return list(visible)
        finally:
            self.loading = False

    def _parse(self, records: list[Any]) -> list[Application]:
        parsed: list[Application] = []
        seen: set[int] = set()
        for record in records:
            try:
                app = Application.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Skipping malformed application record: {e}")
                continue
            if app.id in seen:
                logger.warning(f"Dropping duplicate application id {app.id}")
                continue
            seen.add(app.id)
            parsed.append(app)
        return parsed

    def _visible(self, apps: list[Application]) -> list[Application]:
        user_id = self.context.user_id
        if user_id is None:
            if self.show_all_when_anonymous:
                return apps
            logger.warning("No session user resolved; hiding all applications")
            return []
        return [app for app in apps if app.owned_by(user_id)]

    def update_application(
        self,
        application_id: int,
        fields: dict[str, Any],
        fallback: str = "Failed to update application",
    ) -> Any:
        """Send a partial update and mirror it locally once acknowledged."""
        try:
            data = self.gateway.patch(f"{JOBS}/{application_id}", fields)
        except requests.RequestException as e:
            self.error = error_message(e, fallback)
            raise UpdateError(self.error) from e

        app = self.get(application_id)
        if app is not None:
            rejected = app.apply_fields(fields)
            if rejected:
                logger.warning(
                    f"Application {application_id} kept local values for {rejected}; "
                    "backend accepted a shape the client cannot hold"
                )
        logger.info(f"Updated application {application_id}: {sorted(fields)}")
        return data

    def update_job_description(self, application_id: int, job_description: str) -> Any:
        return self.update_application(
            application_id,
            {"jobDescription": job_description},
            fallback="Failed to update job description",
        )

    def delete_application(self, application_id: int) -> None:
        """Delete remotely, then drop the local record."""
        try:
            self.gateway.delete(f"{JOBS}/{application_id}")
        except requests.RequestException as e:
            self.error = error_message(e, "Failed to delete application")
            raise DeleteError(self.error) from e

        self.applications = [app for app in self.applications if app.id != application_id]
        logger.info(f"Deleted application {application_id}")

    def add_application(self, application: Union[Application, dict[str, Any]]) -> Application:
        """Append locally without asking the backend. Not deduplicated."""
        if not isinstance(application, Application):
            application = Application.model_validate(application)
        self.applications.append(application)
        return application
