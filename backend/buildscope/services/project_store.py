import logging
import uuid
from datetime import datetime, timezone

from supabase import Client

from buildscope.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

PROJECTS = "projects"
DAILY_REPORTS = "daily_reports"
PROJECT_FILES = "project_files"
ERROR_REPORTS = "error_reports"


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectStore:
    """Project records and their child collections in Supabase.

    A project row carries its chat history, derived scope/proposal documents
    and lessons learned as JSON columns, so a single-row UPDATE changes all of
    them atomically.
    """

    def __init__(self, supabase: Client, conflict_retries: int = 3):
        self.supabase = supabase
        self.conflict_retries = conflict_retries

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, user_id: str, name: str, description: str = "") -> dict:
        now = utcnow()
        result = (
            self.supabase.table(PROJECTS)
            .insert(
                {
                    "id": str(uuid.uuid4()),
                    "user_id": user_id,
                    "name": name,
                    "description": description,
                    "status": "active",
                    "created_at": now,
                    "updated_at": now,
                    "chat_history": [],
                    "scope": None,
                    "proposal": None,
                    "lessons_learned": [],
                }
            )
            .execute()
        )
        return result.data[0]

    def get_project(self, project_id: str) -> dict | None:
        result = (
            self.supabase.table(PROJECTS)
            .select("*")
            .eq("id", project_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def get_owned_project(self, project_id: str, user_id: str) -> dict:
        """Fetch a project, treating another user's project as missing."""
        project = self.get_project(project_id)
        if project is None or project.get("user_id") != user_id:
            raise NotFoundError("Project not found")
        return project

    def list_projects(self, user_id: str) -> list[dict]:
        result = (
            self.supabase.table(PROJECTS)
            .select("id, name, description, status, created_at, updated_at")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return result.data or []

    def delete_project(self, project_id: str, user_id: str) -> None:
        self.supabase.table(DAILY_REPORTS).delete().eq("project_id", project_id).execute()
        self.supabase.table(PROJECTS).delete().eq("id", project_id).eq("user_id", user_id).execute()

    def update_project(self, project_id: str, values: dict) -> dict:
        result = (
            self.supabase.table(PROJECTS)
            .update({**values, "updated_at": utcnow()})
            .eq("id", project_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Project not found")
        return result.data[0]

    def append_turns(
        self,
        project_id: str,
        turns: list[dict],
        derive=None,
    ) -> dict:
        """Append chat turns and apply derived-document changes in one UPDATE.

        ``derive`` receives the freshly read project row and returns extra
        column values (e.g. a new ``scope``). The UPDATE is conditioned on the
        ``updated_at`` that was read; when a concurrent writer wins, the row is
        re-read and the append retried.
        """
        for attempt in range(1, self.conflict_retries + 1):
            project = self.get_project(project_id)
            if project is None:
                raise NotFoundError("Project not found")

            values = {
                "chat_history": list(project.get("chat_history") or []) + turns,
                "updated_at": utcnow(),
            }
            if derive is not None:
                values.update(derive(project))

            result = (
                self.supabase.table(PROJECTS)
                .update(values)
                .eq("id", project_id)
                .eq("updated_at", project["updated_at"])
                .execute()
            )
            if result.data:
                return result.data[0]

            logger.warning(
                "Concurrent update on project %s (attempt %d/%d), retrying",
                project_id, attempt, self.conflict_retries,
            )

        raise PersistenceError("Project was modified concurrently; chat turn not saved")

    # ------------------------------------------------------------------
    # Daily reports
    # ------------------------------------------------------------------

    def list_daily_reports(self, project_id: str) -> list[dict]:
        result = (
            self.supabase.table(DAILY_REPORTS)
            .select("*")
            .eq("project_id", project_id)
            .order("date", desc=True)
            .execute()
        )
        return result.data or []

    def get_daily_report(self, project_id: str, report_id: str) -> dict:
        result = (
            self.supabase.table(DAILY_REPORTS)
            .select("*")
            .eq("id", report_id)
            .eq("project_id", project_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Daily report not found")
        return result.data[0]

    def create_daily_report(self, project_id: str, report: dict) -> dict:
        now = utcnow()
        result = (
            self.supabase.table(DAILY_REPORTS)
            .insert(
                {
                    **report,
                    "id": str(uuid.uuid4()),
                    "project_id": project_id,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            .execute()
        )
        return result.data[0]

    def update_daily_report(self, project_id: str, report_id: str, report: dict) -> dict:
        result = (
            self.supabase.table(DAILY_REPORTS)
            .update({**report, "updated_at": utcnow()})
            .eq("id", report_id)
            .eq("project_id", project_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Daily report not found")
        return result.data[0]

    def delete_daily_report(self, project_id: str, report_id: str) -> None:
        result = (
            self.supabase.table(DAILY_REPORTS)
            .delete()
            .eq("id", report_id)
            .eq("project_id", project_id)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Daily report not found")

    # ------------------------------------------------------------------
    # Files and error reports
    # ------------------------------------------------------------------

    def record_file(self, project_id: str, user_id: str, file_name: str, file_url: str, path: str) -> dict:
        result = (
            self.supabase.table(PROJECT_FILES)
            .insert(
                {
                    "id": str(uuid.uuid4()),
                    "project_id": project_id,
                    "file_name": file_name,
                    "file_url": file_url,
                    "storage_path": path,
                    "uploaded_by": user_id,
                    "uploaded_at": utcnow(),
                }
            )
            .execute()
        )
        return result.data[0]

    def record_error_report(self, report: dict) -> None:
        try:
            self.supabase.table(ERROR_REPORTS).insert(
                {**report, "id": str(uuid.uuid4()), "created_at": utcnow()}
            ).execute()
        except Exception as e:
            logger.error("Failed to record error report: %s", e)
