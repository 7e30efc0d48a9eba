"""
Lookups against the user/course directory.

Responses are validated into typed records here so callers never handle
raw JSON payloads.
"""

import json
import logging

import httpx
from pydantic import BaseModel, ValidationError

DEFAULT_TIMEOUT = 3.0

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


class StudentRecord(BaseModel):
    id: str
    name: str = ""
    email: str = ""

    @property
    def display_name(self) -> str:
        if self.name.strip():
            return f"{self.name} ({self.email})"
        return self.email


class CourseRecord(BaseModel):
    id: str
    title: str = ""
    instructor_id: str | None = None


def _student_rows(payload) -> list:
    # legacy shape: {"users": "<json-encoded array>"} with "username" as the id
    if isinstance(payload, dict) and "users" in payload:
        users = payload["users"]
        if isinstance(users, str):
            users = json.loads(users)
        payload = users
    if not isinstance(payload, list):
        raise ValueError("student directory returned a non-list payload")
    rows = []
    for item in payload:
        if isinstance(item, dict) and "id" not in item and "username" in item:
            item = {**item, "id": item["username"]}
        rows.append(item)
    return rows


class DirectoryClient:
    def __init__(self, base_url: str | None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout

    async def _get(self, path: str, request_id: str | None = None):
        if not self.base_url:
            raise DirectoryError("DIRECTORY_SERVICE_URL is not configured", status_code=503)

        headers = {"X-Request-Id": request_id} if request_id else {}
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url, headers=headers)
                if resp.status_code == 404:
                    return None
                resp.raise_for_status()
                return resp.json()
        except httpx.TimeoutException:
            raise DirectoryError(f"Timeout calling directory: {url}", status_code=504)
        except httpx.HTTPStatusError as e:
            raise DirectoryError(f"Directory returned {e.response.status_code}: {url}")
        except httpx.HTTPError as e:
            raise DirectoryError(f"Bad gateway calling directory: {url}: {e}")

    async def fetch_course(self, course_id: str, request_id: str | None = None) -> CourseRecord | None:
        data = await self._get(f"/courses/{course_id}", request_id)
        if data is None:
            return None
        try:
            return CourseRecord.model_validate(data)
        except ValidationError as e:
            raise DirectoryError(f"Malformed course record for {course_id}: {e}")

    async def fetch_students(self, request_id: str | None = None) -> list[StudentRecord]:
        data = await self._get("/students", request_id)
        if data is None:
            return []
        try:
            rows = _student_rows(data)
        except ValueError as e:
            raise DirectoryError(f"Malformed student list: {e}")

        students = []
        for row in rows:
            try:
                students.append(StudentRecord.model_validate(row))
            except ValidationError as e:
                logger.warning("dropping malformed student record: %s", e)
        return students
