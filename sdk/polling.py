"""
Polling loop - theo dõi trạng thái bài nộp cho tới khi `completed`/`error` hoặc timeout.

Mỗi vòng polling chạy trong một asyncio.Task riêng, được bọc trong `PollHandle`
để caller có thể huỷ. Các lần truy vấn trong một vòng là tuần tự (lần n+1 chỉ
được lên lịch sau khi lần n xong); các vòng của những bài nộp khác nhau độc lập.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from infra.utils.validation import is_valid_uuid
from .errors import (
    POLLING_TIMEOUT,
    PROBLEM_NOT_FOUND,
    PROCESSING_FAILED,
    StatusQueryError,
    describe_status_query_error,
)
from .models import AuthContext, PollingConfig, ProblemResult

logger = logging.getLogger(__name__)

STATUS_PATH = "/submissions/{problem_id}"


def _derive_error_message(row: Dict[str, Any]) -> str:
    ai_response = row.get("ai_response")
    if isinstance(ai_response, dict):
        return ai_response.get("error") or ai_response.get("message") or row.get("error_message") or PROCESSING_FAILED
    return row.get("error_message") or PROCESSING_FAILED


def normalize_submission_row(row: Dict[str, Any]) -> ProblemResult:
    """Chuẩn hoá một dòng `problem_submissions` thành ProblemResult."""
    ai_response = row.get("ai_response")
    # Ưu tiên suggested_tags trong ai_response, sau đó mới tới cột tags
    if isinstance(ai_response, dict) and isinstance(ai_response.get("suggested_tags"), list):
        tags = ai_response["suggested_tags"]
    elif isinstance(row.get("tags"), list):
        tags = row["tags"]
    else:
        tags = None

    status = row.get("status")
    return ProblemResult(
        id=row.get("id"),
        status=status,
        solution=row.get("solution") or None,
        explanation=row.get("explanation") or row.get("solution") or None,
        subject=row.get("topic") or row.get("subject") or None,
        difficulty=row.get("difficulty") or None,
        tags=tags,
        error_message=_derive_error_message(row) if status == "error" else None,
    )


async def fetch_submission_row(
    http: httpx.AsyncClient,
    problem_id: str,
    auth: Optional[AuthContext] = None,
) -> Optional[Dict[str, Any]]:
    """Đọc trạng thái hiện tại; None nếu server trả về body rỗng."""
    headers: Dict[str, str] = {}
    params: Dict[str, str] = {}
    token = auth.bearer_token if auth else None
    if token:
        headers["Authorization"] = f"Bearer {token}"
        # Chỉ đọc dòng thuộc user hiện tại
        if auth.session.user_id:
            params["user_id"] = auth.session.user_id

    try:
        resp = await http.get(STATUS_PATH.format(problem_id=problem_id), headers=headers, params=params)
    except httpx.HTTPError as e:
        raise StatusQueryError(None, str(e) or e.__class__.__name__)

    if resp.is_error:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("detail") or resp.text[:200] or f"HTTP {resp.status_code}"
        raise StatusQueryError(body.get("code"), str(message))

    if not resp.content:
        return None
    try:
        data = resp.json()
    except ValueError:
        raise StatusQueryError(None, "malformed status response")
    if not data:
        return None
    if not isinstance(data, dict):
        raise StatusQueryError(None, "malformed status response")
    return data


class PollHandle:
    """Một vòng polling có thể huỷ.

    Sau khi `cancel()`, không callback nào được gọi nữa và không có truy vấn mới.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        problem_id: str,
        auth: Optional[AuthContext] = None,
        config: Optional[PollingConfig] = None,
        on_update: Optional[Callable[[ProblemResult], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        self.http = http
        self.problem_id = problem_id
        self.auth = auth
        self.config = config or PollingConfig()
        self._on_update = on_update
        self._on_error = on_error

        self.attempts = 0
        self.result: Optional[ProblemResult] = None
        self.error: Optional[str] = None
        self._cancelled = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "PollHandle":
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"poll-{self.problem_id}")
        return self

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def add_done_callback(self, fn: Callable[["PollHandle"], None]) -> None:
        """Gọi `fn(handle)` khi vòng polling kết thúc (kể cả khi bị huỷ)."""
        if self._task is None:
            raise RuntimeError("Polling has not been started")
        self._task.add_done_callback(lambda _task: fn(self))

    async def wait(self) -> Optional[ProblemResult]:
        """Chờ vòng polling kết thúc (kể cả bị huỷ) và trả về kết quả cuối."""
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
        return self.result

    def _publish(self, result: ProblemResult) -> None:
        if self._cancelled:
            return
        self.result = result
        if self._on_update:
            self._on_update(result)

    def _fail(self, message: str) -> None:
        if self._cancelled:
            return
        self.error = message
        if self._on_error:
            self._on_error(message)

    async def _run(self) -> None:
        cfg = self.config
        try:
            await asyncio.sleep(cfg.initial_delay)

            for attempt in range(1, cfg.max_attempts + 1):
                if self._cancelled:
                    return
                self.attempts = attempt
                logger.debug(f"Polling attempt {attempt}/{cfg.max_attempts} for problem {self.problem_id}")

                if not is_valid_uuid(self.problem_id):
                    self._fail("Failed to check problem status: Invalid problem ID format for polling")
                    return

                try:
                    row = await fetch_submission_row(self.http, self.problem_id, self.auth)
                except StatusQueryError as e:
                    logger.error(f"Error polling for problem {self.problem_id}: {e.message}")
                    self._fail(describe_status_query_error(e.code, e.message))
                    return

                if row is None:
                    logger.error(f"No data returned for problem {self.problem_id}")
                    self._fail(PROBLEM_NOT_FOUND)
                    return

                result = normalize_submission_row(row)
                self._publish(result)

                if result.is_terminal:
                    if result.status == "error":
                        self._fail(result.error_message or PROCESSING_FAILED)
                    return

                if attempt < cfg.max_attempts:
                    await asyncio.sleep(cfg.interval)

            logger.error(f"Polling timeout reached for problem {self.problem_id}")
            self._fail(POLLING_TIMEOUT)
        except asyncio.CancelledError:
            self._cancelled = True
            raise
        except Exception as e:
            logger.exception(f"Polling error for problem {self.problem_id}")
            self._fail(f"Failed to check problem status: {e}")


def poll_for_completion(
    http: httpx.AsyncClient,
    problem_id: str,
    auth: Optional[AuthContext] = None,
    config: Optional[PollingConfig] = None,
    on_update: Optional[Callable[[ProblemResult], None]] = None,
    on_error: Optional[Callable[[str], None]] = None,
) -> PollHandle:
    """Bắt đầu polling trong background và trả về handle (không chờ)."""
    return PollHandle(http, problem_id, auth, config, on_update, on_error).start()
