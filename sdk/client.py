"""
Problem submission client.

`ProblemSubmitter` giữ state giống như một view: `is_submitting`, `result`,
`error`. Mọi lỗi đều được chuyển thành một chuỗi trong `error` (kèm `result`
bị xoá), không có exception nào lọt ra ngoài `submit()`.
"""

import logging
from functools import partial
from typing import Any, Dict, Optional, Tuple

import httpx

from infra.utils.validation import is_valid_uuid
from .errors import (
    INVALID_RESPONSE_FORMAT,
    INVALID_USER_SESSION,
    MISSING_PROBLEM_ID,
    NO_RESPONSE,
    PROBLEM_CONTENT_REQUIRED,
    PROBLEM_TITLE_REQUIRED,
    SIGN_IN_REQUIRED,
    SubmissionFailed,
    describe_http_error,
)
from .models import POLLABLE_STATUSES, AuthContext, PollingConfig, ProblemResult, ProblemSubmissionData
from .polling import PollHandle

logger = logging.getLogger(__name__)

SUBMIT_PATH = "/functions/v1/submit-problem"


def resolve_identity(auth: AuthContext) -> Tuple[Optional[str], Dict[str, str]]:
    """Return (user_id to send, extra headers) for the acting identity.

    1. Live session with an access token -> bearer header + session identity.
    2. Authenticated flag with a UUID identity -> that identity, no bearer.
    3. Guest -> no user_id at all; the server mints a guest identity.
    4. Otherwise the caller must sign in.
    """
    token = auth.bearer_token
    if token:
        user_id = auth.session.user_id
        if not is_valid_uuid(user_id):
            logger.error(f"Invalid user ID format in session: {user_id}")
            raise SubmissionFailed(INVALID_USER_SESSION)
        return user_id, {"Authorization": f"Bearer {token}"}

    if auth.is_authenticated and auth.user_id:
        if not is_valid_uuid(auth.user_id):
            logger.error(f"Invalid user ID format: {auth.user_id}")
            raise SubmissionFailed(INVALID_USER_SESSION)
        return auth.user_id, {}

    if auth.is_guest:
        logger.info("Guest user detected, letting the server assign a user ID")
        return None, {}

    raise SubmissionFailed(SIGN_IN_REQUIRED)


def build_request_body(data: ProblemSubmissionData, user_id: Optional[str]) -> Dict[str, Any]:
    body = {
        "input_type": data.input_type,
        "title": data.title.strip(),
        "description": data.description.strip() if data.description else None,
        "text_content": data.text_content.strip() if data.text_content else None,
        "image_data": data.image_data,
        "voice_url": data.voice_url,
        "user_id": user_id,
    }
    # Key không có giá trị bị bỏ hẳn (guest không gửi user_id, kể cả null)
    return {k: v for k, v in body.items() if v is not None}


def _has_content(data: ProblemSubmissionData) -> bool:
    return bool((data.text_content or "").strip() or data.image_data or data.voice_url)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or body.get("details") or "")
    return ""


class ProblemSubmitter:
    def __init__(
        self,
        http: httpx.AsyncClient,
        polling: Optional[PollingConfig] = None,
        submit_path: str = SUBMIT_PATH,
    ):
        self.http = http
        self.polling = polling or PollingConfig()
        self.submit_path = submit_path

        self.is_submitting = False
        self.result: Optional[ProblemResult] = None
        self.error: Optional[str] = None
        self.polls: Dict[str, PollHandle] = {}
        # id của bài nộp mà `result`/`error` đang hiển thị
        self._current_id: Optional[str] = None

    async def __aenter__(self) -> "ProblemSubmitter":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def submit(self, data: ProblemSubmissionData, auth: AuthContext) -> Optional[str]:
        """Submit one problem; returns its id, or None with `error` set."""
        self.error = None
        self.result = None
        self._current_id = None

        if not (data.title or "").strip():
            self.error = PROBLEM_TITLE_REQUIRED
            return None
        if not _has_content(data):
            self.error = PROBLEM_CONTENT_REQUIRED
            return None

        self.is_submitting = True
        try:
            return await self._submit(data, auth)
        except SubmissionFailed as e:
            logger.error(f"Problem submission error: {e.message}")
            self.error = e.message
            self.result = None
            return None
        except Exception as e:
            logger.exception("Unexpected problem submission error")
            self.error = f"Failed to submit problem: {e}"
            self.result = None
            return None
        finally:
            self.is_submitting = False

    async def _submit(self, data: ProblemSubmissionData, auth: AuthContext) -> str:
        user_id, headers = resolve_identity(auth)
        body = build_request_body(data, user_id)

        logged = dict(body)
        if "image_data" in logged:
            logged["image_data"] = "[IMAGE_DATA]"
        logger.info(f"Submitting problem with data: {logged}")

        try:
            resp = await self.http.post(self.submit_path, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Submission request failed: {e}")
            raise SubmissionFailed(describe_http_error(None, str(e)))

        if resp.is_error:
            detail = _error_detail(resp)
            logger.error(f"Submission endpoint returned {resp.status_code}: {detail}")
            raise SubmissionFailed(describe_http_error(resp.status_code, detail))

        try:
            payload = resp.json()
        except ValueError:
            raise SubmissionFailed(INVALID_RESPONSE_FORMAT)
        if not payload:
            raise SubmissionFailed(NO_RESPONSE)
        if not isinstance(payload, dict):
            raise SubmissionFailed(INVALID_RESPONSE_FORMAT)

        if not payload.get("success"):
            message = payload.get("error") or payload.get("details") or "Unknown server error"
            raise SubmissionFailed(f"Server error: {message}")

        problem_id = payload.get("problemId")
        if not problem_id:
            raise SubmissionFailed(MISSING_PROBLEM_ID)
        if not is_valid_uuid(problem_id):
            logger.error(f"Invalid problem ID format received: {problem_id}")
            raise SubmissionFailed(INVALID_RESPONSE_FORMAT)

        logger.info(f"Problem submitted successfully with ID: {problem_id}")
        self._current_id = problem_id

        status = payload.get("status") or "pending"
        self.result = ProblemResult(
            id=problem_id,
            status=status,
            solution=payload.get("solution"),
            subject=payload.get("subject"),
            difficulty=payload.get("difficulty"),
            tags=payload.get("tags"),
        )

        if status in POLLABLE_STATUSES:
            self._start_polling(problem_id, auth)
        return problem_id

    def _start_polling(self, problem_id: str, auth: AuthContext) -> PollHandle:
        logger.info(f"Starting polling for problem {problem_id}")
        handle = PollHandle(
            self.http,
            problem_id,
            auth=auth,
            config=self.polling,
            on_update=partial(self._set_result, problem_id),
            on_error=partial(self._set_error, problem_id),
        )
        self.polls[problem_id] = handle
        handle.start()
        handle.add_done_callback(self._forget_poll)
        return handle

    def _forget_poll(self, handle: PollHandle) -> None:
        if self.polls.get(handle.problem_id) is handle:
            del self.polls[handle.problem_id]

    def _set_result(self, problem_id: str, result: ProblemResult) -> None:
        # Bỏ qua cập nhật của bài nộp cũ, không ghi đè bài đang hiển thị
        if problem_id != self._current_id:
            logger.debug(f"Ignoring stale update for problem {problem_id}")
            return
        self.result = result

    def _set_error(self, problem_id: str, message: str) -> None:
        if problem_id != self._current_id:
            logger.debug(f"Ignoring stale error for problem {problem_id}: {message}")
            return
        self.error = message

    async def wait_for_result(self, problem_id: str) -> Optional[ProblemResult]:
        """Chờ vòng polling của `problem_id` (nếu còn chạy) và trả về kết quả của nó."""
        handle = self.polls.get(problem_id)
        if handle is not None:
            return await handle.wait()
        if self.result is not None and self.result.id == problem_id:
            return self.result
        return None

    def clear_result(self) -> None:
        self.result = None
        self.error = None
        self._current_id = None

    def cancel_polling(self) -> None:
        for handle in list(self.polls.values()):
            handle.cancel()

    async def aclose(self) -> None:
        """Huỷ mọi vòng polling đang chạy (vd: khi view bị đóng)."""
        self.cancel_polling()
        for handle in list(self.polls.values()):
            await handle.wait()
        self.polls.clear()
