import asyncio
import json

import httpx
import pytest

from sdk import AuthContext, AuthSession, PollingConfig, ProblemSubmissionData, ProblemSubmitter
from sdk import errors

USER_ID = "123e4567-e89b-42d3-a456-426614174000"
PROBLEM_ID = "9b2f7c1e-3d4a-4e5b-8c6d-7e8f9a0b1c2d"
FAST_POLLING = PollingConfig(initial_delay=0, interval=0, max_attempts=5)


def _completed_response(**overrides):
    body = {
        "success": True,
        "problemId": PROBLEM_ID,
        "sessionId": "0b2f7c1e-3d4a-4e5b-8c6d-7e8f9a0b1c2d",
        "status": "completed",
        "solution": "4",
        "subject": "Mathematics",
        "difficulty": "easy",
        "tags": ["addition"],
    }
    body.update(overrides)
    return body


class Backend:
    """Records requests and answers them with canned responses."""

    def __init__(self, submit_response=None, status_rows=None):
        self.submit_response = submit_response or httpx.Response(200, json=_completed_response())
        self.status_rows = list(status_rows or [])
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.submit_response, Exception):
            raise self.submit_response
        if request.method == "POST":
            if isinstance(self.submit_response, list):
                return self.submit_response.pop(0)
            return self.submit_response
        row = dict(self.status_rows.pop(0) if len(self.status_rows) > 1 else self.status_rows[0])
        row.setdefault("id", request.url.path.rsplit("/", 1)[-1])
        return httpx.Response(200, json=row)

    @property
    def posts(self):
        return [r for r in self.requests if r.method == "POST"]

    @property
    def gets(self):
        return [r for r in self.requests if r.method == "GET"]


def _run(backend, scenario, polling=FAST_POLLING):
    async def _main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(backend), base_url="http://test") as http:
            async with ProblemSubmitter(http, polling=polling) as submitter:
                return await scenario(submitter)
    return asyncio.run(_main())


def _text(title="Q1", content="2+2?"):
    return ProblemSubmissionData(title=title, input_type="text", text_content=content)


def test_signed_in_submit_sends_bearer_and_user_id():
    backend = Backend()

    async def scenario(submitter):
        problem_id = await submitter.submit(_text(), AuthContext.signed_in(USER_ID, "tok-123"))
        return problem_id, submitter.result, dict(submitter.polls), submitter.error

    problem_id, result, polls, error = _run(backend, scenario)

    assert problem_id == PROBLEM_ID
    assert error is None
    assert len(backend.requests) == 1
    request = backend.requests[0]
    assert request.url.path == "/functions/v1/submit-problem"
    assert request.headers["Authorization"] == "Bearer tok-123"
    body = json.loads(request.content)
    assert body == {"input_type": "text", "title": "Q1", "text_content": "2+2?", "user_id": USER_ID}
    assert result.status == "completed"
    assert result.solution == "4"
    assert polls == {}


def test_guest_submit_omits_user_id_entirely():
    backend = Backend()
    _run(backend, lambda s: s.submit(_text(), AuthContext.guest()))

    request = backend.requests[0]
    assert "user_id" not in json.loads(request.content)
    assert "Authorization" not in request.headers


def test_authenticated_flag_without_session_sends_identity_without_bearer():
    backend = Backend()
    auth = AuthContext(user_id=USER_ID, is_authenticated=True)
    _run(backend, lambda s: s.submit(_text(), auth))

    request = backend.requests[0]
    assert json.loads(request.content)["user_id"] == USER_ID
    assert "Authorization" not in request.headers


def test_title_and_text_are_trimmed():
    backend = Backend()
    _run(backend, lambda s: s.submit(_text(title="  Q1  ", content="  2+2?\n"), AuthContext.guest()))

    body = json.loads(backend.requests[0].content)
    assert body["title"] == "Q1"
    assert body["text_content"] == "2+2?"


@pytest.mark.parametrize("title", ["", "   ", "\t\n"])
def test_blank_title_makes_no_network_call(title):
    backend = Backend()

    async def scenario(submitter):
        return await submitter.submit(_text(title=title), AuthContext.guest()), submitter.error

    problem_id, error = _run(backend, scenario)
    assert problem_id is None
    assert error == errors.PROBLEM_TITLE_REQUIRED
    assert backend.requests == []


def test_missing_content_makes_no_network_call():
    backend = Backend()

    async def scenario(submitter):
        data = ProblemSubmissionData(title="Q1", input_type="text", text_content="   ")
        return await submitter.submit(data, AuthContext.guest()), submitter.error

    problem_id, error = _run(backend, scenario)
    assert problem_id is None
    assert error == errors.PROBLEM_CONTENT_REQUIRED
    assert backend.requests == []


def test_image_only_submission_is_allowed():
    backend = Backend()
    data = ProblemSubmissionData(title="Photo", input_type="image", image_data="aGVsbG8=")
    _run(backend, lambda s: s.submit(data, AuthContext.guest()))

    body = json.loads(backend.requests[0].content)
    assert body["image_data"] == "aGVsbG8="
    assert "text_content" not in body


@pytest.mark.parametrize("auth, message", [
    (AuthContext(), errors.SIGN_IN_REQUIRED),
    (AuthContext(session=AuthSession(access_token="tok", user_id="not-a-uuid")), errors.INVALID_USER_SESSION),
    (AuthContext(user_id="not-a-uuid", is_authenticated=True), errors.INVALID_USER_SESSION),
])
def test_identity_errors_make_no_network_call(auth, message):
    backend = Backend()

    async def scenario(submitter):
        return await submitter.submit(_text(), auth), submitter.error

    problem_id, error = _run(backend, scenario)
    assert problem_id is None
    assert error == message
    assert backend.requests == []


@pytest.mark.parametrize("response, expected", [
    (httpx.Response(401, json={"success": False, "error": "Invalid JWT"}), errors.UNAUTHENTICATED),
    (httpx.Response(403, json={"success": False, "error": "nope"}), errors.FORBIDDEN),
    (httpx.Response(500, json={"success": False, "error": "JWT expired"}), errors.TOKEN_EXPIRED),
    (httpx.Response(400, json={"success": False, "error": "Invalid token"}), errors.TOKEN_EXPIRED),
    (
        httpx.Response(500, json={"success": False, "error": "max tokens exceeded"}),
        f"{errors.SERVICE_UNAVAILABLE} (max tokens exceeded)",
    ),
    (
        httpx.Response(500, json={"success": False, "error": "author field missing"}),
        f"{errors.SERVICE_UNAVAILABLE} (author field missing)",
    ),
    (httpx.Response(502, text="Bad Gateway"), f"{errors.SERVICE_UNAVAILABLE} (Bad Gateway)"),
    (
        httpx.Response(503, json={"success": False, "error": "AI service temporarily unavailable"}),
        f"{errors.SERVICE_UNAVAILABLE} (AI service temporarily unavailable)",
    ),
])
def test_http_errors_are_mapped_to_messages(response, expected):
    backend = Backend(submit_response=response)

    async def scenario(submitter):
        return await submitter.submit(_text(), AuthContext.guest()), submitter.error, submitter.result

    problem_id, error, result = _run(backend, scenario)
    assert problem_id is None
    assert error == expected
    assert result is None


def test_no_response_is_service_unavailable():
    backend = Backend(submit_response=httpx.ConnectError("connection refused"))

    async def scenario(submitter):
        return await submitter.submit(_text(), AuthContext.guest()), submitter.error

    problem_id, error = _run(backend, scenario)
    assert problem_id is None
    assert error.startswith(errors.SERVICE_UNAVAILABLE)


@pytest.mark.parametrize("payload, expected", [
    ({"success": False, "error": "quota exceeded"}, "Server error: quota exceeded"),
    ({"success": False, "details": "Secure processing failed"}, "Server error: Secure processing failed"),
    ({"success": True, "status": "completed"}, errors.MISSING_PROBLEM_ID),
    ({"success": True, "problemId": "1234", "status": "completed"}, errors.INVALID_RESPONSE_FORMAT),
])
def test_bad_success_payloads_are_reported(payload, expected):
    backend = Backend(submit_response=httpx.Response(200, json=payload))

    async def scenario(submitter):
        return await submitter.submit(_text(), AuthContext.guest()), submitter.error, submitter.result

    problem_id, error, result = _run(backend, scenario)
    assert problem_id is None
    assert error == expected
    assert result is None


def test_processing_response_starts_polling_until_completed():
    backend = Backend(
        submit_response=httpx.Response(200, json=_completed_response(status="processing", solution=None)),
        status_rows=[
            {"id": PROBLEM_ID, "status": "processing"},
            {"id": PROBLEM_ID, "status": "completed", "solution": "4", "topic": "Mathematics"},
        ],
    )

    async def scenario(submitter):
        problem_id = await submitter.submit(_text(), AuthContext.guest())
        assert submitter.result.status == "processing"
        assert problem_id in submitter.polls
        result = await submitter.wait_for_result(problem_id)
        return result, submitter.result, submitter.error

    result, state_result, error = _run(backend, scenario)
    assert result.status == "completed"
    assert state_result.solution == "4"
    assert state_result.subject == "Mathematics"
    assert error is None
    assert len(backend.gets) == 2


OTHER_ID = "1c2d3e4f-5a6b-4c7d-8e9f-0a1b2c3d4e5f"
# gives both submissions time to finish before either loop queries
DELAYED_POLLING = PollingConfig(initial_delay=0.05, interval=0, max_attempts=5)


def test_concurrent_submissions_are_independent():
    backend = Backend(
        submit_response=[
            httpx.Response(200, json=_completed_response(status="pending")),
            httpx.Response(200, json=_completed_response(problemId=OTHER_ID, status="pending")),
        ],
        status_rows=[{"status": "completed", "solution": "4"}],
    )

    async def scenario(submitter):
        ids = await asyncio.gather(
            submitter.submit(_text(title="A"), AuthContext.guest()),
            submitter.submit(_text(title="B"), AuthContext.guest()),
        )
        handles = dict(submitter.polls)
        results = [await handles[i].wait() for i in ids]
        return ids, sorted(handles), results

    ids, polled, results = _run(backend, scenario, polling=DELAYED_POLLING)
    assert sorted(ids) == sorted([PROBLEM_ID, OTHER_ID])
    assert polled == sorted([PROBLEM_ID, OTHER_ID])
    assert {r.id for r in results} == {PROBLEM_ID, OTHER_ID}
    assert all(r.status == "completed" for r in results)
    assert len(backend.posts) == 2
    assert sorted(json.loads(r.content)["title"] for r in backend.posts) == ["A", "B"]
    assert sorted(r.url.path for r in backend.gets) == sorted(
        [f"/submissions/{PROBLEM_ID}", f"/submissions/{OTHER_ID}"]
    )


def test_earlier_submission_cannot_overwrite_newer_result():
    backend = Backend(
        submit_response=[
            httpx.Response(200, json=_completed_response(status="pending", solution=None)),
            httpx.Response(200, json=_completed_response(problemId=OTHER_ID, status="completed", solution="B-answer")),
        ],
        status_rows=[{"status": "error", "error_message": "A failed"}],
    )

    async def scenario(submitter):
        first = await submitter.submit(_text(title="A"), AuthContext.guest())
        first_poll = submitter.polls[first]
        second = await submitter.submit(_text(title="B"), AuthContext.guest())
        first_result = await first_poll.wait()
        return second, first_result, first_poll.error, submitter.result, submitter.error

    second, first_result, first_error, result, error = _run(backend, scenario, polling=DELAYED_POLLING)
    assert first_result.status == "error"
    assert first_error == "A failed"
    assert result.id == second == OTHER_ID
    assert result.status == "completed"
    assert result.solution == "B-answer"
    assert error is None


def test_finished_polls_are_released():
    backend = Backend(
        submit_response=httpx.Response(200, json=_completed_response(status="processing", solution=None)),
        status_rows=[{"status": "completed", "solution": "4"}],
    )

    async def scenario(submitter):
        problem_id = await submitter.submit(_text(), AuthContext.guest())
        handle = submitter.polls[problem_id]
        await handle.wait()
        await asyncio.sleep(0)
        return problem_id, dict(submitter.polls), await submitter.wait_for_result(problem_id)

    problem_id, polls, result = _run(backend, scenario)
    assert polls == {}
    assert result.id == problem_id
    assert result.solution == "4"


def test_clear_result_resets_state():
    backend = Backend()

    async def scenario(submitter):
        await submitter.submit(_text(), AuthContext.guest())
        submitter.clear_result()
        return submitter.result, submitter.error

    assert _run(backend, scenario) == (None, None)
