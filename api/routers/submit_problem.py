"""Submit Problem function - nhận bài nộp, gọi AI và trả lời giải.

Endpoints:
- POST /functions/v1/submit-problem - Nộp bài (text/image/voice), cho phép guest

Response luôn là JSON envelope:
- Thành công: {success: true, problemId, sessionId, status, solution, subject, difficulty, tags}
- Thất bại: {success: false, error, details[, problemId]} với status code != 200
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.auth import TokenError, get_user_id_from_authorization_header
from app.db import get_db
from domain.ai import ProblemSolver, get_problem_solver
from infra.services import SecurityContext, SubmissionError, SubmissionInput, SubmissionProcessor

router = APIRouter(prefix="/functions/v1", tags=["functions"])

logger = logging.getLogger(__name__)


class SecurityContextIn(BaseModel):
	ip_address: Optional[str] = None
	user_agent: Optional[str] = None
	device_fingerprint: Optional[str] = None


class SubmitProblemRequest(BaseModel):
	# Optional ở đây để thiếu field trả về envelope 400 thay vì 422 của FastAPI
	input_type: Optional[str] = None
	title: Optional[str] = None
	description: Optional[str] = None
	text_content: Optional[str] = None
	image_data: Optional[str] = None  # base64
	voice_url: Optional[str] = None
	user_id: Optional[str] = None
	session_id: Optional[str] = None
	security_context: Optional[SecurityContextIn] = None


def _redacted(req: SubmitProblemRequest) -> dict:
	data = req.model_dump(exclude_none=True)
	if "image_data" in data:
		data["image_data"] = "[IMAGE_DATA]"
	if "security_context" in data:
		data["security_context"] = "[SECURITY_CONTEXT]"
	return data


@router.post("/submit-problem")
def submit_problem(
	req: SubmitProblemRequest,
	db: Session = Depends(get_db),
	solver: ProblemSolver = Depends(get_problem_solver),
	authorization: Optional[str] = Header(None),
):
	logger.info(f"Received submission request: {_redacted(req)}")

	try:
		auth_user_id = get_user_id_from_authorization_header(authorization)
	except TokenError as e:
		logger.warning(f"Rejected submission with bad bearer token: {e.message}")
		return JSONResponse(
			{"success": False, "error": e.message, "details": "Authentication failed"},
			status_code=401,
		)

	ctx = req.security_context or SecurityContextIn()
	data = SubmissionInput(
		input_type=req.input_type,
		title=req.title,
		description=req.description,
		text_content=req.text_content,
		image_data=req.image_data,
		voice_url=req.voice_url,
		user_id=req.user_id,
		session_id=req.session_id,
		security_context=SecurityContext(
			ip_address=ctx.ip_address,
			user_agent=ctx.user_agent,
			device_fingerprint=ctx.device_fingerprint,
		),
	)

	processor = SubmissionProcessor(db, solver)
	try:
		return processor.process(data, auth_user_id=auth_user_id)
	except SubmissionError as e:
		db.rollback()
		logger.warning(f"Submission rejected ({e.status_code}): {e.message}")
		return JSONResponse(e.to_response(), status_code=e.status_code)
	except Exception as e:
		db.rollback()
		logger.exception("Unexpected error in submit-problem")
		return JSONResponse(SubmissionError(str(e)).to_response(), status_code=500)


__all__ = ["router"]
