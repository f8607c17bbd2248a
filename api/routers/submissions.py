"""
Submissions Router - status store cho bài nộp.

Endpoints:
- GET /submissions - Danh sách bài nộp của user đang đăng nhập (có phân trang, lọc)
- GET /submissions/{id} - Trạng thái/kết quả của một bài nộp (dùng cho polling)

Lỗi của status store trả về `{code, message}` với mã kiểu database:
- 22P02: id không đúng định dạng UUID
- PGRST116: không có dòng nào (không tồn tại hoặc không có quyền xem)
- PGRST301: JWT hết hạn / không hợp lệ
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.auth import TokenError, get_current_user_id, get_user_id_from_authorization_header
from app.db import get_db
from domain.models import ProblemSubmission, User
from infra.utils.validation import is_valid_uuid

router = APIRouter(prefix="/submissions", tags=["submissions"])

INVALID_ID_CODE = "22P02"
NO_ROWS_CODE = "PGRST116"
JWT_ERROR_CODE = "PGRST301"


class MySubmissionItem(BaseModel):
    id: str
    title: str
    input_type: str
    status: str
    subject: Optional[str]
    difficulty: Optional[str]
    created_at: Optional[str]


class MySubmissionsResponse(BaseModel):
    total: int
    skip: int
    limit: int
    items: List[MySubmissionItem]


def _store_error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse({"code": code, "message": message}, status_code=status_code)


@router.get("/", response_model=MySubmissionsResponse)
def list_my_submissions(
    skip: int = 0,
    limit: int = 50,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    skip = max(skip, 0)
    limit = max(min(limit, 200), 1)

    query = db.query(ProblemSubmission).filter(ProblemSubmission.user_id == user_id.lower())
    if status:
        query = query.filter(ProblemSubmission.status == status)

    total = query.count()
    rows = query.order_by(ProblemSubmission.created_at.desc()).offset(skip).limit(limit).all()

    items = [
        MySubmissionItem(
            id=sub.id,
            title=sub.title,
            input_type=sub.input_type,
            status=sub.status,
            subject=sub.topic or sub.subject,
            difficulty=sub.difficulty,
            created_at=sub.created_at.isoformat() if sub.created_at else None,
        )
        for sub in rows
    ]
    return MySubmissionsResponse(total=total, skip=skip, limit=limit, items=items)


@router.get("/{problem_id}", response_model=Dict[str, Any])
def get_submission_status(
    problem_id: str,
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
):
    """Trả về dòng `problem_submissions` mà caller được phép xem.

    - Có bearer token: chỉ thấy dòng có `user_id` trùng với token.
    - Không có token (guest): chỉ thấy dòng thuộc guest user.
    - `user_id` query param thu hẹp thêm phạm vi tìm kiếm.
    """
    try:
        caller_id = get_user_id_from_authorization_header(authorization)
    except TokenError as e:
        return _store_error(401, JWT_ERROR_CODE, e.message)

    for value in (problem_id, user_id):
        if value is not None and not is_valid_uuid(value):
            return _store_error(400, INVALID_ID_CODE, f'invalid input syntax for type uuid: "{value}"')

    query = db.query(ProblemSubmission).filter(ProblemSubmission.id == problem_id.lower())
    if caller_id:
        query = query.filter(ProblemSubmission.user_id == caller_id.lower())
    else:
        query = query.join(User, ProblemSubmission.user_id == User.id).filter(User.is_guest.is_(True))
    if user_id:
        query = query.filter(ProblemSubmission.user_id == user_id.lower())

    submission = query.first()
    if submission is None:
        return _store_error(404, NO_ROWS_CODE, "The result contains 0 rows")

    return submission.to_row()


__all__ = ["router"]
