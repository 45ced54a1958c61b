"""
Survey Session Endpoints

One in-memory SurveySession per respondent, addressed by session id.
Sessions are never persisted; abandoning, idling past SURVEY_SESSION_TTL or
restarting the server drops them.

GET    /api/v1/survey/health
POST   /api/v1/survey/sessions                                  - start (tree in body or fetched)
GET    /api/v1/survey/sessions/{session_id}                     - current step
PUT    /api/v1/survey/sessions/{session_id}/answers/{qid}       - record answer
POST   /api/v1/survey/sessions/{session_id}/answers/{qid}/toggle - checkbox toggle
POST   /api/v1/survey/sessions/{session_id}/advance
POST   /api/v1/survey/sessions/{session_id}/retreat
POST   /api/v1/survey/sessions/{session_id}/submit
DELETE /api/v1/survey/sessions/{session_id}                     - abandon

Version: survey_engine_v1
"""

import logging
import time
from datetime import datetime
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from .branching import markers_for_locale
from .client import SurveyApiClient
from .config import DEFAULT_SESSION_TTL, SurveySettings
from .errors import (
    StepIncompleteError,
    SurveyError,
    SurveyServiceError,
    SurveyStateError,
    SurveyValidationError,
)
from .models import SURVEY_ENGINE_VERSION, Question, SubmissionReceipt, SurveyTree
from .navigator import NavigatorState, Transition
from .session import StepView, SurveySession

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/api/v1/survey",
    tags=["survey"],
)


class SessionRegistry:
    """
    In-memory sessions keyed by id.

    A session untouched for `ttl_seconds` is abandoned and dropped on the
    next registry access; one with a submission in flight is kept.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_SESSION_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, SurveySession] = {}
        self._touched: Dict[str, float] = {}

    def add(self, session: SurveySession) -> SurveySession:
        self.purge_expired()
        self._sessions[session.session_id] = session
        self._touched[session.session_id] = self._clock()
        return session

    def get(self, session_id: str) -> SurveySession:
        self.purge_expired()
        session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Unknown survey session: {session_id}")
        self._touched[session_id] = self._clock()
        return session

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._touched.pop(session_id, None)

    def purge_expired(self) -> int:
        """Abandon and drop idle sessions; returns how many were dropped."""
        cutoff = self._clock() - self.ttl_seconds
        expired = [
            sid for sid, touched in self._touched.items()
            if touched <= cutoff and not self._sessions[sid].is_submitting
        ]
        for sid in expired:
            self._sessions[sid].abandon()
            self.remove(sid)
        if expired:
            logger.info(f"Expired {len(expired)} idle survey sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


_registry: Optional[SessionRegistry] = None


@lru_cache
def get_settings() -> SurveySettings:
    return SurveySettings.from_env()


def get_registry(settings: SurveySettings = Depends(get_settings)) -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry(ttl_seconds=settings.session_ttl)
    return _registry


def get_survey_client(settings: SurveySettings = Depends(get_settings)) -> SurveyApiClient:
    return SurveyApiClient(settings=settings)


# Request / response models

class StartSessionRequest(BaseModel):
    """Start a session; without `categories` the tree is fetched from the survey service."""
    categories: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Pre-fetched category tree (service wire format)"
    )
    gender: Optional[str] = Field(
        default=None,
        description="Gender on file, e.g. 'female' or '여성'"
    )
    marker_locale: Optional[str] = Field(
        default=None,
        description="Branch marker preset ('en' or 'ko'); defaults to SURVEY_MARKER_LOCALE"
    )


class AnswerRequest(BaseModel):
    value: Union[int, str, List[int]]


class ToggleRequest(BaseModel):
    option_id: int


class StepViewResponse(BaseModel):
    session_id: str
    state: NavigatorState
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    sub_category_id: Optional[int] = None
    sub_category_name: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)
    answers: Dict[int, Union[int, str, List[int]]] = Field(default_factory=dict)
    cursor: Optional[Dict[str, int]] = None
    is_first_step: bool = False
    is_last_step: bool = False
    can_advance: bool = False
    position: int = 0
    total_steps: int = 0


class TransitionResponse(BaseModel):
    transition: Transition
    view: StepViewResponse


class SubmitResponse(BaseModel):
    success: bool = True
    receipt: SubmissionReceipt


class SurveyHealthResponse(BaseModel):
    status: str = "ok"
    module: str = "survey_engine"
    version: str = SURVEY_ENGINE_VERSION
    active_sessions: int = 0
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())


def _view_response(view: StepView) -> StepViewResponse:
    answers = {
        qid: sorted(value) if isinstance(value, frozenset) else value
        for qid, value in view.answers.items()
    }
    cursor = None
    if view.cursor is not None:
        cursor = {
            "category_index": view.cursor.category_index,
            "sub_category_index": view.cursor.sub_category_index,
        }
    position, total = view.progress
    return StepViewResponse(
        session_id=view.session_id,
        state=view.state,
        category_id=view.category.id if view.category else None,
        category_name=view.category.name if view.category else None,
        sub_category_id=view.sub_category.id if view.sub_category else None,
        sub_category_name=view.sub_category.name if view.sub_category else None,
        questions=view.questions,
        answers=answers,
        cursor=cursor,
        is_first_step=view.is_first_step,
        is_last_step=view.is_last_step,
        can_advance=view.can_advance,
        position=position,
        total_steps=total,
    )


def _http_error(e: SurveyError) -> HTTPException:
    if isinstance(e, StepIncompleteError):
        return HTTPException(
            status_code=409,
            detail={"message": str(e), "missing_question_ids": e.missing_question_ids},
        )
    if isinstance(e, SurveyValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, SurveyStateError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, SurveyServiceError):
        return HTTPException(
            status_code=502,
            detail={
                "message": str(e),
                "upstream_status": e.status_code,
                "upstream_body": e.response_body,
            },
        )
    return HTTPException(status_code=500, detail=f"Survey error: {str(e)}")


# Endpoints

@router.get("/health", response_model=SurveyHealthResponse)
async def survey_health(registry: SessionRegistry = Depends(get_registry)):
    """Health check for the survey module."""
    registry.purge_expired()
    return SurveyHealthResponse(active_sessions=len(registry))


@router.post("/sessions", response_model=StepViewResponse, status_code=201)
async def start_session(
    request: StartSessionRequest,
    registry: SessionRegistry = Depends(get_registry),
    settings: SurveySettings = Depends(get_settings),
    client: SurveyApiClient = Depends(get_survey_client),
):
    """
    Start a survey session.

    The tree is taken from the request when given, otherwise fetched once
    from the survey service together with the gender on file.
    """
    try:
        if request.categories is not None:
            tree = SurveyTree.from_payload(request.categories)
            gender = request.gender
        else:
            tree = await client.fetch_tree()
            gender = request.gender or await client.fetch_gender()

        markers = markers_for_locale(request.marker_locale or settings.marker_locale)
        session = SurveySession(tree, markers=markers, gender_on_file=gender)
        view = session.start()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Malformed survey tree: {e}")
    except SurveyError as e:
        raise _http_error(e)

    registry.add(session)
    logger.info(f"Started survey session {session.session_id}")
    return _view_response(view)


@router.get("/sessions/{session_id}", response_model=StepViewResponse)
async def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.get(session_id)
    try:
        return _view_response(session.view())
    except SurveyError as e:
        raise _http_error(e)


@router.put("/sessions/{session_id}/answers/{question_id}", response_model=StepViewResponse)
async def put_answer(
    session_id: str,
    question_id: int,
    request: AnswerRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = registry.get(session_id)
    if session.navigator.tree.find_question(question_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown question: {question_id}")
    try:
        session.answer(question_id, request.value)
        return _view_response(session.view())
    except TypeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SurveyError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/answers/{question_id}/toggle", response_model=StepViewResponse)
async def toggle_answer(
    session_id: str,
    question_id: int,
    request: ToggleRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = registry.get(session_id)
    if session.navigator.tree.find_question(question_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown question: {question_id}")
    try:
        session.toggle_option(question_id, request.option_id)
        return _view_response(session.view())
    except SurveyError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/advance", response_model=TransitionResponse)
async def advance_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """
    Move to the next step.

    Returns transition=ready_to_submit at the last step; call /submit next.
    """
    session = registry.get(session_id)
    try:
        transition = session.advance()
        return TransitionResponse(transition=transition, view=_view_response(session.view()))
    except SurveyError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/retreat", response_model=TransitionResponse)
async def retreat_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.get(session_id)
    try:
        transition = session.retreat()
        return TransitionResponse(transition=transition, view=_view_response(session.view()))
    except SurveyError as e:
        raise _http_error(e)


@router.post("/sessions/{session_id}/submit", response_model=SubmitResponse)
async def submit_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
    client: SurveyApiClient = Depends(get_survey_client),
):
    """
    Submit the answers collected on the traversed path.

    On upstream failure the session keeps its answers and position (502).
    """
    session = registry.get(session_id)
    try:
        receipt = await session.submit(client)
    except SurveyError as e:
        raise _http_error(e)

    registry.remove(session_id)
    return SubmitResponse(receipt=receipt)


@router.delete("/sessions/{session_id}")
async def abandon_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.get(session_id)
    try:
        session.abandon()
    except SurveyError as e:
        raise _http_error(e)
    registry.remove(session_id)
    return {"success": True, "session_id": session_id}
