"""
Survey Service API Client
=========================
Async access to the external survey service: the questionnaire tree is
read once at session start and the final answers are posted once.

Endpoints (relative to SURVEY_API_BASE_URL):
- GET  /api/survey/categories
- GET  /api/survey/subcategories/{id}/questions
- GET  /api/survey/gender
- POST /api/survey/submit

Usage:
    from app.survey.client import SurveyApiClient

    client = SurveyApiClient()
    tree = await client.fetch_tree()
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import SurveySettings
from .errors import (
    SurveyAuthError,
    SurveyNotFoundError,
    SurveyRejectedError,
    SurveyServiceError,
)
from .models import SubmissionReceipt, SubmissionRequest, SurveyTree

logger = logging.getLogger(__name__)


class SurveyApiClient:
    """
    Survey service client.

    Features:
    - Retry on timeouts (up to MAX_RETRIES attempts)
    - Structured error handling by status code
    - Optional injected transport (tests use httpx.MockTransport)
    """

    MAX_RETRIES = 3
    RETRY_BACKOFF = 0.5  # seconds

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[SurveySettings] = None,
    ):
        settings = settings or SurveySettings.from_env()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.api_token = api_token if api_token is not None else settings.api_token
        self.timeout = timeout or settings.timeout
        self._transport = transport

        if not self.base_url:
            logger.warning("SURVEY_API_BASE_URL not configured")

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _handle_response(self, response: httpx.Response) -> Any:
        """Return decoded JSON or raise the matching SurveyServiceError."""
        if 200 <= response.status_code < 300:
            if response.content:
                return response.json()
            return {}

        try:
            error_body = response.json() if response.content else {}
        except ValueError:
            error_body = {"raw": response.text}
        if not isinstance(error_body, dict):
            error_body = {"raw": error_body}

        error_msg = error_body.get("message") or error_body.get("error") or str(error_body)

        if response.status_code in (401, 403):
            raise SurveyAuthError(
                f"Authentication failed: {error_msg}",
                status_code=response.status_code,
                response_body=error_body,
            )
        if response.status_code == 404:
            raise SurveyNotFoundError(
                f"Resource not found: {error_msg}",
                status_code=404,
                response_body=error_body,
            )
        if response.status_code in (400, 422):
            raise SurveyRejectedError(
                f"Submission rejected: {error_msg}",
                status_code=response.status_code,
                response_body=error_body,
            )
        raise SurveyServiceError(
            f"Survey API error ({response.status_code}): {error_msg}",
            status_code=response.status_code,
            response_body=error_body,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        if not self.is_configured:
            raise SurveyServiceError("Survey client not configured. Set SURVEY_API_BASE_URL.")

        url = f"{self.base_url}{endpoint}"

        for attempt in range(self.MAX_RETRIES):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self._get_headers(),
                        json=data,
                        params=params,
                    )
                    return self._handle_response(response)
            except httpx.TimeoutException:
                if attempt < self.MAX_RETRIES - 1:
                    logger.warning(f"Request timeout, retrying (attempt {attempt + 1}/{self.MAX_RETRIES})")
                    await asyncio.sleep(self.RETRY_BACKOFF * (attempt + 1))
                else:
                    raise SurveyServiceError(f"Request timeout after {self.MAX_RETRIES} attempts")
            except httpx.RequestError as e:
                raise SurveyServiceError(f"Request failed: {str(e)}")

    # ===== Catalog =====

    async def fetch_categories(self) -> List[Dict[str, Any]]:
        result = await self._request("GET", "/api/survey/categories")
        if isinstance(result, dict):
            result = result.get("categories", [])
        return list(result)

    async def fetch_questions(self, subcategory_id: int) -> List[Dict[str, Any]]:
        result = await self._request("GET", f"/api/survey/subcategories/{subcategory_id}/questions")
        if isinstance(result, dict):
            result = result.get("questions", [])
        return list(result)

    async def fetch_tree(self) -> SurveyTree:
        """
        Load the whole questionnaire.

        Subcategories delivered without questions get them fetched one by
        one, so the engine always works on a complete tree.
        """
        categories = await self.fetch_categories()
        for category in categories:
            for sub in category.get("subCategories") or category.get("sub_categories") or []:
                if not sub.get("questions"):
                    sub["questions"] = await self.fetch_questions(sub["id"])
        tree = SurveyTree.from_payload(categories)
        logger.info(
            f"Loaded survey tree: {len(tree.categories)} categories, "
            f"{len(tree.subcategory_ids())} subcategories, {len(tree.all_questions())} questions"
        )
        return tree

    async def fetch_gender(self) -> Optional[str]:
        """
        Gender label on file for the authenticated member, if any.

        Returned as delivered ("female", "여성", ...); the branch markers
        decide how to read it.
        """
        try:
            result = await self._request("GET", "/api/survey/gender")
        except SurveyNotFoundError:
            return None
        raw = result.get("gender") if isinstance(result, dict) else result
        if not raw:
            return None
        return str(raw).strip() or None

    # ===== Submission =====

    async def submit(self, request: SubmissionRequest) -> SubmissionReceipt:
        body = await self._request("POST", "/api/survey/submit", data=request.to_wire())
        logger.info(f"Submitted {len(request.responses)} survey responses")
        return SubmissionReceipt(
            accepted=True,
            submitted_count=len(request.responses),
            body=body if isinstance(body, dict) else {"result": body},
        )
