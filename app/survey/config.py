"""
Survey configuration from environment variables.

- SURVEY_API_BASE_URL: survey service base URL (e.g. https://shop.example.com)
- SURVEY_API_TOKEN: bearer token forwarded to the survey service
- SURVEY_HTTP_TIMEOUT: request timeout in seconds (default 10)
- SURVEY_SESSION_TTL: seconds an idle survey session is kept (default 1800)
- SURVEY_MARKER_LOCALE: branch marker preset, "en" or "ko" (default "en")
- SURVEY_LOG_LEVEL: root log level for the API server (default INFO)
- SURVEY_CORS_ORIGINS: comma separated allowed origins (default "*")
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List

from .branching import BranchMarkers, markers_for_locale

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_SESSION_TTL = 1800.0


def _parse_seconds(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Invalid {name} '{raw}', using {default}")
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class SurveySettings:
    api_base_url: str = ""
    api_token: str = ""
    timeout: float = DEFAULT_TIMEOUT
    session_ttl: float = DEFAULT_SESSION_TTL
    marker_locale: str = "en"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "SurveySettings":
        origins = [
            o.strip()
            for o in os.getenv("SURVEY_CORS_ORIGINS", "*").split(",")
            if o.strip()
        ]
        return cls(
            api_base_url=os.getenv("SURVEY_API_BASE_URL", "").rstrip("/"),
            api_token=os.getenv("SURVEY_API_TOKEN", ""),
            timeout=_parse_seconds("SURVEY_HTTP_TIMEOUT", DEFAULT_TIMEOUT),
            session_ttl=_parse_seconds("SURVEY_SESSION_TTL", DEFAULT_SESSION_TTL),
            marker_locale=os.getenv("SURVEY_MARKER_LOCALE", "en"),
            log_level=os.getenv("SURVEY_LOG_LEVEL", "INFO").upper(),
            cors_origins=origins or ["*"],
        )

    @property
    def markers(self) -> BranchMarkers:
        return markers_for_locale(self.marker_locale)
