"""
Health Survey API Server
Adaptive questionnaire engine behind the storefront survey page.
Version 1.0.0
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.survey.admin import router as survey_router
from app.survey.config import SurveySettings

settings = SurveySettings.from_env()

# ============================================
# Logging
# ============================================
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# ============================================
# App Configuration
# ============================================
app = FastAPI(
    title="Health Survey API",
    description="Adaptive health questionnaire engine",
    version="1.0.0"
)

# ============================================
# CORS Configuration
# ============================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(survey_router)


@app.get("/")
def root():
    return {
        "service": "Health Survey API",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/health")
def health():
    return {"status": "ok"}
