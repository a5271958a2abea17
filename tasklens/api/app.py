"""FastAPI web application for tasklens.

A thin host around the query pipeline: the caller posts the query together
with the task snapshot to search; nothing is stored between requests.
"""

import logging
from typing import List, Optional
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from tasklens.config import Settings, load_settings
from tasklens.engine.pipeline import run_query
from tasklens.errors import ConfigurationInvalid
from tasklens.integrations.model_providers import ModelProvider
from tasklens.models.query import ChatMessage, QueryResult, SearchMode
from tasklens.models.task import Task

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="tasklens API",
    description="Find, filter and rank tasks with multilingual natural-language queries",
    version="0.1.0",
)


class QueryRequest(BaseModel):
    """Request body for a task query."""
    query: str = Field(..., min_length=1, description="Natural-language query, may include standard syntax")
    tasks: List[Task] = Field(default_factory=list, description="Tasks to search")
    mode: Optional[SearchMode] = Field(None, description="simple, smart or chat; server default when omitted")
    history: List[ChatMessage] = Field(default_factory=list, description="Earlier chat turns")


def get_settings() -> Settings:
    """Settings from the environment."""
    try:
        return load_settings()
    except ConfigurationInvalid as e:
        logger.error(f"Invalid configuration: {e}")
        raise HTTPException(status_code=503, detail=str(e))


def get_provider() -> Optional[ModelProvider]:
    """Model provider; None lets the pipeline build one from settings when needed."""
    return None


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.post("/query", response_model=QueryResult)
async def query_tasks(
    request: QueryRequest,
    settings: Settings = Depends(get_settings),
    provider: Optional[ModelProvider] = Depends(get_provider),
):
    """Filter, rank and (in chat mode) comment on the posted tasks."""
    try:
        return await run_query(
            request.query,
            request.tasks,
            settings,
            mode=request.mode,
            provider=provider,
            history=request.history,
        )
    except ConfigurationInvalid as e:
        raise HTTPException(status_code=503, detail=str(e))
