from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from server.dependencies.auth import verify_api_key
from server.models.responses import IndexResponse
from services.vault_rag.RAGEngine import RAGEngine
from shared.models.events import ProgressPhase, SyncReport
from shared.models.index import IndexStatsReport

router = APIRouter(prefix="/index", tags=["index"])


def _to_response(report: SyncReport) -> IndexResponse:
    return IndexResponse(status="completed", **report.model_dump())


@router.post("")
async def index_vault(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexResponse:
    """Index all new and changed notes, retrying notes with missing embeddings.

    Waits for a batch that is already running to finish first.
    """
    engine: RAGEngine = request.app.state.engine
    return _to_response(await engine.index_vault())


@router.post("/rebuild")
async def rebuild_index(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexResponse:
    """Discard the index and embed every note again."""
    engine: RAGEngine = request.app.state.engine
    return _to_response(await engine.rebuild_index())


@router.get("/stats")
async def index_stats(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexStatsReport:
    engine: RAGEngine = request.app.state.engine
    return engine.get_stats()


@router.get("/progress")
async def index_progress(
    request: Request,
    follow: bool = False,
    _: None = Depends(verify_api_key),
) -> StreamingResponse:
    """Stream indexing progress as newline-delimited JSON.

    The stream ends after the next "complete" event unless follow is set.
    """
    engine: RAGEngine = request.app.state.engine

    async def event_lines() -> AsyncIterator[str]:
        with engine.get_progress().subscribe() as queue:
            while True:
                event = await queue.get()
                yield event.model_dump_json() + "\n"
                if event.phase == ProgressPhase.COMPLETE and not follow:
                    return

    return StreamingResponse(event_lines(), media_type="application/x-ndjson")
