from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import QueryRequest, SearchRequest
from server.models.responses import SearchResponse
from services.vault_rag.RAGEngine import RAGEngine
from shared.models.search import QueryAnswer

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_vault(
    request: Request,
    body: QueryRequest,
    _: None = Depends(verify_api_key),
) -> QueryAnswer:
    """Answer a question from the indexed notes.

    Args:
        request (Request): FastAPI request (provides app.state.engine).
        body (QueryRequest): JSON body with the question and an optional context note path.
        _ (None): Auth dependency result (unused).

    Returns:
        QueryAnswer: The generated answer and the excerpts it is based on.
    """
    engine: RAGEngine = request.app.state.engine
    return await engine.query(body.question, context_path=body.context_path)


@router.post("/search")
async def search_vault(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
) -> SearchResponse:
    """Return the excerpts most similar to the query, best first."""
    engine: RAGEngine = request.app.state.engine
    results = await engine.search(body.query, context_path=body.context_path)
    items = [engine.to_source(result) for result in results]
    return SearchResponse(query=body.query, results=items, total=len(items))
