"""FastAPI application entry point for vault_rag."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.content.ContentSourceManager import ContentSourceManager
from shared.exceptions import ConfigurationError, EmptyCorpusError, ProviderError
from shared.models.config import RAGConfig
from services.vault_rag.RAGEngine import RAGEngine
from server.routers.QueryRouter import router as query_router
from server.routers.IndexRouter import router as index_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)
    # fail early instead of on the first request
    app.state.helper_config.get_string_val("API_SERVER_API_KEY")

    content_source = ContentSourceManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    rag_config = RAGConfig.from_helper_config(app.state.helper_config, content_root=content_source.get_root())

    logging.info("Booting LLM client...")
    await llm_client.boot()
    await check_connections(llm_client)

    app.state.content_source = content_source
    app.state.llm_client = llm_client
    app.state.engine = RAGEngine(
        helper_config=app.state.helper_config,
        config=rag_config,
        content_source=content_source,
        llm_client=llm_client,
    )
    await app.state.engine.start(background=True)

    # while the app is running...
    yield

    # when the app shuts down, stop background indexing and close the client
    logging.info("Shutting down, stopping the engine...")
    await app.state.engine.stop()
    await llm_client.close()
    logging.info("All clients closed.", color="green")


app = FastAPI(
    title="vault_rag",
    description=(
        "Semantic search and question answering over a vault of markdown notes. "
        "Notes are chunked, embedded and kept in a local index that follows file changes. "
        "Ask questions via POST /query, search via POST /query/search."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query_router)
app.include_router(index_router)


@app.exception_handler(EmptyCorpusError)
async def empty_corpus_handler(request: Request, exc: EmptyCorpusError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
    logging.error("Provider error while handling %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logging.error("Configuration error while handling %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


async def check_connections(llm_client: LLMClientInterface) -> None:
    """Check connectivity to the LLM backend on startup.

    A failing backend is not fatal: the index can still be loaded and
    served, embedding and chat requests will fail until it is reachable.
    """
    try:
        result = await llm_client.do_healthcheck()
    except ProviderError as exc:
        logging.warning("LLM client '%s' is not reachable: %s", llm_client.get_engine_name(), exc)
        return
    if not result.is_success:
        logging.warning(
            "LLM client '%s' is not reachable (status %d). Embedding and chat will not work.",
            llm_client.get_engine_name(),
            result.status_code,
        )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting vault_rag API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
