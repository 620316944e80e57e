"""Sync runner entry point.

Brings the vault index up to date with the notes on disk. Run once for a
one-shot sync, or with --watch to keep re-indexing changed notes until
interrupted.

Usage:
    python -m services.vault_rag.vault_rag_sync [--rebuild] [--watch]
"""

import argparse
import asyncio

from services.vault_rag.RAGEngine import RAGEngine
from shared.clients.content.ContentSourceManager import ContentSourceManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.exceptions import ProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import RAGConfig


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index a notes vault for semantic search.")
    parser.add_argument("--rebuild", action="store_true", help="discard the existing index and embed everything again")
    parser.add_argument("--watch", action="store_true", help="keep running and re-index notes as they change")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """Run the synchronisation pipeline."""
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    content_source = ContentSourceManager(helper_config=config).get_client()
    llm_client = LLMClientManager(helper_config=config).get_client()
    rag_config = RAGConfig.from_helper_config(config, content_root=content_source.get_root())
    rag_config = rag_config.model_copy(update={"auto_index_on_startup": False, "auto_index_on_change": args.watch})

    try:
        # the llm client is required, there is no point in syncing without embeddings
        try:
            await llm_client.boot()
            result = await llm_client.do_healthcheck()
            if not result.is_success:
                logger.error(f"LLM client {llm_client.get_engine_name()} is not reachable (status {result.status_code}). Aborting.")
                return
        except ProviderError as e:
            logger.error(f"Error booting LLM client {llm_client.get_engine_name()}: {e}. Aborting.")
            return

        engine = RAGEngine(
            helper_config=config,
            config=rag_config,
            content_source=content_source,
            llm_client=llm_client,
        )
        await engine.start()
        try:
            report = await engine.rebuild_index() if args.rebuild else await engine.index_vault()
            logger.info(
                "Indexed %d of %d document(s), %d failed, %d removed.",
                report.synced, report.total, report.failed, report.removed,
                color="red" if report.failed else "green",
            )
            if args.watch:
                logger.info("Watching for changes. Press Ctrl+C to stop.", color="cyan")
                await asyncio.Event().wait()
        finally:
            await engine.stop()
    finally:
        await llm_client.close()


def cli() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    cli()
