"""CLI entry point: serve the scraper, or run a one-shot scrape/delete."""

import argparse
import asyncio
import logging
import signal
import sys

import uvicorn

from .config import AppConfig, load_config
from .db import Database, StoreError
from .downloader import Downloader
from .extractor import PdfExtractor, build_extractors
from .indexer import MeilisearchIndexer, SearchIndexError
from .logger import setup_logger
from .models import EmptyIdError, InvalidRequestError
from .scraper import Scraper
from .shutdown import IdleWatcher, coordinated_shutdown
from .supervisor import SearchProcessManager, build_command

logger = logging.getLogger("zeno_scraper")


def build_scraper(config: AppConfig, db: Database, indexer: MeilisearchIndexer) -> Scraper:
    pdf = PdfExtractor(
        cmd=config.extraction.pdftotext_cmd,
        timeout=config.extraction.pdftotext_timeout,
    )
    return Scraper(Downloader(config.download), db, indexer, build_extractors(pdf))


def build_manager(config: AppConfig, indexer: MeilisearchIndexer,
                  shutdown: asyncio.Event) -> SearchProcessManager:
    search = config.search
    return SearchProcessManager(
        build_command(search.binary, search.data_path, search.http_addr, search.master_key),
        check=indexer.is_healthy,
        shutdown=shutdown,
        warmup=search.warmup,
        interval=search.probe_interval,
        threshold=search.failure_threshold,
    )


async def serve(config: AppConfig, db: Database, manage_process: bool = True):
    """Run until an operator signal, a dead search engine or the idle timeout."""
    from api.server import create_app

    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    indexer = MeilisearchIndexer(config.search)
    scraper = build_scraper(config, db, indexer)

    manager = None
    if manage_process:
        manager = build_manager(config, indexer, shutdown)
        await manager.start()

    server = None
    server_task = None
    watchers = []
    try:
        idle_watcher = None
        if config.server.idle_timeout > 0:
            idle_watcher = IdleWatcher(config.server.idle_timeout)
            watchers.append(asyncio.create_task(idle_watcher.watch(shutdown)))

        app = create_app(scraper, db, indexer, idle_watcher, config.server.cors_origins)
        server = uvicorn.Server(uvicorn.Config(
            app, host=config.server.host, port=config.server.port, log_config=None,
        ))
        server_task = asyncio.create_task(run_server(server))
        logger.info(f"listening on {config.server.host}:{config.server.port}")

        shutdown_task = asyncio.create_task(shutdown.wait())
        watchers.append(shutdown_task)
        await asyncio.wait({server_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)
        if shutdown.is_set():
            logger.info("signal received, starting graceful shutdown")
        else:
            logger.error("http server stopped on its own, starting graceful shutdown")
        shutdown.set()
    finally:
        # The engine runs in its own session and outlives us unless stopped here
        try:
            await coordinated_shutdown(server, server_task, scraper, manager)
        finally:
            for task in watchers:
                task.cancel()
            await scraper.downloader.close()
            await indexer.close()

    logger.info("app shut down")


async def run_server(server):
    """Serve until told to exit. A failed startup ends the task instead of the process."""
    try:
        await server.serve()
    except SystemExit as e:
        logger.error(f"http server failed to start (exit code {e.code})")


async def scrape_once(config: AppConfig, db: Database, url: str, title: str,
                      description: str, capture: bool) -> int:
    indexer = MeilisearchIndexer(config.search)
    scraper = build_scraper(config, db, indexer)
    try:
        job = scraper.submit(url, title, description, capture)
        outcome = await job.task
    except InvalidRequestError as e:
        print(f"rejected: {e}")
        return 2
    finally:
        await scraper.downloader.close()
        await indexer.close()

    print(f"{outcome.state.value}: {outcome.document}")
    if outcome.error:
        print(f"  error: {outcome.error}")
    return 0 if outcome.error is None else 1


async def delete_once(config: AppConfig, db: Database, doc_id: str) -> int:
    indexer = MeilisearchIndexer(config.search)
    scraper = build_scraper(config, db, indexer)
    try:
        await scraper.delete(doc_id)
    except EmptyIdError as e:
        print(f"rejected: {e}")
        return 2
    except (SearchIndexError, StoreError) as e:
        print(f"delete failed: {e}")
        return 1
    finally:
        await scraper.downloader.close()
        await indexer.close()
    print(f"deleted {doc_id}")
    return 0


def show_stats(db):
    """Display stored document statistics."""
    print("\n" + "=" * 60)
    print("  DOCUMENT STATISTICS")
    print("=" * 60)
    print(f"{'Type':<12} {'Count':>8} {'Captured':>10} {'Chars':>14}")
    print("-" * 60)

    total_docs = 0
    for doc_type, count, captured, total_chars in db.get_stats():
        print(f"{doc_type:<12} {count:>8} {captured:>10} {total_chars:>14,}")
        total_docs += count

    print("-" * 60)
    print(f"{'TOTAL':<12} {total_docs:>8}")
    print()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Zeno single-page scraper and search index feeder")
    parser.add_argument("--config", type=str, default="config.yaml",
                        help="Path to config file")
    parser.add_argument("--stats", action="store_true",
                        help="Show stored document statistics")
    parser.add_argument("--scrape", type=str, metavar="URL",
                        help="Scrape one URL and exit (search engine must be running)")
    parser.add_argument("--capture", action="store_true",
                        help="With --scrape: download and extract the body text")
    parser.add_argument("--title", type=str, default="", help="With --scrape: document title")
    parser.add_argument("--description", type=str, default="",
                        help="With --scrape: document description")
    parser.add_argument("--delete", type=str, metavar="ID",
                        help="Delete one document from the index and the store")
    parser.add_argument("--no-search-process", action="store_true",
                        help="Use an already running search engine instead of spawning one")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logger(config.log_dir, config.log_level)
    db = Database(config.db_path)

    if args.stats:
        show_stats(db)
        return 0

    if args.scrape:
        return asyncio.run(scrape_once(
            config, db, args.scrape, args.title, args.description, args.capture,
        ))

    if args.delete is not None:
        return asyncio.run(delete_once(config, db, args.delete))

    manage = config.search.manage_process and not args.no_search_process
    asyncio.run(serve(config, db, manage_process=manage))
    return 0


if __name__ == "__main__":
    sys.exit(main())
