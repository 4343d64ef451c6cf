import asyncio
import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from pipelines.core import TweetPipeline
from pipelines.errors import PipelineError
from webapp.config import Settings, load_settings

logger = logging.getLogger("tl")


class CrawlRequest(BaseModel):
    query: Optional[str] = None


def create_app(
    settings: Optional[Settings] = None,
    pipeline_factory: Optional[Callable[[Settings], TweetPipeline]] = None,
) -> FastAPI:
    """
    Return the configured FastAPI application.
    `pipeline_factory` builds one pipeline per request (tests inject fakes).
    """
    settings = settings or load_settings()
    pipeline_factory = pipeline_factory or TweetPipeline

    app = FastAPI(title="tweet-lens")
    app.state.settings = settings

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse({"error": "Internal server error", "error_type": type(exc).__name__}, status_code=500)

    @app.get("/status")
    def status():
        return {"status": "ok"}

    @app.post("/crawl")
    async def crawl(req: Optional[CrawlRequest] = None):
        # no body, a null body and {} all mean "no query"
        query = ((req.query if req else None) or "").strip()
        if not query:
            return JSONResponse({"error": "Query parameter is required"}, status_code=400)

        pipeline = pipeline_factory(settings)
        # sync Playwright must stay off the event loop thread
        job = run_in_threadpool(pipeline.run, query)
        try:
            if settings.crawl_deadline_s:
                result = await asyncio.wait_for(job, timeout=settings.crawl_deadline_s)
            else:
                result = await job
        except asyncio.TimeoutError:
            # the worker thread is not interrupted; it still tears its browser down
            logger.error("Crawl for %r exceeded %ss deadline", query, settings.crawl_deadline_s)
            return JSONResponse({"error": "Crawling timed out"}, status_code=500)
        except PipelineError as e:
            logger.error("Error during crawl (stage=%s): %s", e.stage, e.cause, exc_info=e)
            return JSONResponse({"error": "Crawling failed"}, status_code=500)

        return result.to_response()

    return app


__all__ = ["create_app", "CrawlRequest"]
