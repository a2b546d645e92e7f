"""
Main FastAPI application and routing layer.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from regional_timeline.config import Settings, get_settings
from regional_timeline.core.cache import CacheStore, create_cache_store
from regional_timeline.core.errors import ConfigurationError, InvalidRequestError, TimelineError
from regional_timeline.core.logging import setup_logging
from regional_timeline.core.regions import RegionMap
from regional_timeline.core.sentiment import Classifier, SentimentSummarizer, TransformersClassifier
from regional_timeline.schemas import (
    AnalyzeSentimentRequest,
    AnalyzeSentimentResponse,
    RegionOut,
    SentimentResult,
)
from regional_timeline.services.timeline import TimelineService
from regional_timeline.sources.collector import TimelineCollector
from regional_timeline.sources.mastodon import MastodonClient
from regional_timeline.utils import now_utc

logger = logging.getLogger(__name__)


def get_service(request: Request) -> TimelineService:
    """Return the process-wide pipeline, or the startup configuration error."""
    config_error: Optional[ConfigurationError] = getattr(request.app.state, "config_error", None)
    if config_error is not None:
        raise ConfigurationError(config_error.message)
    return request.app.state.service


def get_summarizer(request: Request) -> SentimentSummarizer:
    return request.app.state.summarizer


def create_app(
    settings: Optional[Settings] = None,
    *,
    classifier: Optional[Classifier] = None,
    cache: Optional[CacheStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the application. Collaborators not passed in are created on startup.

    Args:
        settings: Settings to use instead of the environment
        classifier: Sentiment classifier; defaults to a transformers pipeline
        cache: Cache store; defaults to Redis or the in-memory store
        http_client: Client used for instance requests
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Regional Timeline Sentiment API",
        version="0.1.0",
        description="Merged public timelines of federated instances by region, with sentiment summary",
    )
    app.state.settings = settings
    app.state.config_error = None

    @app.on_event("startup")
    async def startup():
        """Parse regions once and wire the pipeline."""
        setup_logging(settings)

        try:
            regions = RegionMap.from_json(settings.REGIONS_JSON)
        except ConfigurationError as e:
            logger.error("Region configuration rejected: %s", e.message)
            app.state.config_error = e
            regions = RegionMap.from_mapping({})

        app.state.owns_http_client = http_client is None
        app.state.http_client = http_client or MastodonClient.build_http_client(
            timeout=settings.SOURCE_TIMEOUT_SECONDS,
        )
        app.state.cache = cache or await create_cache_store(settings.REDIS_URL)

        active_classifier = classifier
        if active_classifier is None and settings.SENTIMENT_ENABLED:
            active_classifier = TransformersClassifier(settings.SENTIMENT_MODEL)

        summarizer = SentimentSummarizer(
            active_classifier,
            max_concurrent=settings.MAX_CONCURRENT_CLASSIFICATIONS,
        )
        collector = TimelineCollector(
            MastodonClient(app.state.http_client, timeout=settings.SOURCE_TIMEOUT_SECONDS),
            page_limit=settings.SOURCE_PAGE_LIMIT,
            max_concurrent=settings.MAX_CONCURRENT_FETCHES,
        )

        app.state.summarizer = summarizer
        app.state.regions = regions
        app.state.service = TimelineService(
            regions,
            collector,
            summarizer,
            app.state.cache,
            cache_ttl=settings.CACHE_TTL_SECONDS,
        )

        if isinstance(active_classifier, TransformersClassifier):
            app.state.warmup_task = asyncio.create_task(warm_up_model(active_classifier, summarizer))

    @app.on_event("shutdown")
    async def shutdown():
        """Let pending cache writes land, then release connections."""
        await app.state.service.wait_for_pending_writes()
        if app.state.owns_http_client:
            await app.state.http_client.aclose()
        await app.state.cache.close()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(TimelineError)
    async def timeline_error_handler(request: Request, exc: TimelineError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        regions: RegionMap = request.app.state.regions
        return {
            "status": "ok" if request.app.state.config_error is None else "misconfigured",
            "as_of": now_utc().isoformat(),
            "service": "regional-timeline-api",
            "regions": len(regions.regions),
        }

    @app.get("/ping")
    async def ping():
        return {"message": "pong"}

    @app.get("/regions", response_model=List[RegionOut])
    async def list_regions(service: TimelineService = Depends(get_service)):
        """Configured region codes, for region pickers."""
        return [
            RegionOut(code=code, name=code, instances=len(domains))
            for code, domains in service.regions.regions.items()
        ]

    @app.get("/timeline/{region}")
    async def get_timeline(region: str, service: TimelineService = Depends(get_service)):
        """
        Merged recent public posts for a region, with a sentiment summary.

        Args:
            region: Region code (case-insensitive)

        Returns:
            JSON payload, with ``X-Cache-Status`` set to HIT or MISS
        """
        try:
            result = await service.get_timeline(region)
        except TimelineError:
            raise
        except Exception as e:
            logger.exception("Error building timeline for %s", region)
            raise TimelineError("Internal server error") from e

        return Response(
            content=result.payload,
            media_type="application/json",
            headers={"X-Cache-Status": result.cache_status},
        )

    @app.post("/analyze-sentiment", response_model=AnalyzeSentimentResponse)
    async def analyze_sentiment(
        body: AnalyzeSentimentRequest,
        summarizer: SentimentSummarizer = Depends(get_summarizer),
    ):
        """Classify a batch of texts individually; out-of-band texts come back as null."""
        if not summarizer.available:
            raise TimelineError("AI service not configured")
        if not body.texts:
            raise InvalidRequestError("Invalid input: texts array is required")

        results = await summarizer.classify_texts(body.texts)
        return AnalyzeSentimentResponse(
            sentiment_results=[SentimentResult(**r) if r is not None else None for r in results]
        )

    return app


async def warm_up_model(classifier: TransformersClassifier, summarizer: SentimentSummarizer) -> None:
    """Load the model in a thread; disable sentiment if it cannot be loaded."""
    start_time = time.perf_counter()
    try:
        await classifier.warm_up()
        logger.info("Sentiment model %s loaded in %.1fs", classifier.model_name, time.perf_counter() - start_time)
    except Exception as e:
        logger.warning("Model warm-up failed, sentiment disabled: %s", e)
        summarizer.classifier = None


app = create_app()


if __name__ == "__main__":
    # For development
    import uvicorn
    uvicorn.run("regional_timeline.main:app", host="0.0.0.0", port=get_settings().PORT, reload=True)
