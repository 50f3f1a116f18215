"""
EOL Research - FastAPI Application
REST endpoints for single-product and streamed batch lifecycle research.
"""
import asyncio
import json
import uuid
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from eol_research import __version__
from eol_research.config import config
from eol_research.errors import ConfigurationError
from eol_research.layers.research import ResearchOrchestrator
from eol_research.models import BatchProgress, ProductQuery
from eol_research.utils.logger import get_logger, set_trace_id


# Initialize FastAPI app
app = FastAPI(
    title="EOL Research",
    description="Discovers end-of-sale and end-of-support milestones for hardware and software products",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One orchestrator per process: its pacing gate and page cache are shared by every request
orchestrator = ResearchOrchestrator()

# Cancellation signals of running batches
active_batches: Dict[str, asyncio.Event] = {}

logger = get_logger("main")


# Request/Response models
class ResearchResponse(BaseModel):
    """Response model for single-product research."""
    trace_id: str
    result: dict


class BatchResearchRequest(BaseModel):
    """Request model for batch research."""
    products: List[ProductQuery] = Field(min_length=1)
    concurrency: Optional[int] = Field(default=None, ge=1, le=10)


class CancelResponse(BaseModel):
    """Response model for batch cancellation."""
    batch_id: str
    cancelled: bool


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def _require_search_config():
    if not orchestrator.search_client.is_configured():
        missing = config.get_missing_search_vars()
        raise HTTPException(
            status_code=503,
            detail=f"Search API not configured. Missing: {', '.join(missing)}",
        )


# API Routes
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "search_configured": orchestrator.search_client.is_configured(),
        "cached_pages": len(orchestrator.fetcher.cache),
    }


@app.post("/api/research", response_model=ResearchResponse)
async def research_product(query: ProductQuery):
    """
    Research lifecycle milestones for one product.

    Per-product failures come back as a result with status "error";
    only missing search credentials produce an HTTP error (503).
    """
    trace_id = set_trace_id()

    logger.info("research_request", product_id=query.product_id, trace_id=trace_id)

    try:
        result = await orchestrator.research(query)
    except ConfigurationError as e:
        logger.error("research_configuration_error", error=str(e))
        raise HTTPException(status_code=503, detail=str(e))

    return ResearchResponse(trace_id=trace_id, result=result.to_dict())


@app.post("/api/research/batch")
async def research_batch(request: BatchResearchRequest):
    """
    Research many products, streaming progress as Server-Sent Events.

    Events:
    - start: {batch_id, total}
    - progress: {processed, total, current_product_id, success, failed, dates_found_so_far, cancelled}
    - complete: {batch_id, results}
    - error: {message}

    The batch can be stopped with POST /api/research/batch/{batch_id}/cancel.
    """
    _require_search_config()

    trace_id = set_trace_id()
    batch_id = str(uuid.uuid4())[:8]
    cancel = asyncio.Event()
    active_batches[batch_id] = cancel
    queue: asyncio.Queue = asyncio.Queue()

    logger.info("batch_request", batch_id=batch_id, total=len(request.products), trace_id=trace_id)

    async def run_batch():
        try:
            results = await orchestrator.research_batch(
                request.products,
                progress_sink=queue.put,
                cancel=cancel,
                concurrency=request.concurrency,
            )
            await queue.put({
                "event": "complete",
                "data": {"batch_id": batch_id, "results": [r.to_dict() for r in results]},
            })
        except ConfigurationError as e:
            await queue.put({"event": "error", "data": {"message": str(e)}})
        finally:
            active_batches.pop(batch_id, None)
            await queue.put(None)

    async def event_stream():
        task = asyncio.create_task(run_batch())
        try:
            yield _sse("start", {"batch_id": batch_id, "total": len(request.products)})
            while True:
                item = await queue.get()
                if item is None:
                    break
                if isinstance(item, BatchProgress):
                    yield _sse("progress", item.model_dump())
                else:
                    yield _sse(item["event"], item["data"])
        finally:
            # Client went away: stop the batch at the next query or page boundary
            if not task.done():
                cancel.set()
            await task

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Batch-Id": batch_id},
    )


@app.post("/api/research/batch/{batch_id}/cancel", response_model=CancelResponse)
async def cancel_batch(batch_id: str):
    """Request cooperative cancellation of a running batch."""
    cancel = active_batches.get(batch_id)
    if cancel is None:
        raise HTTPException(status_code=404, detail=f"Unknown or finished batch: {batch_id}")

    cancel.set()
    logger.info("batch_cancel_requested", batch_id=batch_id)
    return CancelResponse(batch_id=batch_id, cancelled=True)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
