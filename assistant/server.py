"""
Context Server

FastAPI server exposing the attachment context pipeline to the route layer.

Endpoints:
- GET /health: Health check
- POST /context/resolve: Validate references and expand folders to files
- POST /context/extract: Build the knowledge base (combined text + citations)
- GET /context/folders/{folder_id}/items: List a folder under the Box root
- GET /stats: Process-local cache statistics

Run:
    uvicorn assistant.server:app --port 8090
"""

import os
import logging
from typing import Optional
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException

from .common.config import load_config, resolve_client_kind, AssistantConfig
from .common.schemas import ContextRequest, ContextResponse, ResolveResponse, ResolvedFileModel
from .pipeline import Pipeline, build_pipeline

load_dotenv()
logging.basicConfig(
    level=os.getenv("ASSISTANT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("assistant.server")


# Global state
config: Optional[AssistantConfig] = None
pipeline: Optional[Pipeline] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, pipeline

    logger.info("Starting up...")
    config = load_config()
    pipeline = build_pipeline(config)

    if pipeline.box_client.is_configured:
        logger.info("Box client ready (root folder: %s)", config.box.root_folder_id or "<unset>")
    else:
        logger.warning("Box client not configured; every request will resolve to an empty knowledge base")

    yield

    logger.info("Shutting down...")
    await pipeline.aclose()
    pipeline = None


app = FastAPI(
    title="Seed Assistant Context Service",
    description="Attachment resolution and document extraction for the AI assistant",
    version="0.1.0",
    lifespan=lifespan,
)


def _require_pipeline() -> Pipeline:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


@app.get("/health")
async def health():
    return {
        "status": "ok" if pipeline is not None else "starting",
        "box_configured": bool(pipeline and pipeline.box_client.is_configured),
        "shared_cache": bool(pipeline and pipeline.shared_cache is not None),
    }


@app.post("/context/resolve", response_model=ResolveResponse)
async def resolve_context(request: ContextRequest):
    current = _require_pipeline()
    try:
        files = await current.resolver.resolve_attachments(
            request.query,
            request.attachments,
            resolve_client_kind(request.client),
        )
    except Exception as e:
        logger.error("Resolve failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to resolve attachments")
    return ResolveResponse(files=[ResolvedFileModel(id=f.id, name=f.name, size=f.size) for f in files])


@app.post("/context/extract", response_model=ContextResponse)
async def extract_context(request: ContextRequest):
    current = _require_pipeline()
    kb = await current.orchestrator.extract_text_for_client(
        request.query,
        request.attachments,
        resolve_client_kind(request.client),
    )
    return ContextResponse(combined_text=kb.combined_text, citations=kb.citations, partial=kb.partial)


@app.get("/context/folders/{folder_id}/items")
async def list_folder(folder_id: str):
    current = _require_pipeline()
    if not await current.resolver.is_authorized(folder_id, "folder"):
        raise HTTPException(status_code=403, detail="Folder not within configured root")
    items = await current.box_client.list_folder_items(folder_id)
    return {"folder_id": folder_id, "items": [item.to_dict() for item in items]}


@app.get("/stats")
async def stats():
    current = _require_pipeline()
    return {"local_cache": current.local_cache.stats}


if __name__ == "__main__":
    import uvicorn

    cfg = load_config()
    uvicorn.run(app, host=cfg.server.host, port=cfg.server.port)
