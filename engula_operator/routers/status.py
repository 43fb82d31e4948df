"""
Status routes — read-only views of the controller process.

  - /         in-memory state (last handled event, reporter)
  - /metrics  Prometheus exposition
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST
from slowapi import Limiter
from slowapi.util import get_remote_address

from engula_operator.config import settings
from engula_operator.models import ProcessStateResponse

logger = logging.getLogger("status")

router = APIRouter(tags=["status"])
limiter = Limiter(key_func=get_remote_address)


@router.get("/", response_model=ProcessStateResponse)
@limiter.limit(settings.RATE_LIMIT)
async def get_state(request: Request):
    """Snapshot of the shared process state."""
    snapshot = await request.app.state.process_state.snapshot()
    return ProcessStateResponse(last_event=snapshot.last_event, reporter=snapshot.reporter)


@router.get("/metrics")
async def get_metrics(request: Request):
    """Expose Prometheus metrics."""
    return Response(
        content=request.app.state.metrics.render(),
        media_type=CONTENT_TYPE_LATEST,
    )
