"""
HTTP API for the review annotator.

This module defines a simple HTTP API using FastAPI that exposes the
citation store and the citation engine.  Persistence goes through the
functions of the database module; selection capture, projection and
highlight injection are the pure engine functions.  The server can be
run directly via uvicorn or programmatically by calling the ``run``
function defined below.

Endpoints:

* **GET /health** – Return a basic health status.

* **GET /stats** – Total number of stored citations and the count per
  review.

* **GET /reviews/{review_id}/citations** – The citations of a review,
  ordered by start offset.

* **POST /reviews/{review_id}/citations** – Insert a batch of
  citations.  The batch is validated first; a batch with blocking
  issues (including a repeated id) is rejected with a 422 carrying the
  validation report.  An id already stored returns 409.

* **PUT /reviews/{review_id}/citations** – Replace the batch of a
  review (used when an existing review is edited).  An id stored under
  another review returns 409.

* **DELETE /reviews/{review_id}/citations** – Delete every citation of
  a review.

* **POST /selection** – Capture a selection from ``body``, ``anchor``
  and ``focus``.  Returns ``{"selection": null}`` when nothing valid
  was selected.

* **POST /render** – Project ``body`` and inject the highlights of
  ``citations``, marking ``emphasized_id`` as active.  Returns the
  annotated blocks and the rendered HTML.

* **POST /analysis** – Anchoring consistency report for ``body`` and
  ``citations``.

The application configures CORS to allow requests from any origin so
that a browser front end served from another port can call it.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import pandas as pd  # type: ignore
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError

from . import database as db
from .citation_validator import CitationValidator, is_valid
from .consistency import analyze_citation_anchoring
from .highlight import inject_highlights
from .models import Citation
from .parsers import frame_to_citations, normalise_columns
from .projection import body_plain_text, project_body
from .selection import capture_selection
from review_annotator.frontend.render import render_html

logger = logging.getLogger(__name__)


# Create the FastAPI application
app = FastAPI(title="Review Annotator API", version="1.0.0")

# Configure CORS so that a separately served front end can access the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event() -> None:
    """Initialise the database when the application starts."""
    db.init_db()
    logger.info("Review annotator API startup complete")


def _validated_batch(review_id: str, payload: List[Dict[str, Any]]) -> List[Citation]:
    """Validate an incoming batch, raising a 422 when it cannot be stored."""
    df = normalise_columns(pd.DataFrame(payload))
    df['review_id'] = review_id
    validator = CitationValidator()
    validated_df, report = validator.validate_citations(df)
    if not is_valid(report):
        raise HTTPException(status_code=422, detail=report)
    return frame_to_citations(validated_df)


def _body(payload: Dict[str, Any]) -> str:
    body = payload.get("body")
    if body is None:
        return ""
    if not isinstance(body, str):
        raise HTTPException(status_code=422, detail="body must be a string")
    return body


def _citations_from_payload(payload: Dict[str, Any]) -> List[Citation]:
    try:
        return [Citation.from_dict(item) for item in payload.get("citations") or []]
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid citation: {e}")


@app.get("/health", response_model=Dict[str, Any])
async def health_check() -> Dict[str, Any]:
    """Return a basic health status."""
    return {
        "status": "healthy",
        "server": "ReviewAnnotator",
    }


@app.get("/stats", response_model=Dict[str, Any])
async def stats() -> Dict[str, Any]:
    """Return the number of stored citations overall and per review."""
    try:
        return db.get_review_stats()
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Error computing citation stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to compute citation stats")


@app.get("/reviews/{review_id}/citations", response_model=Dict[str, Any])
async def list_citations(review_id: str) -> Dict[str, Any]:
    """Return the citations of a review ordered by start offset."""
    try:
        citations = db.fetch_citations(review_id)
        return {"citations": [c.to_dict() for c in citations]}
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Fetch error for review {review_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/reviews/{review_id}/citations", response_model=Dict[str, Any])
async def add_citations(review_id: str, payload: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a validated batch of citations for a review."""
    citations = _validated_batch(review_id, payload)
    try:
        return db.insert_citations(review_id, citations)
    except IntegrityError as e:
        logger.warning(f"Duplicate citation id for review {review_id}: {e.orig}")
        raise HTTPException(status_code=409, detail="A citation with one of these ids is already stored")
    except Exception as e:
        logger.error(f"Insert error for review {review_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store citations")


@app.put("/reviews/{review_id}/citations", response_model=Dict[str, Any])
async def replace_citations(review_id: str, payload: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Replace the citation batch of a review."""
    citations = _validated_batch(review_id, payload)
    try:
        return db.replace_citations(review_id, citations)
    except IntegrityError as e:
        logger.warning(f"Citation id taken by another review while replacing {review_id}: {e.orig}")
        raise HTTPException(status_code=409, detail="A citation with one of these ids belongs to another review")
    except Exception as e:
        logger.error(f"Replace error for review {review_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to replace citations")


@app.delete("/reviews/{review_id}/citations", response_model=Dict[str, Any])
async def delete_citations(review_id: str) -> Dict[str, Any]:
    """Delete every citation of a review."""
    try:
        return {"deleted": db.delete_citations(review_id)}
    except Exception as e:  # pragma: no cover - just logs
        logger.error(f"Delete error for review {review_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/selection", response_model=Dict[str, Any])
async def selection(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Capture a selection from boundary offsets into the body's plain text.

    Args:
        payload: ``body`` (raw article body), ``anchor`` and ``focus``
            (offsets into the plain-text projection).

    Returns:
        ``{"selection": {...}}`` or ``{"selection": null}``.
    """
    try:
        anchor = int(payload["anchor"])
        focus = int(payload["focus"])
    except (KeyError, ValueError, TypeError):
        raise HTTPException(status_code=422, detail="anchor and focus must be integers")
    captured = capture_selection(body_plain_text(_body(payload)), anchor, focus)
    return {"selection": captured.to_dict() if captured else None}


@app.post("/render", response_model=Dict[str, Any])
async def render(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Render a body with its citations highlighted."""
    citations = _citations_from_payload(payload)
    blocks = inject_highlights(
        project_body(_body(payload)),
        citations,
        emphasized_id=payload.get("emphasized_id"),
    )
    return {
        "blocks": [block.to_dict() for block in blocks],
        "html": render_html(blocks),
    }


@app.post("/analysis", response_model=Dict[str, Any])
async def analysis(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Report anchoring problems of citations against a body."""
    citations = _citations_from_payload(payload)
    return analyze_citation_anchoring(_body(payload), citations)


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API server using uvicorn.

    Host and port default to ``REVIEW_API_HOST`` / ``REVIEW_API_PORT``
    (``0.0.0.0`` and ``8001``).
    """
    import uvicorn  # type: ignore

    host = host or os.getenv("REVIEW_API_HOST", "0.0.0.0")
    port = port or int(os.getenv("REVIEW_API_PORT", "8001"))
    logger.info(f"Starting review annotator API on {host}:{port}")
    uvicorn.run(
        "review_annotator.backend.api_server:app",
        host=host,
        port=port,
        log_level="info",
        reload=False,
    )
