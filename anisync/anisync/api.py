"""
Trigger handlers: JSON request body in, JSON response body out.

Each handler accepts a dict or a raw JSON string and never raises; fatal
errors come back as {"success": False, "error": ...}.
"""

import json
import logging
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from . import constants as c
from .config import get_config
from .jobs import JobRunner, dispatch_dual_sync, settle
from .logging import AniSyncError, ValidationError
from .reconciler import reconcile
from .review import resolve
from .store import CatalogStore
from .sync_engine import run_sync

logger = logging.getLogger(__name__)

Body = Union[str, bytes, Dict[str, Any], None]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SyncRequest(_Request):
    content_type: Literal["anime", "manga"] = Field(alias="contentType")
    max_pages: Optional[int] = Field(default=None, alias="maxPages", ge=1)
    start_page: int = Field(default=c.DEFAULT_START_PAGE, alias="startPage", ge=1)
    # Accepted for compatibility; paging is page-number based
    start_from_id: Optional[int] = Field(default=None, alias="startFromId")
    provider: Literal["anilist", "jikan"] = Field(default=c.PROVIDER_ANILIST)
    complete: bool = False
    resume: bool = False


class ReconcileRequest(_Request):
    content_type: Literal["anime", "manga"] = Field(alias="contentType")
    limit: int = Field(default=c.DEFAULT_RECONCILE_LIMIT, ge=1)
    days_back: int = Field(default=c.DEFAULT_RECONCILE_DAYS_BACK, alias="daysBack", ge=0)


class ResolveRequest(_Request):
    match_id: int = Field(alias="matchId")
    decision: Literal["approved", "rejected", "merged"]
    target_title_id: Optional[int] = Field(default=None, alias="targetTitleId")
    reviewed_by: Optional[str] = Field(default=None, alias="reviewedBy")


class DualSyncRequest(_Request):
    max_pages: Optional[int] = Field(default=None, alias="maxPages", ge=1)


def _parse(model, body: Body):
    """Builds a request model; a body that can't be parsed raises ValidationError."""
    if body is None or body == "" or body == b"":
        data = {}
    elif isinstance(body, (str, bytes)):
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ValidationError(f"Invalid JSON body: {e}") from e
    else:
        data = body
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid request: {e.errors()[0]['msg']} ({e.errors()[0]['loc']})") from e


def _failure(e: Exception) -> Dict[str, Any]:
    logger.error(f"Request failed: {e}")
    return {"success": False, "error": str(e)}


def handle_sync(body: Body, store: Optional[CatalogStore] = None, client=None, **kwargs) -> Dict[str, Any]:
    try:
        req = _parse(SyncRequest, body)
        if req.start_from_id is not None:
            logger.info(f"startFromId={req.start_from_id} ignored, paging from page {req.start_page}")
        result = run_sync(
            req.content_type,
            max_pages=req.max_pages,
            start_page=req.start_page,
            provider=req.provider,
            complete=req.complete,
            resume=req.resume,
            store=store,
            client=client,
            **kwargs,
        )
        return result.to_response(get_config().sync.max_reported_errors)
    except (AniSyncError, SQLAlchemyError) as e:
        return _failure(e)


def handle_reconcile(body: Body, store: Optional[CatalogStore] = None, client=None) -> Dict[str, Any]:
    try:
        req = _parse(ReconcileRequest, body)
        result = reconcile(req.content_type, limit=req.limit, days_back=req.days_back,
                           store=store, client=client)
        return result.to_response(get_config().match.max_reported_errors)
    except (AniSyncError, SQLAlchemyError) as e:
        return _failure(e)


def handle_resolve(body: Body, store: Optional[CatalogStore] = None) -> Dict[str, Any]:
    try:
        req = _parse(ResolveRequest, body)
        if store is None:
            config = get_config()
            store = CatalogStore.from_url(config.database.url, echo=config.database.echo)
        match = resolve(store, req.match_id, req.decision,
                        target_title_id=req.target_title_id, reviewed_by=req.reviewed_by)
        return {
            "success": True,
            "matchId": match.id,
            "decision": match.admin_decision,
            "titleId": match.resolved_title_id,
        }
    except (AniSyncError, SQLAlchemyError) as e:
        return _failure(e)


def handle_dual_sync(body: Body = None, runner: Optional[JobRunner] = None, **kwargs) -> Dict[str, Any]:
    """Runs the anime and manga syncs concurrently and reports both outcomes."""
    try:
        req = _parse(DualSyncRequest, body)
    except ValidationError as e:
        return _failure(e)

    own_runner = runner is None
    runner = runner or JobRunner(max_workers=get_config().processing.thread_pool_size)
    try:
        jobs = dispatch_dual_sync(runner, max_pages=req.max_pages, **kwargs)
        outcomes = settle(jobs)
    except (AniSyncError, SQLAlchemyError) as e:
        return _failure(e)
    finally:
        if own_runner:
            runner.shutdown()

    max_errors = get_config().sync.max_reported_errors
    results = {}
    for outcome in outcomes:
        if outcome["status"] == "fulfilled":
            results[outcome["name"]] = outcome["value"].to_response(max_errors)
        else:
            results[outcome["name"]] = {"success": False, "error": outcome.get("reason")}
    return {
        "success": all(r["success"] for r in results.values()),
        "results": results,
    }
