# app/api/routes.py
from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas
from ..db import get_db
from ..errors import OptimizationNotFound, ValidationFailed
from ..rate_limit import rate_limit, rate_limit_optimize
from ..utils import logger, utcnow

router = APIRouter(prefix="/api")


def _asin_param(asin: str) -> str:
    try:
        return schemas.normalize_asin(asin)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e


@router.get("/health")
def health():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@router.post(
    "/products/optimize",
    status_code=201,
    response_model=schemas.OptimizationResult,
    dependencies=[Depends(rate_limit_optimize)],
)
def optimize(payload: schemas.OptimizeRequest, request: Request):
    settings = request.app.state.settings
    marketplace = payload.marketplace or settings.default_marketplace
    if marketplace not in settings.marketplaces:
        raise ValidationFailed(
            f"Marketplace must be one of: {', '.join(settings.supported_marketplaces)}"
        )
    return request.app.state.optimizer.run(payload.asin, marketplace)


@router.get(
    "/optimizations/history/{asin}",
    response_model=schemas.HistoryOut,
    dependencies=[Depends(rate_limit)],
)
def history(
    asin: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    asin = _asin_param(asin)
    items = crud.list_optimizations(db, asin, limit=limit, offset=offset)
    total = crud.count_optimizations(db, asin)
    return schemas.HistoryOut(
        asin=asin,
        optimizations=[schemas.OptimizationOut.model_validate(o) for o in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.delete(
    "/optimizations/history/{asin}",
    response_model=schemas.DeleteOut,
    dependencies=[Depends(rate_limit)],
)
def delete_history(asin: str, db: Session = Depends(get_db)):
    asin = _asin_param(asin)
    deleted = crud.delete_optimizations(db, asin)
    logger.info("Deleted %d optimizations for ASIN %s", deleted, asin)
    return schemas.DeleteOut(asin=asin, deleted=deleted)


@router.get(
    "/optimizations/recent",
    response_model=List[schemas.RecentOptimizationOut],
    dependencies=[Depends(rate_limit)],
)
def recent(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return [schemas.RecentOptimizationOut.model_validate(row) for row in crud.recent_optimizations(db, limit=limit)]


@router.get(
    "/optimizations/{optimization_id}",
    response_model=schemas.OptimizationDetailOut,
    dependencies=[Depends(rate_limit)],
)
def get_optimization(optimization_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    row = crud.get_optimization_with_listing(db, optimization_id)
    if row is None:
        raise OptimizationNotFound(f"Optimization with id {optimization_id} not found")
    return schemas.OptimizationDetailOut.model_validate(row)
