from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from groupledger.api.deps import get_db
from groupledger.core.auth import Principal, get_current_user
from groupledger.core.clock import utc_now_naive
from groupledger.schemas.transaction import MonthlyStats
from groupledger.services.transactions import monthly_stats

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/monthly", response_model=MonthlyStats)
def get_monthly_stats(
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    # defaults to the current month
    now = utc_now_naive()
    return monthly_stats(db, year or now.year, month or now.month)
