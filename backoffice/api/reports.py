from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from backoffice.api.auth import get_current_user
from backoffice.database import get_db
from backoffice.models.agent import AgentType
from backoffice.models.order import OrderType
from backoffice.models.user import User
from backoffice.services import report_service
from backoffice.time_utils import utcnow

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/agent-performance")
def agent_performance_report(
    year: int | None = Query(None, ge=2000, le=2100),
    agent_type: AgentType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    year = year or utcnow().year
    report = report_service.agent_performance(db, year, agent_type)
    report["available_years"] = report_service.available_years(db)
    return report


@router.get("/agent-performance/export")
def export_agent_performance(
    year: int | None = Query(None, ge=2000, le=2100),
    agent_type: AgentType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    year = year or utcnow().year
    content = report_service.agent_performance_csv(report_service.agent_performance(db, year, agent_type))
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=agent-performance-report-{year}.csv"},
    )


@router.get("/orders")
def orders_report(
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None, description="Exclusive upper bound on order_date"),
    order_type: OrderType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return report_service.order_summary(db, start_date=start_date, end_date=end_date, order_type=order_type)


@router.get("/top-products")
def top_products_report(
    limit: int = 10,
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None, description="Exclusive upper bound on order_date"),
    order_type: OrderType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return report_service.top_products(
        db, limit=limit, start_date=start_date, end_date=end_date, order_type=order_type
    )
