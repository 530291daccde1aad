"""报表API端点"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...db.connection import get_db
from ...middleware.audit import audit_log
from ...middleware.auth import RequestContext, get_current_user
from ...schemas.content import ReportExport
from ...services.report_service import ReportService
from ..deps import endpoint_errors, success

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/dashboard")
async def get_dashboard(
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """仪表盘：各模块汇总与最近活动"""
    with endpoint_errors("Failed to retrieve dashboard data"):
        return success(ReportService(db).get_dashboard(current_user.id))


@router.get("/compliance")
async def get_compliance_report(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to generate compliance report"):
        return success(ReportService(db).get_compliance(current_user.id, start_date, end_date))


@router.get("/training-progress")
async def get_training_progress_report(
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to generate training progress report"):
        return success(ReportService(db).get_training_progress(current_user.id))


@router.get("/quiz-performance")
async def get_quiz_performance_report(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to generate quiz performance report"):
        return success(ReportService(db).get_quiz_performance(current_user.id, start_date, end_date))


@router.get("/policy-acknowledgments")
async def get_policy_acknowledgment_report(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    with endpoint_errors("Failed to generate policy acknowledgment report"):
        return success(ReportService(db).get_policy_acknowledgments(current_user.id, start_date, end_date))


@router.post("/export", dependencies=[Depends(audit_log("EXPORT_REPORT", "report"))])
async def export_report(
    payload: ReportExport,
    current_user: RequestContext = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """导出报表；CSV格式以附件返回"""
    with endpoint_errors("Failed to export report"):
        export = ReportService(db).build_export(
            current_user.id,
            payload.report_type,
            payload.format,
            payload.start_date,
            payload.end_date
        )

        if export["format"] == "csv":
            return Response(
                content=export["content"],
                media_type="text/csv",
                headers={"Content-Disposition": f'attachment; filename="{export["filename"]}"'}
            )

        return success(export["data"], "Report exported successfully", filename=export["filename"])
