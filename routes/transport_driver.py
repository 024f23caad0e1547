# routes/transport_driver.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas import IssueOut, TaskOut, dump, dump_all
from services import driver as driver_service
from utils.permissions import AuthContext, require_capability
from utils.request_body import RequestModel, parse_body

router = APIRouter()

class ScanRequest(RequestModel):
    qr_code: str
    notes: Optional[str] = None

class DriverIssueRequest(RequestModel):
    issue_type: str
    description: str

@router.get("/tasks")
async def get_my_tasks(
    include_finished: bool = Query(False),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("drive_transport")),
):
    tasks = driver_service.my_tasks(db, context, include_finished=include_finished)
    return {"success": True, "tasks": dump_all(TaskOut, tasks), "count": len(tasks)}

@router.get("/stats")
async def get_my_stats(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("drive_transport")),
):
    return {"success": True, "stats": driver_service.my_stats(db, context)}

@router.post("/tasks/{task_id}/pickup")
async def confirm_pickup(
    task_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("drive_transport")),
):
    """Scan the batch label at pickup"""
    body = await parse_body(request, ScanRequest)
    task = driver_service.confirm_pickup(db, context, task_id, body.qr_code, notes=body.notes, request=request)
    return {"success": True, "message": "Pickup confirmed", "task": dump(TaskOut, task)}

@router.post("/tasks/{task_id}/delivery")
async def confirm_delivery(
    task_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("drive_transport")),
):
    """Scan the batch label at the destination warehouse"""
    body = await parse_body(request, ScanRequest)
    task = driver_service.confirm_delivery(db, context, task_id, body.qr_code, notes=body.notes, request=request)
    return {"success": True, "message": "Delivery confirmed", "task": dump(TaskOut, task)}

@router.post("/tasks/{task_id}/issues")
async def report_issue(
    task_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("drive_transport")),
):
    body = await parse_body(request, DriverIssueRequest)
    issue = driver_service.report_issue(db, context, task_id, body.issue_type, body.description, request=request)
    return {"success": True, "message": "Issue reported", "issue": dump(IssueOut, issue)}
