# routes/transport_coordinator.py
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas import DriverOut, IssueOut, TaskOut, VehicleOut, dump, dump_all
from services import transport
from utils.permissions import AuthContext, require_capability
from utils.request_body import RequestModel, parse_body

router = APIRouter()

coordinator = require_capability("coordinate_transport")

class VehicleRequest(RequestModel):
    plate_number: str
    vehicle_type: str
    capacity: float

class DriverRequest(RequestModel):
    name: str
    license_number: str
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_id: Optional[UUID] = None

class StatusRequest(RequestModel):
    status: str
    notes: Optional[str] = None

class ScheduleRequest(RequestModel):
    batch_id: UUID
    driver_id: UUID
    vehicle_id: UUID
    scheduled_date: datetime
    pickup_location: str
    delivery_location: str
    notes: Optional[str] = None

class IssueRequest(RequestModel):
    task_id: UUID
    issue_type: str
    description: str

class IssueUpdateRequest(RequestModel):
    status: str
    resolution: Optional[str] = None

# ============================================================================
# FLEET
# ============================================================================

@router.get("/vehicles")
async def get_vehicles(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    vehicles = transport.list_vehicles(db, status)
    return {"success": True, "vehicles": dump_all(VehicleOut, vehicles), "count": len(vehicles)}

@router.post("/vehicles")
async def create_vehicle(
    body: VehicleRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    vehicle = transport.create_vehicle(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Vehicle added successfully", "vehicle": dump(VehicleOut, vehicle)}

@router.put("/vehicles/{vehicle_id}/status")
async def update_vehicle_status(
    vehicle_id: UUID,
    body: StatusRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    vehicle = transport.update_vehicle_status(db, context, vehicle_id, body.status, request=request)
    return {"success": True, "message": "Vehicle status updated", "vehicle": dump(VehicleOut, vehicle)}

@router.get("/drivers")
async def get_drivers(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    drivers = transport.list_drivers(db, status)
    return {"success": True, "drivers": dump_all(DriverOut, drivers), "count": len(drivers)}

@router.post("/drivers")
async def create_driver(
    body: DriverRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    driver = transport.create_driver(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Driver added successfully", "driver": dump(DriverOut, driver)}

@router.put("/drivers/{driver_id}/status")
async def update_driver_status(
    driver_id: UUID,
    body: StatusRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    driver = transport.update_driver_status(db, context, driver_id, body.status, request=request)
    return {"success": True, "message": "Driver status updated", "driver": dump(DriverOut, driver)}

# ============================================================================
# TASKS
# ============================================================================

@router.get("/tasks")
async def get_tasks(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    tasks = transport.list_tasks(db, status)
    return {"success": True, "tasks": dump_all(TaskOut, tasks), "count": len(tasks)}

@router.post("/tasks")
async def schedule_transport(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    body = await parse_body(request, ScheduleRequest)
    task = transport.schedule_transport(
        db, context, body.batch_id, body.driver_id, body.vehicle_id,
        body.scheduled_date, body.pickup_location, body.delivery_location,
        notes=body.notes, request=request,
    )
    return {"success": True, "message": "Transport scheduled successfully", "task": dump(TaskOut, task)}

@router.put("/tasks/{task_id}/status")
async def update_task_status(
    task_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    body = await parse_body(request, StatusRequest)
    task = transport.update_task_status(db, context, task_id, body.status, notes=body.notes, request=request)
    return {"success": True, "message": f"Task status updated to {task.status.value}", "task": dump(TaskOut, task)}

# ============================================================================
# ISSUES
# ============================================================================

@router.get("/issues")
async def get_issues(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    issues = transport.list_issues(db, status)
    return {"success": True, "issues": dump_all(IssueOut, issues), "count": len(issues)}

@router.post("/issues")
async def create_issue(
    body: IssueRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    issue = transport.create_issue(db, context, body.task_id, body.issue_type, body.description, request=request)
    return {"success": True, "message": "Issue recorded", "issue": dump(IssueOut, issue)}

@router.put("/issues/{issue_id}")
async def update_issue(
    issue_id: UUID,
    body: IssueUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    issue = transport.update_issue(db, context, issue_id, body.status, resolution=body.resolution, request=request)
    return {"success": True, "message": "Issue updated", "issue": dump(IssueOut, issue)}

@router.get("/stats")
async def get_stats(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(coordinator),
):
    return {"success": True, "stats": transport.coordinator_stats(db)}
