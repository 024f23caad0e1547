# routes/procurement.py
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import Field
from sqlalchemy.orm import Session

from database import get_db
from schemas import BatchOut, StockRequirementOut, dump, dump_all
from services import procurement
from utils.permissions import AuthContext, require_capability
from utils.request_body import RequestModel, parse_body

router = APIRouter()

class ApproveRequest(RequestModel):
    batch_id: UUID
    quality: Dict[str, Any] = Field(default_factory=dict)
    harvest: Optional[Dict[str, Any]] = None
    photos: List[Any] = Field(default_factory=list)
    notes: Optional[str] = None

class RejectRequest(RequestModel):
    batch_id: UUID
    reason: str

class TransportRequest(RequestModel):
    batch_id: UUID
    warehouse_id: UUID
    coordinator_id: UUID
    pickup_location: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    notes: Optional[str] = None

class StockRequirementRequest(RequestModel):
    crop_type: str
    min_stock: float
    unit: Optional[str] = None

class LowStockRequest(RequestModel):
    crop_type: str

@router.get("/pending-reviews")
async def get_pending_reviews(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("approve_batches")),
):
    """Batches harvested or submitted and waiting for a quality decision"""
    batches = procurement.list_pending_reviews(db)
    return {"success": True, "batches": dump_all(BatchOut, batches), "count": len(batches)}

@router.post("/batches/approve")
async def approve_batch(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("approve_batches")),
):
    body = await parse_body(request, ApproveRequest)
    batch = procurement.approve_batch(
        db, context, body.batch_id, body.quality,
        harvest=body.harvest, photos=body.photos, notes=body.notes, request=request,
    )
    return {"success": True, "message": "Batch approved successfully", "batch": dump(BatchOut, batch)}

@router.post("/batches/reject")
async def reject_batch(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("approve_batches")),
):
    body = await parse_body(request, RejectRequest)
    batch = procurement.reject_batch(db, context, body.batch_id, body.reason, request=request)
    return {"success": True, "message": "Batch rejected and returned for rework", "batch": dump(BatchOut, batch)}

@router.post("/batches/request-transport")
async def request_transport(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("request_transport")),
):
    body = await parse_body(request, TransportRequest)
    batch = procurement.request_transport(
        db, context, body.batch_id, body.warehouse_id, body.coordinator_id,
        pickup_location=body.pickup_location, scheduled_date=body.scheduled_date,
        notes=body.notes, request=request,
    )
    return {"success": True, "message": "Transport requested successfully", "batch": dump(BatchOut, batch)}

# ============================================================================
# STOCK
# ============================================================================

@router.get("/stock-requirements")
async def get_stock_requirements(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("view_inventory")),
):
    requirements = procurement.list_stock_requirements(db)
    return {"success": True, "requirements": dump_all(StockRequirementOut, requirements)}

@router.post("/stock-requirements")
async def upsert_stock_requirement(
    body: StockRequirementRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_stock_requirements")),
):
    requirement = procurement.upsert_stock_requirement(
        db, context, body.crop_type, body.min_stock, unit=body.unit, request=request,
    )
    return {
        "success": True,
        "message": "Stock requirement saved",
        "requirement": dump(StockRequirementOut, requirement),
    }

@router.get("/inventory")
async def get_inventory(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("view_inventory")),
):
    return {"success": True, "inventory": procurement.inventory_summary(db)}

@router.post("/stock-requirements/notify-low-stock")
async def notify_low_stock(
    body: LowStockRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_stock_requirements")),
):
    sent = procurement.notify_field_agents_low_stock(db, context, body.crop_type, request=request)
    message = f"Notified {sent} field agent(s)" if sent else "Stock is at or above the minimum; no one notified"
    return {"success": True, "message": message, "notified": sent}
