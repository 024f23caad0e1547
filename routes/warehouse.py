# routes/warehouse.py
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas import BatchOut, dump, dump_all
from services import warehouse
from utils.permissions import AuthContext, require_capability
from utils.request_body import RequestModel, parse_body

router = APIRouter()

class PackagingRequest(RequestModel):
    batch_id: UUID
    status: str
    notes: Optional[str] = None

class VerifyRequest(RequestModel):
    batch_code: str

class ReceiptRequest(RequestModel):
    batch_id: UUID
    received_quantity: Optional[float] = None
    quality_notes: Optional[str] = None

class StorageRequest(RequestModel):
    batch_id: UUID
    storage_location: Optional[str] = None
    notes: Optional[str] = None

@router.post("/packaging/update-status")
async def update_packaging_status(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_packaging")),
):
    body = await parse_body(request, PackagingRequest)
    batch = warehouse.update_packaging_status(
        db, context, body.batch_id, body.status, notes=body.notes, request=request,
    )
    return {
        "success": True,
        "message": f"Batch status updated to {batch.status.value}",
        "batch": dump(BatchOut, batch),
    }

@router.post("/scanner/verify-batch")
async def verify_batch(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("receive_batches")),
):
    """Look up a delivered batch by scanned code before confirming receipt"""
    body = await parse_body(request, VerifyRequest)
    result = warehouse.verify_batch(db, context, body.batch_code, request=request)
    return {
        "success": True,
        "message": "Batch verified",
        "batch": dump(BatchOut, result["batch"]),
        "delivery": result["delivery"],
    }

@router.post("/scanner/confirm-receipt")
async def confirm_receipt(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("receive_batches")),
):
    body = await parse_body(request, ReceiptRequest)
    batch = warehouse.confirm_receipt(
        db, context, body.batch_id,
        received_quantity=body.received_quantity, quality_notes=body.quality_notes,
        request=request,
    )
    return {"success": True, "message": "Batch receipt confirmed", "batch": dump(BatchOut, batch)}

@router.post("/storage/update-status")
async def update_storage_status(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_storage")),
):
    body = await parse_body(request, StorageRequest)
    batch = warehouse.update_storage_status(
        db, context, body.batch_id,
        storage_location=body.storage_location, notes=body.notes, request=request,
    )
    return {"success": True, "message": "Batch moved to storage", "batch": dump(BatchOut, batch)}

@router.get("/batches")
async def get_warehouse_batches(
    status: Optional[List[str]] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("receive_batches")),
):
    batches = warehouse.list_warehouse_batches(db, context, statuses=status)
    return {"success": True, "batches": dump_all(BatchOut, batches), "count": len(batches)}
