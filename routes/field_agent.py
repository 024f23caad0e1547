# routes/field_agent.py
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas import BatchOut, FarmerOut, FarmOut, dump, dump_all
from services import field_agent
from utils.permissions import AuthContext, require_capability
from utils.request_body import RequestModel, parse_body

router = APIRouter()

class FarmerRequest(RequestModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

class FarmRequest(RequestModel):
    name: str
    farmer_id: UUID
    location: Optional[str] = None
    region: Optional[str] = None
    coordinates: Optional[str] = None
    area: Optional[float] = None
    soil_type: Optional[str] = None

class CropBatchRequest(RequestModel):
    crop_type: str
    farm_id: UUID
    variety: Optional[str] = None
    planting_date: Optional[date] = None
    expected_harvest: Optional[date] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None

class CropStatusRequest(RequestModel):
    batch_id: UUID
    status: str
    notes: Optional[str] = None
    quantity: Optional[float] = None
    actual_harvest: Optional[datetime] = None

# ============================================================================
# FARMERS
# ============================================================================

@router.get("/farmers")
async def get_farmers(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    farmers = field_agent.list_farmers(db)
    return {"success": True, "farmers": dump_all(FarmerOut, farmers), "count": len(farmers)}

@router.post("/farmers")
async def create_farmer(
    body: FarmerRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    farmer = field_agent.create_farmer(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Farmer created successfully", "farmer": dump(FarmerOut, farmer)}

@router.put("/farmers/{farmer_id}")
async def update_farmer(
    farmer_id: UUID,
    body: FarmerRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    farmer = field_agent.update_farmer(db, context, farmer_id, body.model_dump(), request=request)
    return {"success": True, "message": "Farmer updated successfully", "farmer": dump(FarmerOut, farmer)}

@router.delete("/farmers/{farmer_id}")
async def delete_farmer(
    farmer_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    field_agent.deactivate_farmer(db, context, farmer_id, request=request)
    return {"success": True, "message": "Farmer deleted successfully"}

# ============================================================================
# FARMS
# ============================================================================

@router.get("/farms")
async def get_farms(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    farms = field_agent.list_farms(db)
    return {"success": True, "farms": dump_all(FarmOut, farms), "count": len(farms)}

@router.post("/farms")
async def create_farm(
    body: FarmRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    farm = field_agent.create_farm(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Farm created successfully", "farm": dump(FarmOut, farm)}

# ============================================================================
# CROP BATCHES
# ============================================================================

@router.get("/batches")
async def get_my_batches(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("update_crop_status")),
):
    batches = field_agent.list_my_batches(db, context)
    return {"success": True, "batches": dump_all(BatchOut, batches), "count": len(batches)}

@router.post("/batches")
async def create_crop_batch(
    body: CropBatchRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_farms")),
):
    batch = field_agent.create_crop_batch(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Crop batch created successfully", "batch": dump(BatchOut, batch)}

@router.post("/batches/update-status")
async def update_crop_status(
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("update_crop_status")),
):
    body = await parse_body(request, CropStatusRequest)
    batch = field_agent.update_crop_status(
        db, context, body.batch_id, body.status, body.notes,
        quantity=body.quantity, actual_harvest=body.actual_harvest, request=request,
    )
    return {
        "success": True,
        "message": f"Crop status updated to {batch.status.value}",
        "batch": dump(BatchOut, batch),
    }
