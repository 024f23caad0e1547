"""
Admin routes: users, warehouses, units of measurement and the activity log
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from schemas import ActivityLogOut, ProfileOut, UnitOut, WarehouseOut, dump, dump_all
from services import admin
from services.activity_logger import list_activity_logs
from services.auth_provider import AuthAdmin, get_auth_admin
from utils.permissions import AuthContext, require_capability
from utils.request_body import RequestModel

router = APIRouter()

class UserCreateRequest(RequestModel):
    email: str
    password: str
    name: Optional[str] = None
    role: str
    warehouse_id: Optional[UUID] = None

class RoleRequest(RequestModel):
    role: str

class WarehouseAssignRequest(RequestModel):
    warehouse_id: Optional[UUID] = None

class WarehouseRequest(RequestModel):
    name: Optional[str] = None
    code: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    capacity: Optional[int] = None

class UnitRequest(RequestModel):
    name: Optional[str] = None
    code: Optional[str] = None
    category: Optional[str] = None
    base_unit: Optional[str] = None
    conversion_factor: Optional[float] = None

# ============================================================================
# USERS
# ============================================================================

@router.get("/users")
async def get_users(
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_users")),
):
    users = admin.list_users(db, role)
    return {"success": True, "users": dump_all(ProfileOut, users), "count": len(users)}

@router.post("/users")
async def create_user(
    body: UserCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth_admin: AuthAdmin = Depends(get_auth_admin),
    context: AuthContext = Depends(require_capability("manage_users")),
):
    profile = admin.create_user(
        db, context, auth_admin, body.email, body.password, body.name, body.role,
        warehouse_id=body.warehouse_id, request=request,
    )
    return {"success": True, "message": "User created successfully", "user": dump(ProfileOut, profile)}

@router.put("/users/{profile_id}/role")
async def update_user_role(
    profile_id: UUID,
    body: RoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_users")),
):
    profile = admin.update_user_role(db, context, profile_id, body.role, request=request)
    return {"success": True, "message": "User role updated", "user": dump(ProfileOut, profile)}

@router.put("/users/{profile_id}/warehouse")
async def assign_warehouse(
    profile_id: UUID,
    body: WarehouseAssignRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_users")),
):
    profile = admin.assign_warehouse(db, context, profile_id, body.warehouse_id, request=request)
    return {"success": True, "message": "Warehouse assignment updated", "user": dump(ProfileOut, profile)}

@router.post("/users/{profile_id}/deactivate")
async def deactivate_user(
    profile_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    auth_admin: AuthAdmin = Depends(get_auth_admin),
    context: AuthContext = Depends(require_capability("manage_users")),
):
    profile = admin.set_user_active(db, context, auth_admin, profile_id, False, request=request)
    return {"success": True, "message": "User deactivated", "user": dump(ProfileOut, profile)}

@router.post("/users/{profile_id}/activate")
async def activate_user(
    profile_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    auth_admin: AuthAdmin = Depends(get_auth_admin),
    context: AuthContext = Depends(require_capability("manage_users")),
):
    profile = admin.set_user_active(db, context, auth_admin, profile_id, True, request=request)
    return {"success": True, "message": "User activated", "user": dump(ProfileOut, profile)}

# ============================================================================
# WAREHOUSES
# ============================================================================

@router.get("/warehouses")
async def get_warehouses(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_warehouses")),
):
    warehouses = admin.list_warehouses(db, active_only=active_only)
    return {"success": True, "warehouses": dump_all(WarehouseOut, warehouses), "count": len(warehouses)}

@router.post("/warehouses")
async def create_warehouse(
    body: WarehouseRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_warehouses")),
):
    warehouse = admin.create_warehouse(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Warehouse created successfully", "warehouse": dump(WarehouseOut, warehouse)}

@router.put("/warehouses/{warehouse_id}")
async def update_warehouse(
    warehouse_id: UUID,
    body: WarehouseRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_warehouses")),
):
    warehouse = admin.update_warehouse(db, context, warehouse_id, body.model_dump(exclude_unset=True), request=request)
    return {"success": True, "message": "Warehouse updated successfully", "warehouse": dump(WarehouseOut, warehouse)}

@router.post("/warehouses/{warehouse_id}/toggle")
async def toggle_warehouse(
    warehouse_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_warehouses")),
):
    warehouse = admin.toggle_warehouse(db, context, warehouse_id, request=request)
    state = "activated" if warehouse.is_active else "deactivated"
    return {"success": True, "message": f"Warehouse {state}", "warehouse": dump(WarehouseOut, warehouse)}

@router.delete("/warehouses/{warehouse_id}")
async def delete_warehouse(
    warehouse_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_warehouses")),
):
    admin.delete_warehouse(db, context, warehouse_id, request=request)
    return {"success": True, "message": "Warehouse deleted successfully"}

# ============================================================================
# UNITS OF MEASUREMENT
# ============================================================================

@router.get("/units")
async def get_units(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_units")),
):
    units = admin.list_units(db, active_only=active_only)
    return {"success": True, "units": dump_all(UnitOut, units), "count": len(units)}

@router.post("/units")
async def create_unit(
    body: UnitRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_units")),
):
    unit = admin.create_unit(db, context, body.model_dump(), request=request)
    return {"success": True, "message": "Unit created successfully", "unit": dump(UnitOut, unit)}

@router.put("/units/{unit_id}")
async def update_unit(
    unit_id: UUID,
    body: UnitRequest,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_units")),
):
    unit = admin.update_unit(db, context, unit_id, body.model_dump(exclude_unset=True), request=request)
    return {"success": True, "message": "Unit updated successfully", "unit": dump(UnitOut, unit)}

@router.post("/units/{unit_id}/toggle")
async def toggle_unit(
    unit_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_units")),
):
    unit = admin.toggle_unit(db, context, unit_id, request=request)
    state = "activated" if unit.is_active else "deactivated"
    return {"success": True, "message": f"Unit {state}", "unit": dump(UnitOut, unit)}

@router.delete("/units/{unit_id}")
async def delete_unit(
    unit_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("manage_units")),
):
    admin.delete_unit(db, context, unit_id, request=request)
    return {"success": True, "message": "Unit deleted successfully"}

# ============================================================================
# ACTIVITY LOG
# ============================================================================

@router.get("/activity-logs")
async def get_activity_logs(
    user_id: Optional[UUID] = Query(None),
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_capability("view_activity_logs")),
):
    logs = list_activity_logs(
        db, user_id=user_id, action=action, entity_type=entity_type,
        entity_id=entity_id, limit=limit,
    )
    return {"success": True, "logs": dump_all(ActivityLogOut, logs), "count": len(logs)}
