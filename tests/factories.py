"""Row builders and auth helpers shared by the API tests"""

from datetime import datetime, timedelta, timezone
import uuid

import jwt

from config import settings
from models import (
    BatchStatus, CropBatch, Driver, DriverStatus, Farm, Farmer, Profile, Role,
    TransportStatus, TransportTask, Vehicle, VehicleStatus, VehicleType, Warehouse,
)


def make_token(user_id, email, expires_in=3600):
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm="HS256")


def auth_headers(profile):
    return {"Authorization": f"Bearer {make_token(profile.user_id, profile.email)}"}


def make_warehouse(db, code=None, name="Central Warehouse", is_active=True):
    warehouse = Warehouse(
        name=name,
        code=code or f"WH-{uuid.uuid4().hex[:6].upper()}",
        address="1 Depot Road",
        city="Nairobi",
        country="Kenya",
        capacity=1000,
        is_active=is_active,
    )
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


def make_profile(db, role, warehouse=None, email=None, name=None, is_active=True):
    role = Role(role)
    profile = Profile(
        user_id=uuid.uuid4(),
        email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
        name=name or role.value.replace("_", " ").title(),
        role=role,
        warehouse_id=warehouse.id if warehouse else None,
        is_active=is_active,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def make_farm(db, registered_by=None):
    suffix = uuid.uuid4().hex[:6].upper()
    farmer = Farmer(
        farmer_code=f"FAR-{suffix}",
        name="Amina Otieno",
        phone="+254700000000",
        registered_by=registered_by,
    )
    db.add(farmer)
    db.flush()
    farm = Farm(
        farm_code=f"FM-{suffix}",
        name="Riverside Plot",
        farmer_id=farmer.id,
        location="Kisumu",
        region="Nyanza",
        area=12.5,
        registered_by=registered_by,
    )
    db.add(farm)
    db.commit()
    db.refresh(farm)
    return farm


def make_batch(db, status=BatchStatus.PLANTED, warehouse=None, created_by=None, farm=None,
               crop_type="Maize", quantity=500, notes=None):
    farm = farm or make_farm(db, registered_by=created_by)
    code = f"CB-{uuid.uuid4().hex[:8].upper()}"
    batch = CropBatch(
        batch_code=code,
        qr_code=f"{code}-{farm.id}-1700000000000",
        crop_type=crop_type,
        variety="H614",
        quantity=quantity,
        unit="kg",
        status=BatchStatus(status),
        notes=notes,
        warehouse_id=warehouse.id if warehouse else None,
        farm_id=farm.id,
        farmer_id=farm.farmer_id,
        created_by=created_by,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


def make_driver(db, profile=None, status=DriverStatus.AVAILABLE, email=None):
    driver = Driver(
        name="Peter Mwangi",
        email=email or (profile.email if profile else None),
        phone="+254711111111",
        license_number=f"DL-{uuid.uuid4().hex[:8].upper()}",
        status=status,
        profile_id=profile.id if profile else None,
    )
    db.add(driver)
    db.commit()
    db.refresh(driver)
    return driver


def make_vehicle(db, status=VehicleStatus.AVAILABLE):
    vehicle = Vehicle(
        plate_number=f"KB{uuid.uuid4().hex[:5].upper()}",
        vehicle_type=VehicleType.TRUCK,
        capacity=5000,
        status=status,
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def make_task(db, batch, coordinator, driver=None, vehicle=None, status=TransportStatus.SCHEDULED,
              delivered_at=None):
    task = TransportTask(
        crop_batch_id=batch.id,
        driver_id=driver.id if driver else None,
        vehicle_id=vehicle.id if vehicle else None,
        coordinator_id=coordinator.id,
        status=status,
        scheduled_date=datetime.now(timezone.utc),
        actual_delivery_date=delivered_at,
        pickup_location="Kisumu",
        delivery_location="1 Depot Road",
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task
