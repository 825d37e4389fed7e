# platelink/routers/vehicles.py
"""Vehicle registration, removal, and masked plate lookup."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from platelink.schemas.vehicle import (
    VehicleCreate, VehicleRegistered, VehicleOut, VehicleStatsOut, FoundMasked, MaskedOwnerOut,
)
from platelink.services import vehicle_service
from platelink.services.backend import Backend, get_backend, get_gateway
from platelink.services.search_gateway import SearchGateway

router = APIRouter()


@router.post("/vehicles", response_model=VehicleRegistered, status_code=status.HTTP_201_CREATED,
             summary="Register a plate for an owner")
def register_vehicle(body: VehicleCreate, backend: Backend = Depends(get_backend)):
    """409 with reason AlreadyRegisteredBySelf / AlreadyRegisteredByOther on duplicates."""
    vehicle = vehicle_service.register_vehicle(backend, body.owner_id, body.raw_plate, body.wheel_category)
    return VehicleRegistered(vehicle_id=vehicle.vehicle_id, plate=vehicle.plate, plate_family=vehicle.plate_family)


@router.get("/vehicles", response_model=list[VehicleOut], summary="List an owner's vehicles")
def list_vehicles(owner_id: str, backend: Backend = Depends(get_backend)):
    return [VehicleOut.model_validate(v) for v in vehicle_service.list_vehicles(backend, owner_id)]


@router.get("/vehicles/by-plate", response_model=FoundMasked, summary="Look up a plate (owner masked)",
            responses={404: {"description": "No vehicle registered with this plate"}})
def vehicle_by_plate(plate: str, user_id: str = None, gateway: SearchGateway = Depends(get_gateway)):
    result = gateway.search(plate, searcher_id=user_id)
    if not result.found:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"found": False, "plate": result.plate, "plate_family": result.plate_family,
                     "detail": "Vehicle not found in our network"},
        )
    vehicle = result.vehicle
    return FoundMasked(
        plate=vehicle.plate,
        plate_family=vehicle.plate_family,
        vehicle_id=vehicle.vehicle_id,
        wheel_category=vehicle.wheel_category,
        verified=vehicle.verified,
        registered_at=vehicle.created_at,
        total_searches=result.total_searches,
        owner=MaskedOwnerOut.model_validate(result.owner),
    )


@router.get("/vehicles/check/{plate}", summary="Is this plate already registered?")
def check_plate(plate: str, backend: Backend = Depends(get_backend)):
    """Availability check for the add-vehicle form. Not counted as a search."""
    return {"plate": plate, "registered": vehicle_service.is_registered(backend, plate)}


@router.get("/vehicles/{vehicle_id}/stats", response_model=VehicleStatsOut, summary="Search/contact counters")
def vehicle_stats(vehicle_id: str, backend: Backend = Depends(get_backend)):
    return VehicleStatsOut.model_validate(backend.activity.vehicle_stats(vehicle_id))


@router.delete("/vehicles/{vehicle_id}", summary="Remove a vehicle (owner only)")
def remove_vehicle(vehicle_id: str, owner_id: str, backend: Backend = Depends(get_backend)):
    vehicle = vehicle_service.remove_vehicle(backend, owner_id, vehicle_id)
    return {"status": "removed", "vehicle_id": vehicle.vehicle_id, "plate": vehicle.plate}
