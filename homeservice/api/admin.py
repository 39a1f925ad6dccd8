from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from homeservice.core.config import settings
from homeservice.core.logger import logger
from homeservice.core.security import authenticate_admin, create_access_token, require_staff
from homeservice.models.db_models import BookingCreate
from homeservice.services.booking_service import BookingService
from homeservice.services.export_service import export_csv
from homeservice.wiring.dependencies import get_booking_service

auth_router = APIRouter()
router = APIRouter(dependencies=[Depends(require_staff)])

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None
    reason: Optional[str] = None

class RescheduleRequest(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None
    reason: Optional[str] = None

@auth_router.post("/admin/auth/login")
async def login(req: LoginRequest):
    if not authenticate_admin(req.email, req.password):
        logger.warning(f"🔒 Failed staff login for {req.email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(req.email.strip().lower())
    logger.info(f"🔑 Staff login: {req.email}")
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600,
    }

@router.get("/admin/bookings")
async def list_bookings(status: Optional[str] = None, search: Optional[str] = None,
                        service: BookingService = Depends(get_booking_service)):
    bookings = await service.list_for_admin(status=status, search=search)
    return {
        "success": True,
        "message": f"{len(bookings)} booking(s)",
        "bookings": [b.model_dump(mode="json") for b in bookings],
    }

@router.post("/admin/bookings", status_code=201)
async def create_booking(req: BookingCreate, service: BookingService = Depends(get_booking_service)):
    booking = await service.create_booking_as_staff(req)
    return {"success": True, "message": "Booking created successfully", "booking": booking.model_dump(mode="json")}

@router.get("/admin/bookings/export")
async def export_bookings(status: Optional[str] = None, search: Optional[str] = None,
                          service: BookingService = Depends(get_booking_service)):
    bookings = await service.list_for_admin(status=status, search=search)
    filename = f"bookings_{datetime.now().strftime('%Y%m%d')}.csv"
    return Response(
        content=export_csv(bookings),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.get("/admin/bookings/{booking_id}")
async def get_booking(booking_id: str, service: BookingService = Depends(get_booking_service)):
    booking = await service.get_booking(booking_id)
    return {"success": True, "message": "Booking found", "booking": booking.model_dump(mode="json")}

@router.patch("/admin/bookings/{booking_id}/status")
async def update_status(booking_id: str, req: StatusUpdateRequest,
                        service: BookingService = Depends(get_booking_service)):
    booking = await service.set_status(booking_id, req.status, req.reason)
    return {
        "success": True,
        "message": f"Booking {booking.status.value}",
        "booking": booking.model_dump(mode="json"),
    }

@router.put("/admin/bookings/{booking_id}/reschedule")
async def reschedule_booking(booking_id: str, req: RescheduleRequest,
                             service: BookingService = Depends(get_booking_service)):
    booking = await service.reschedule(booking_id, req.date, req.time, req.reason)
    return {"success": True, "message": "Booking rescheduled", "booking": booking.model_dump(mode="json")}

@router.get("/admin/stats")
async def get_stats(service: BookingService = Depends(get_booking_service)):
    stats = await service.stats()
    return {"success": True, "message": "Booking statistics", "stats": stats.model_dump()}
