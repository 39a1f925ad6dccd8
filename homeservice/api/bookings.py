from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from homeservice.core.exceptions import NotificationFailure
from homeservice.models.db_models import BookingCreate
from homeservice.services.booking_service import BookingService
from homeservice.services.validators import is_serviceable
from homeservice.services.verification_service import OtpVerifier
from homeservice.wiring.dependencies import get_booking_service, get_verifier

router = APIRouter()

class SendOtpRequest(BaseModel):
    email: Optional[str] = None

class VerifyOtpRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None

@router.post("/send-otp")
async def send_otp(req: SendOtpRequest, verifier: OtpVerifier = Depends(get_verifier)):
    try:
        expires_at = await verifier.issue(req.email)
    except NotificationFailure:
        raise HTTPException(status_code=500, detail="Failed to send OTP")
    return {"success": True, "message": "OTP sent to email", "expires_at": expires_at.isoformat()}

@router.post("/verify-otp")
async def verify_otp(req: VerifyOtpRequest, verifier: OtpVerifier = Depends(get_verifier)):
    verifier.check(req.email, req.otp)
    return {"success": True, "message": "Email verified successfully"}

@router.get("/pincode/check/{code}")
async def check_pincode(code: str, service: BookingService = Depends(get_booking_service)):
    serviceable = is_serviceable(code, service.serviceable_codes)
    message = "Service available in your area." if serviceable else "Service not available in this area."
    return {"success": True, "serviceable": serviceable, "message": message}

@router.post("/bookings", status_code=201)
async def create_booking(req: BookingCreate, service: BookingService = Depends(get_booking_service)):
    booking = await service.create_booking(req)
    return {
        "success": True,
        "message": "Booking created successfully",
        "booking": booking.model_dump(mode="json"),
    }
