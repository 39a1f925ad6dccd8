"""
HTML email templates for every transactional message of the booking lifecycle.
Each template returns a (subject, html) tuple. User-provided values are escaped.
"""

import html
from typing import List, Optional, Tuple

from homeservice.models.db_models import Booking, BookingStats

DEFAULT_COMPANY = "Shree Pest Control Services"
DEFAULT_COLOR = "#0e7490"

def _e(value) -> str:
    return html.escape(str(value)) if value not in (None, "") else "Not specified"

def _base(title: str, content: str, company: str, color: str = DEFAULT_COLOR) -> str:
    return f"""
    <div style="background:{color};padding:16px;text-align:center;color:#fff;">
      <h1>{html.escape(company)}</h1>
    </div>
    <div style="padding:20px;font-family:Arial,sans-serif;color:#333;">
      <h2>{title}</h2>
      {content}
      <p style="margin-top:16px">– {html.escape(company)} Team</p>
    </div>
    """

def _details(booking: Booking, include_contact: bool = False) -> str:
    rows = []
    if include_contact:
        rows += [
            f"<li><b>Name:</b> {_e(booking.name)}</li>",
            f"<li><b>Phone:</b> {_e(booking.phone)}</li>",
            f"<li><b>Email:</b> {_e(booking.email)}</li>",
        ]
    rows += [
        f"<li><b>Service:</b> {_e(booking.service_type)}</li>",
        f"<li><b>Date:</b> {_e(booking.date)}</li>",
        f"<li><b>Time:</b> {_e(booking.time)}</li>",
        f"<li><b>Urgency:</b> {_e(booking.urgency.value)}</li>",
        f"<li><b>Address:</b> {_e(booking.address)}, {_e(booking.postal_code)}</li>",
    ]
    if include_contact:
        rows.append(f"<li><b>Instructions:</b> {_e(booking.instructions or 'None')}</li>")
    return "<ul>" + "".join(rows) + "</ul>"

def otp_email(code: str, ttl_minutes: int, company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    content = f"""
      <p>Your One-Time Password (OTP) is:</p>
      <h1 style="color:#00c2cb;letter-spacing:6px">{html.escape(code)}</h1>
      <p>This OTP will expire in {ttl_minutes} minutes.</p>
      <p>If you did not request this, please ignore this email.</p>
    """
    return f"Your OTP Code – {company}", _base(f"Welcome to {html.escape(company)}", content, company)

def booking_received_customer(booking: Booking, company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    content = f"""
      <p>Thank you for choosing <b>{html.escape(company)}</b>.</p>
      <p>Your booking has been received with the following details:</p>
      {_details(booking)}
      <p>We will contact you shortly to confirm the details.</p>
    """
    return f"✅ Booking Confirmation – {company}", _base(f"Dear {_e(booking.name)},", content, company)

def booking_received_staff(booking: Booking, company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    content = _details(booking, include_contact=True)
    if not booking.verified:
        content += "<p><i>Entered by staff (no email verification).</i></p>"
    return f"📩 New Booking Received – {company}", _base("New Booking Received", content, company)

STATUS_COPY = {
    "confirmed": ("✅ Your booking is confirmed", "Good news! Your booking has been confirmed."),
    "completed": ("🎉 Service completed", "Your service has been completed. Thank you for choosing us!"),
    "cancelled": ("❌ Your booking was cancelled", "We are sorry to inform you that your booking has been cancelled."),
}

def status_update(booking: Booking, status: str, reason: Optional[str] = None,
                  company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    subject_prefix, lead = STATUS_COPY[status]
    content = f"<p>{lead}</p>{_details(booking)}"
    if reason:
        content += f"<p><b>Reason:</b> {_e(reason)}</p>"
    return f"{subject_prefix} – {company}", _base(f"Hi {_e(booking.name)},", content, company)

def rescheduled(booking: Booking, reason: Optional[str] = None, company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    content = f"""
      <p>Your booking has been rescheduled to <b>{_e(booking.date)}</b> at <b>{_e(booking.time)}</b>.</p>
      {_details(booking)}
    """
    if reason:
        content += f"<p><b>Reason:</b> {_e(reason)}</p>"
    return f"📅 Booking Rescheduled – {company}", _base(f"Hi {_e(booking.name)},", content, company)

def reminder_customer(booking: Booking, company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    content = f"""
      <p>This is a friendly reminder that your service is scheduled for
      <b>{_e(booking.date)}</b> at <b>{_e(booking.time)}</b>.</p>
      <p>Our team will be there at your address: {_e(booking.address)}, {_e(booking.postal_code)}.</p>
      <p>Thank you for choosing us!</p>
    """
    return "⏰ Reminder: Your Service is Tomorrow", _base(f"Hi {_e(booking.name)},", content, company)

def reminder_staff(booking: Booking, company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    content = f"<p>Visit scheduled for tomorrow:</p>{_details(booking, include_contact=True)}"
    return f"⏰ Tomorrow: {booking.service_type} for {booking.name}", _base("Upcoming Visit", content, company)

def daily_digest(day: str, bookings: List[Booking], stats: Optional[BookingStats] = None,
                 company: str = DEFAULT_COMPANY) -> Tuple[str, str]:
    rows = "".join(
        f"<tr><td>{_e(b.time)}</td><td>{_e(b.name)}</td><td>{_e(b.phone)}</td>"
        f"<td>{_e(b.service_type)}</td><td>{_e(b.address)}, {_e(b.postal_code)}</td></tr>"
        for b in bookings
    )
    content = f"""
      <p>{len(bookings)} confirmed booking(s) for <b>{html.escape(day)}</b>:</p>
      <table border="1" cellpadding="6" style="border-collapse:collapse">
        <tr><th>Time</th><th>Name</th><th>Phone</th><th>Service</th><th>Address</th></tr>
        {rows}
      </table>
    """
    if stats is not None:
        content += f"""
      <h3>Overall summary</h3>
      <ul>
        <li>📌 Pending: {stats.pending}</li>
        <li>✅ Confirmed: {stats.confirmed}</li>
        <li>🎉 Completed: {stats.completed}</li>
        <li>❌ Cancelled: {stats.cancelled}</li>
        <li>📊 Total: {stats.total}</li>
      </ul>
    """
    return f"📊 Daily Digest for {day} – {company}", _base("Here’s tomorrow’s schedule:", content, company)
