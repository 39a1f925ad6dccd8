from typing import List

import pandas as pd

from homeservice.models.db_models import Booking

# Column order of the admin CSV download
CSV_COLUMNS = {
    "name": "Name",
    "phone": "Phone",
    "email": "Email",
    "address": "Address",
    "postal_code": "Pincode",
    "service_type": "Service",
    "urgency": "Urgency",
    "date": "Date",
    "time": "Time",
    "instructions": "Instructions",
    "status": "Status",
}


def bookings_to_frame(bookings: List[Booking]) -> pd.DataFrame:
    """Flatten bookings into a DataFrame with the admin column headers."""
    rows = [b.model_dump(mode="json") for b in bookings]
    df = pd.DataFrame(rows, columns=list(CSV_COLUMNS))
    return df.rename(columns=CSV_COLUMNS).fillna("")


def export_csv(bookings: List[Booking]) -> str:
    return bookings_to_frame(bookings).to_csv(index=False)
