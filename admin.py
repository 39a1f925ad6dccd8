import streamlit as st

from homeservice.core.config import settings
from homeservice.core.exceptions import BookingError
from homeservice.models.db_models import BookingStatus
from homeservice.services.export_service import bookings_to_frame, export_csv
from homeservice.wiring.dependencies import get_booking_service, get_company_name
from homeservice.wiring.panel import PanelLoop, load_panel_data

# Page Config
st.set_page_config(
    page_title="Bookings Admin",
    page_icon="📅",
    layout="wide"
)

# Header
st.title(f"{get_company_name()} - Admin Panel")

if settings.STORE_PROVIDER.lower() != "supabase":
    st.warning("STORE_PROVIDER is not 'supabase': this panel only sees its own in-memory bookings.")

service = get_booking_service()

@st.cache_resource
def get_panel_loop() -> PanelLoop:
    return PanelLoop()

def load_data(status: str, search: str):
    try:
        return load_panel_data(get_panel_loop(), service, status, search)
    except BookingError as e:
        st.error(f"Error loading bookings: {e.message}")
        return None, None

# Filters
col_status, col_search, col_refresh = st.columns([1, 2, 1])
status = col_status.selectbox("Status", ["all"] + [s.value for s in BookingStatus])
search = col_search.text_input("Search by name")
if col_refresh.button("Refresh"):
    st.rerun()

bookings, stats = load_data(status, search)

if stats is not None:
    # Metrics
    cols = st.columns(5)
    cols[0].metric("📌 Pending", stats.pending)
    cols[1].metric("✅ Confirmed", stats.confirmed)
    cols[2].metric("🎉 Completed", stats.completed)
    cols[3].metric("❌ Cancelled", stats.cancelled)
    cols[4].metric("📊 Total", stats.total)

if bookings:
    # Data Table
    st.subheader("Bookings")
    st.dataframe(bookings_to_frame(bookings), use_container_width=True)
    st.download_button(
        "Export CSV",
        data=export_csv(bookings),
        file_name="bookings.csv",
        mime="text/csv",
    )
elif bookings is not None:
    st.info("No bookings found.")

# Footer
st.markdown("---")
st.caption(f"Home Service Booking System • {get_company_name()}")
