"""Streamlit session helpers shared by every page of the app."""

import uuid

import streamlit as st
from streamlit_javascript import st_javascript

from .ai import AIService
from .api import CivicAPI, TokenStore
from .errors import user_message
from .location import LocationService
from .logging_config import get_logger
from .routing import RoutingService

logger = get_logger(__name__)


def safe_rerun():
    """Rerun the script; older Streamlit only has ``experimental_rerun``."""
    rerun = getattr(st, "rerun", None) or getattr(st, "experimental_rerun")
    rerun()


def ensure_user_id():
    if "user_id" not in st.session_state:
        st.session_state.user_id = str(uuid.uuid4())
    return st.session_state.user_id


def get_api():
    """One API client per browser session; tokens live in session_state."""
    if "tokens" not in st.session_state:
        st.session_state.tokens = TokenStore()
    if "api" not in st.session_state:
        st.session_state.api = CivicAPI()
        st.session_state.api.client.tokens = st.session_state.tokens
    return st.session_state.api


def get_ai():
    if "ai" not in st.session_state:
        st.session_state.ai = AIService(get_api().client)
    return st.session_state.ai


def get_location_service():
    """Per browser session, so the reverse-geocode cache is never shared."""
    if "location_service" not in st.session_state:
        st.session_state.location_service = LocationService()
    return st.session_state.location_service


@st.cache_resource
def get_routing_service():
    return RoutingService()


def notify_error(error, prefix=""):
    message = user_message(error)
    logger.warning("ui_error", error=repr(error))
    st.error(f"{prefix}{message}" if prefix else message)


def browser_gps(key="gps_js"):
    """
    Use navigator.geolocation via streamlit-javascript.
    Returns a dict like {'lat': ..., 'lon': ..., 'accuracy': ...} or {'error': '...'}.
    """
    js = """
    async function getPos(){
      return await new Promise((resolve) => {
        if (!navigator.geolocation) { resolve({error: 'Geolocation is not supported by this browser'}); return; }
        navigator.geolocation.getCurrentPosition(
          (p) => resolve({lat: p.coords.latitude, lon: p.coords.longitude, accuracy: p.coords.accuracy}),
          (e) => resolve({error: e.code === 1 ? 'Location access denied by user'
                               : e.code === 2 ? 'Location information is unavailable'
                               : e.code === 3 ? 'Location request timed out' : e.message}),
          { enableHighAccuracy: true, timeout: 10000, maximumAge: 300000 }
        );
      });
    }
    getPos();
    """
    res = st_javascript(js, key=key)
    if isinstance(res, dict):
        return res
    return {"error": "no_response"}


def current_position():
    """(lat, lng) chosen on the map or captured from GPS/IP, else None."""
    pos = st.session_state.get("clicked_latlng")
    return tuple(pos) if pos else None
