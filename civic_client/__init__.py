"""Client library behind the Civic Issues Streamlit app."""

__version__ = "0.1.0"
