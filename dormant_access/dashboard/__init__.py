"""
Dashboard Package.

Streamlit front end over the Dormant Access Engine REST API.
"""
