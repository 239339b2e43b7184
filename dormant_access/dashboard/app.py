"""
Dormant Access Dashboard - Streamlit Web Interface

Shows a tenant's dormant access, cost impact and revocation workflow
state, and lets an operator approve or exempt pending records.
"""

from typing import Dict, Optional

import plotly.express as px
import requests
import streamlit as st

from dormant_access.dashboard.frames import (
    category_frame,
    counts_frame,
    offenders_frame,
    records_frame,
)

# Page configuration
st.set_page_config(
    page_title="Dormant Access Dashboard",
    layout="wide",
    initial_sidebar_state="expanded"
)

# API configuration
API_BASE_URL = st.secrets.get("API_BASE_URL", "http://localhost:8000")


def make_api_request(endpoint: str, method: str = "GET", data: Optional[Dict] = None) -> Optional[Dict]:
    """Make API request with error handling."""
    url = f"{API_BASE_URL}{endpoint}"
    try:
        if method == "GET":
            response = requests.get(url, timeout=30)
        elif method == "POST":
            response = requests.post(url, json=data, timeout=30)
        else:
            st.error(f"Unsupported HTTP method: {method}")
            return None
    except requests.RequestException as e:
        st.error(f"API connection error: {e}")
        return None

    if response.status_code == 200:
        return response.json()

    st.error(f"API request failed: {response.status_code} - {response.text}")
    return None


def show_overview_page(tenant_id: str):
    """Display scan summary for a tenant."""
    st.header("Dormant Access Overview")

    scan_data = make_api_request(f"/tenants/{tenant_id}/scan")
    if not scan_data:
        return

    summary = scan_data["summary"]
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Dormant grants", summary["total_dormant"])
    with col2:
        st.metric("Auto-revoke", summary["by_category"]["auto_revoke"])
    with col3:
        st.metric("Monthly savings", f"{summary['potential_savings']['monthly']:,.2f}")
    with col4:
        st.metric("Annual savings", f"{summary['potential_savings']['annual']:,.2f}")

    col1, col2 = st.columns(2)
    with col1:
        fig = px.bar(category_frame(summary), x="category", y="count", title="By Category")
        st.plotly_chart(fig)
    with col2:
        departments = counts_frame(summary["by_department"], "department")
        if not departments.empty:
            fig = px.pie(departments, values="count", names="department", title="By Department")
            st.plotly_chart(fig)

    apps = counts_frame(summary["by_app"], "application")
    if not apps.empty:
        fig = px.bar(apps, x="application", y="count", title="By Application")
        st.plotly_chart(fig)

    st.subheader("Top offenders")
    st.dataframe(offenders_frame(summary))

    st.subheader("Dormant access")
    st.dataframe(records_frame(scan_data["records"]))

    for error in scan_data.get("errors", []):
        st.warning(error)


def show_workflow_page(tenant_id: str):
    """Display workflow records and approval actions."""
    st.header("Revocation Workflow")

    if st.button("Run auto-revocation pass"):
        result = make_api_request(f"/tenants/{tenant_id}/process", method="POST")
        if result:
            st.success(
                f"Processed {result['processed']}: {result['revoked']} revoked, "
                f"{result['pending_approval']} pending approval, {result['skipped']} skipped"
            )
            for error in result["errors"]:
                st.error(error)

    pending = make_api_request(f"/tenants/{tenant_id}/records?status=pending_approval") or []
    st.subheader(f"Pending approval ({len(pending)})")

    operator = st.text_input("Your name", value="")
    for record in pending:
        with st.expander(f"{record['user_name']} - {record['app_name']} ({record['days_since_access']} days)"):
            st.markdown(f"**Email:** {record['user_email']}")
            st.markdown(f"**Manager:** {record.get('manager') or 'N/A'}")
            st.markdown(f"**Cost per license:** {record['cost_per_license']:,.2f}")
            reason = st.text_input("Exemption reason", key=f"reason_{record['id']}")
            col1, col2 = st.columns(2)
            with col1:
                if st.button("Approve", key=f"approve_{record['id']}", disabled=not operator):
                    make_api_request(f"/tenants/{tenant_id}/records/{record['id']}/approve",
                                     method="POST", data={"approved_by": operator})
            with col2:
                if st.button("Exempt", key=f"exempt_{record['id']}", disabled=not (operator and reason)):
                    make_api_request(f"/tenants/{tenant_id}/records/{record['id']}/exempt",
                                     method="POST", data={"exempted_by": operator, "reason": reason})

    all_records = make_api_request(f"/tenants/{tenant_id}/records") or []
    if all_records:
        st.subheader("All records")
        st.dataframe(records_frame(all_records))


def show_settings_page(tenant_id: str):
    """Display tenant configuration."""
    st.header("Settings")
    config = make_api_request(f"/tenants/{tenant_id}/config")
    if config:
        st.json(config)


def main():
    """Main dashboard application."""
    st.title("Dormant Access Dashboard")

    st.sidebar.title("Navigation")
    tenant_id = st.sidebar.text_input("Tenant", value="default")
    page = st.sidebar.radio("Select Page", ["Overview", "Workflow", "Settings"])

    health_data = make_api_request("/health")
    if health_data and health_data.get("status") == "healthy":
        st.sidebar.success("System Healthy")
    else:
        st.sidebar.error("System Issues")

    if page == "Overview":
        show_overview_page(tenant_id)
    elif page == "Workflow":
        show_workflow_page(tenant_id)
    elif page == "Settings":
        show_settings_page(tenant_id)


if __name__ == "__main__":
    main()
