"""
Streamlit Dosewatch dashboard.
Countdown button, dose-logging dialog, override warning, dose history.
Mobile-first. Talks to the API over httpx.
"""

from datetime import datetime, timedelta

import httpx
import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from dosewatch.config import API_KEY, API_URL, DOSE_UNIT, TIMEZONE

HEADERS = {"x-api-key": API_KEY} if API_KEY else {}

RISK_COLORS = {
    "safe": "#4CAF50",
    "warning": "#FFA726",
    "danger": "#EF5350",
}


def api_get(path: str, params: dict | None = None) -> dict | list:
    try:
        r = httpx.get(f"{API_URL}{path}", params=params, headers=HEADERS, timeout=10)
        r.raise_for_status()
        return r.json()
    except Exception as e:
        st.error(f"API Error: {e}")
        return {}


def api_post(path: str, data: dict) -> dict:
    try:
        r = httpx.post(f"{API_URL}{path}", json=data, headers=HEADERS, timeout=10)
        if r.status_code == 422:
            st.error(r.json().get("detail", "Invalid input"))
            return {}
        r.raise_for_status()
        return r.json()
    except Exception as e:
        st.error(f"API Error: {e}")
        return {}


def api_put(path: str, data: dict) -> dict:
    try:
        r = httpx.put(f"{API_URL}{path}", json=data, headers=HEADERS, timeout=10)
        if r.status_code == 422:
            st.error(r.json().get("detail", "Invalid settings"))
            return {}
        r.raise_for_status()
        return r.json()
    except Exception as e:
        st.error(f"API Error: {e}")
        return {}


# --- Plotly mobile-friendly helper ---
PLOTLY_MOBILE_CONFIG = {
    "displayModeBar": False,
    "scrollZoom": False,
    "staticPlot": False,
    "responsive": True,
}

PLOTLY_MOBILE_LAYOUT = dict(
    dragmode=False,
    template="plotly_dark",
    margin=dict(l=40, r=20, t=40, b=35),
    legend=dict(orientation="h", yanchor="bottom", y=1.02),
    xaxis=dict(fixedrange=True),
    yaxis=dict(fixedrange=True),
)


def mobile_chart(fig, height=300, **kwargs):
    """Render a Plotly chart with mobile-friendly settings (no accidental zoom/pan)."""
    fig.update_layout(**PLOTLY_MOBILE_LAYOUT, height=height, **kwargs)
    st.plotly_chart(fig, use_container_width=True, config=PLOTLY_MOBILE_CONFIG)


def events_frame(events: list) -> pd.DataFrame:
    """Dose events as a DataFrame with local timestamps."""
    df = pd.DataFrame(events)
    if df.empty:
        return df
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True).dt.tz_convert(TIMEZONE)
    return df


# --- Page Config ---
st.set_page_config(
    page_title="Dosewatch",
    page_icon=None,
    layout="centered",
    initial_sidebar_state="collapsed",
)

st.markdown("""
<style>
    .block-container {
        padding-top: 0.3rem;
        padding-left: 0.5rem;
        padding-right: 0.5rem;
    }
    .risk-pill {
        display: inline-block;
        padding: 4px 16px;
        border-radius: 999px;
        font-size: 0.9rem;
        font-weight: 600;
    }
    .stButton > button {
        min-height: 52px;
        font-size: 1rem;
        border-radius: 10px;
    }
    div.dose-button .stButton > button {
        min-height: 160px;
        font-size: 2rem;
        border-radius: 50%;
    }
</style>
""", unsafe_allow_html=True)


# =========================================================
# Dialogs
# =========================================================

@st.dialog("Log Intake")
def log_dialog(default_dosage: float):
    st.caption("Enter the amount and any notes about this dose.")
    amount = st.number_input(
        f"Amount ({DOSE_UNIT})", min_value=0.1, step=0.1, value=float(default_dosage), key="dose_amount",
    )
    note = st.text_area("Notes (optional)", placeholder="Any additional details...", key="dose_note")
    c1, c2 = st.columns(2)
    with c1:
        if st.button("Cancel", use_container_width=True):
            st.rerun()
    with c2:
        if st.button("Confirm", type="primary", use_container_width=True):
            r = api_post("/api/dosage", {"amount": amount or default_dosage, "note": note or None})
            if r.get("status") == "ok":
                st.session_state["flash"] = f"Dose {r['event']['amount']:g} {DOSE_UNIT} logged"
                st.rerun()


@st.dialog("Dosing not recommended")
def warning_dialog(state: dict):
    warning = state.get("warning") or {}
    color = RISK_COLORS.get(state.get("risk_level"), RISK_COLORS["danger"])
    st.markdown(
        f"<h3 style='text-align:center;color:{color}'>{warning.get('title', '')}</h3>",
        unsafe_allow_html=True,
    )
    st.write(warning.get("message", ""))
    c1, c2 = st.columns(2)
    with c1:
        if st.button("Cancel", use_container_width=True):
            st.rerun()
    with c2:
        if st.button("Override & Continue", type="primary", use_container_width=True):
            st.session_state["open_dialog"] = "log"
            st.rerun()


# =========================================================
# SIDEBAR — Settings
# =========================================================
with st.sidebar:
    st.header("Dosewatch")
    settings = api_get("/api/settings")
    if isinstance(settings, dict) and "safe_interval_minutes" in settings:
        with st.form("settings"):
            default_dosage = st.number_input(
                f"Default dose ({DOSE_UNIT})", min_value=0.1, step=0.1,
                value=float(settings["default_dosage"]),
            )
            safe_interval = st.number_input(
                "Safe interval (min)", min_value=1.0, step=15.0,
                value=float(settings["safe_interval_minutes"]),
            )
            lead = settings.get("warning_lead_minutes")
            auto_lead = st.checkbox("Automatic warning window (1/12)", value=lead is None)
            warning_lead = st.number_input(
                "Warning window (min)", min_value=0.0, step=5.0,
                value=float(lead if lead is not None else safe_interval / 12),
                disabled=auto_lead,
            )
            if st.form_submit_button("Save", use_container_width=True):
                r = api_put("/api/settings", {
                    "default_dosage": default_dosage,
                    "safe_interval_minutes": safe_interval,
                    "warning_lead_minutes": None if auto_lead else warning_lead,
                })
                if r.get("status") == "ok":
                    st.success("Settings saved")


# =========================================================
# Countdown button (refreshes every second)
# =========================================================

@st.fragment(run_every=1)
def dose_button():
    state = api_get("/api/risk")
    if not isinstance(state, dict) or "risk_level" not in state:
        return
    level = state["risk_level"]
    color = RISK_COLORS.get(level, RISK_COLORS["danger"])

    st.markdown(
        f"<div style='text-align:center'><span class='risk-pill' "
        f"style='background:{color}22;color:{color}'>{state['risk_label']}</span></div>",
        unsafe_allow_html=True,
    )
    if state["session_active"] and state["time_remaining_ms"] > 0:
        st.progress(state["progress"], text=f"Next safe window in {state['countdown']}")

    st.markdown("<div class='dose-button'>", unsafe_allow_html=True)
    clicked = st.button(state["button_label"], use_container_width=True, key="dose_button")
    st.markdown("</div>", unsafe_allow_html=True)
    st.caption(state["button_hint"])

    # Dialogs open from the full-page run; the fragment's timer would close them.
    if clicked:
        st.session_state["open_dialog"] = "log" if level == "safe" else "warning"
        st.rerun(scope="app")


pending_dialog = st.session_state.pop("open_dialog", None)
if pending_dialog == "log":
    s = api_get("/api/settings")
    log_dialog(s.get("default_dosage", 1.0) if isinstance(s, dict) else 1.0)
elif pending_dialog == "warning":
    current = api_get("/api/risk")
    if isinstance(current, dict) and current.get("risk_level") == "safe":
        log_dialog(current["settings"]["default_dosage"])
    elif isinstance(current, dict) and "risk_level" in current:
        warning_dialog(current)

flash = st.session_state.pop("flash", None)
if flash:
    st.success(flash)

dose_button()


# =========================================================
# History
# =========================================================
st.divider()
st.subheader("History")

events = api_get("/api/dosage", {"since": (datetime.now().astimezone() - timedelta(days=2)).isoformat()})
df = events_frame(events if isinstance(events, list) else [])
if df.empty:
    st.info("No doses in the last 48 hours.")
else:
    risk = api_get("/api/risk")
    interval_min = 0.0
    if isinstance(risk, dict):
        interval_min = float(risk.get("settings", {}).get("safe_interval_minutes", 0))
        total = risk.get("rolling_total", 0)
        st.metric(f"Last {risk.get('rolling_total_hours', 24)}h", f"{total:g} {DOSE_UNIT}")

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=df["timestamp"],
        y=df["amount"],
        name=f"Dose ({DOSE_UNIT})",
        marker_color="#4FC3F7",
        width=1000 * 60 * 10,
        hovertext=df["note"].fillna(""),
    ))
    if interval_min > 0:
        for ts in df["timestamp"]:
            fig.add_vrect(
                x0=ts, x1=ts + pd.Timedelta(minutes=interval_min),
                fillcolor=RISK_COLORS["danger"], opacity=0.08, line_width=0,
            )
    mobile_chart(fig, yaxis_title=DOSE_UNIT)

    table = df.sort_values("timestamp", ascending=False)[["timestamp", "amount", "note"]]
    table["timestamp"] = table["timestamp"].dt.strftime("%d.%m. %H:%M")
    st.dataframe(table, hide_index=True, use_container_width=True)
