# frontend/pages/overhead.py
import os, datetime as dt
import requests
import pandas as pd
import streamlit as st
import plotly.graph_objects as go
from dotenv import load_dotenv

load_dotenv()
st.set_page_config(page_title="Frais généraux", layout="wide")

api_base = (st.session_state.get("api_base") or os.getenv("API_BASE", "http://127.0.0.1:8011")).rstrip("/")
token = st.session_state.get("jwt", "")
HDRS = {"Authorization": f"Bearer {token}"} if token else {}

def get_data(path: str, params: dict | None = None):
    r = requests.get(f"{api_base}{path}", headers=HDRS, params=params, timeout=20)
    r.raise_for_status()
    body = r.json()
    return body["data"] if isinstance(body, dict) and "data" in body else body

st.title("🏭 Frais généraux")
if not token:
    st.info("Connectez-vous depuis l'accueil.")
    st.stop()

# ---------- stats ----------
try:
    stats = get_data("/overhead/stats")
    k1, k2, k3 = st.columns(3)
    k1.metric("Postes actifs", stats["active"], f"{stats['inactive']} inactifs", delta_color="off")
    k2.metric("Mensuel HT", f"{stats['monthlyTotalHT']:,.2f} €")
    k3.metric("Mensuel TTC", f"{stats['monthlyTotalTTC']:,.2f} €")
except requests.RequestException as e:
    st.error(f"Statistiques indisponibles : {e}")

# ---------- catalog ----------
st.subheader("Catalogue")
show_all = st.toggle("Inclure les postes inactifs", value=False)
try:
    items = pd.DataFrame(get_data("/overhead/items", {"include_inactive": show_all}))
    if items.empty:
        st.info("Catalogue vide.")
    else:
        st.dataframe(
            items[["Label", "Category", "MonthlyAmountHT", "MonthlyAmountTTC", "EndDate", "IsActive"]],
            use_container_width=True, hide_index=True,
        )
except requests.RequestException as e:
    st.error(f"Catalogue indisponible : {e}")

# ---------- calculator ----------
st.subheader("Calcul sur une période")
c1, c2, c3, c4 = st.columns(4)
start = c1.date_input("Du", dt.date.today().replace(day=1))
end = c2.date_input("Au", dt.date.today())
hours = c3.number_input("Heures / jour", min_value=0.5, max_value=24.0, value=7.0, step=0.5)
week = c4.selectbox("Jours / semaine", [5, 6, 7])

if st.button("Calculer"):
    try:
        period = get_data("/overhead/period", {
            "start": start.isoformat(), "end": end.isoformat(), "hours_per_day": hours, "work_week_days": week,
        })
        m1, m2, m3 = st.columns(3)
        m1.metric("Jours ouvrés", period["workdays"])
        m2.metric("Heures", period["total_hours"])
        m3.metric("Coût HT", f"{period['period_total_ht']:,.2f} €")
        df = pd.DataFrame(period["breakdown"])
        if not df.empty:
            fig = go.Figure(go.Bar(x=df["label"], y=df["period_ht"]))
            fig.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=360)
            st.plotly_chart(fig, use_container_width=True)
    except requests.HTTPError as e:
        st.error(f"{e.response.status_code} — {e.response.text[:180]}")
    except requests.RequestException as e:
        st.error(f"Erreur réseau : {e}")
