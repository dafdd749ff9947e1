# frontend/Home.py
import os, datetime as dt
import requests, pandas as pd
import streamlit as st
import plotly.graph_objects as go
from dotenv import load_dotenv

load_dotenv()
st.set_page_config(page_title="Atelier — Tableau de bord", layout="wide")

DEFAULT_API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8011")
DEFAULT_TOKEN    = os.getenv("API_TOKEN", "")

def _normalize_token(raw: str) -> str:
    s = str(raw or "").strip().strip('"').strip("'")
    if s.lower().startswith("bearer "):
        s = s.split(" ", 1)[1].strip()
    return s

if "jwt" not in st.session_state:
    st.session_state["jwt"] = _normalize_token(DEFAULT_TOKEN)

st.title("Suivi financier des affaires")

# --------- Sidebar: settings / login / health ---------
with st.sidebar:
    st.header("Réglages")
    api_base = st.text_input("API", value=DEFAULT_API_BASE, key="api_base")

    st.divider()
    st.subheader("Connexion")
    colu, colp = st.columns(2)
    username = colu.text_input("Utilisateur", value="", key="user")
    password = colp.text_input("Mot de passe", value="", type="password", key="pass")
    c1, c2 = st.columns(2)
    do_login  = c1.button("Connexion", key="btn_login")
    do_logout = c2.button("Déconnexion", key="btn_logout")

    def _login(api_base: str, u: str, p: str) -> str:
        r = requests.post(f"{api_base.rstrip('/')}/auth/login", data={"username": u, "password": p}, timeout=15)
        r.raise_for_status()
        return r.json().get("access_token", "")

    if do_login:
        try:
            st.session_state["jwt"] = _normalize_token(_login(api_base, username, password))
            st.success("Connecté.")
        except requests.RequestException as e:
            st.error(f"Échec de connexion : {e}")

    if do_logout:
        st.session_state["jwt"] = ""
        st.info("Déconnecté.")

    st.divider()
    try:
        requests.get(f"{api_base.rstrip('/')}/health", timeout=5).raise_for_status()
        st.success("API : OK")
    except requests.RequestException as e:
        st.error(f"API injoignable : {e}")

API_BASE = (api_base or DEFAULT_API_BASE).strip().rstrip("/")
TOKEN    = _normalize_token(st.session_state.get("jwt", ""))
HDRS     = {"Authorization": f"Bearer {TOKEN}"} if TOKEN else {}

# ---------- request helpers ----------
class ApiError(Exception):
    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)

def get_json(url: str, hdrs: dict, params: dict | None = None):
    try:
        r = requests.get(url, headers=hdrs, params=params, timeout=15)
        r.raise_for_status()
        return r.json()
    except requests.Timeout:
        raise ApiError("Délai dépassé.")
    except requests.ConnectionError:
        raise ApiError("Connexion impossible : API arrêtée ou URL erronée.")
    except requests.HTTPError as e:
        resp = e.response
        try:
            msg = resp.json().get("error") or resp.text[:160]
        except ValueError:
            msg = resp.text[:160]
        raise ApiError(f"{resp.status_code} : {msg}", resp.status_code)

def unwrap(x):
    # ok-envelope or plain payload
    if isinstance(x, dict) and "ok" in x and "data" in x:
        return x["data"]
    return x

@st.cache_data(ttl=30)
def load_jobs(api_base: str, hdrs: dict):
    return unwrap(get_json(f"{api_base}/jobs", hdrs))

@st.cache_data(ttl=30)
def load_snapshot(api_base: str, hdrs: dict, job_id: int, as_of: str):
    return unwrap(get_json(f"{api_base}/finance/jobs/{job_id}/snapshot", hdrs, {"as_of": as_of}))

def _empty_fig(height=320, text="Aucune donnée"):
    fig = go.Figure()
    fig.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=height)
    fig.add_annotation(text=text, x=0.5, y=0.5, xref="paper", yref="paper", showarrow=False)
    return fig

def _eur(v) -> str:
    return f"{float(v or 0):,.2f} €".replace(",", " ")

# ------------------ main flow ------------------
if not TOKEN:
    st.info("Connectez-vous pour afficher les affaires.")
    st.stop()

try:
    jobs = load_jobs(API_BASE, HDRS)
except ApiError as e:
    st.error(str(e))
    st.stop()

if not jobs:
    st.info("Aucune affaire.")
    st.stop()

c1, c2, c3 = st.columns([3, 1, 1])
labels = {f"{j['Number']} — {j['Label']}": j["JobID"] for j in jobs}
choice = c1.selectbox("Affaire", list(labels))
as_of = c2.date_input("Au", dt.date.today())
if c3.button("Rafraîchir"):
    st.cache_data.clear()

try:
    snap = load_snapshot(API_BASE, HDRS, labels[choice], as_of.isoformat())
except ApiError as e:
    st.error(str(e))
    st.stop()

metrics = snap["metrics"]
k1, k2, k3, k4 = st.columns(4)
k1.metric("CA réalisé", _eur(metrics["revenue"]["realized"]), _eur(metrics["revenue"]["variance"]))
k2.metric("Achats réceptionnés", _eur(metrics["purchases"]["realized"]), _eur(metrics["purchases"]["variance"]), delta_color="inverse")
k3.metric("Frais généraux", _eur(metrics["overhead"]["realized"]), _eur(metrics["overhead"]["variance"]), delta_color="inverse")
k4.metric("Marge", _eur(metrics["margin"]["realized"]), _eur(metrics["margin"]["variance"]))

st.subheader("Objectif / réalisé")
df = pd.DataFrame([
    {"Indicateur": name, "Objectif": m["target"], "Réalisé": m["realized"], "Écart": m["variance"]}
    for name, m in metrics.items()
])
st.dataframe(df, use_container_width=True, hide_index=True)

left, right = st.columns(2)
for box, side, title in ((left, "target", "Répartition objectif"), (right, "realized", "Répartition réalisée")):
    with box:
        st.subheader(title)
        parts = {k: v for k, v in snap["breakdown"][side].items() if v}
        if not parts:
            st.plotly_chart(_empty_fig(), use_container_width=True)
            continue
        fig = go.Figure(go.Pie(labels=list(parts), values=list(parts.values()), hole=0.4))
        fig.update_layout(margin=dict(l=10, r=10, t=30, b=10), height=320)
        st.plotly_chart(fig, use_container_width=True)

st.subheader("Achats par catégorie")
cats = pd.DataFrame(snap["categories"])
if cats.empty:
    st.plotly_chart(_empty_fig(text="Aucun achat"), use_container_width=True)
else:
    fig = go.Figure()
    for col, name in (("allocated", "Budget"), ("ordered", "Commandé"), ("received", "Réceptionné")):
        fig.add_bar(x=cats["label"], y=cats[col], name=name)
    fig.update_layout(barmode="group", margin=dict(l=10, r=10, t=30, b=10), height=360)
    st.plotly_chart(fig, use_container_width=True)
