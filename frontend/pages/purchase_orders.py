# frontend/pages/purchase_orders.py
import os
import requests
import pandas as pd
import streamlit as st
from dotenv import load_dotenv

load_dotenv()
st.set_page_config(page_title="Bons de commande", layout="wide")

# ---------- Helpers ----------
def get_api_base_and_token():
    api_base = st.session_state.get("api_base") or os.getenv("API_BASE", "http://127.0.0.1:8011")
    token = st.session_state.get("jwt", "")
    hdrs = {"Authorization": f"Bearer {token}"} if token else {}
    return api_base.rstrip("/"), token, hdrs

def _call(method: str, url: str, hdrs: dict, **kw):
    r = requests.request(method, url, headers=hdrs, timeout=20, **kw)
    r.raise_for_status()
    return r.json()

def _error(e: requests.HTTPError) -> str:
    try:
        return f"{e.response.status_code} — {e.response.json().get('error')}"
    except ValueError:
        return f"{e.response.status_code} — {e.response.text[:180]}"

def to_list_like(x):
    if isinstance(x, list):
        return x
    if isinstance(x, dict) and isinstance(x.get("data"), list):
        return x["data"]
    return []

def toast(msg: str, icon: str = "✅"):
    st.toast(msg, icon=icon)

API_BASE, TOKEN, HDRS = get_api_base_and_token()

st.title("🧾 Bons de commande")
with st.sidebar:
    st.info(f"API : {API_BASE}")
    st.write("JWT :", "✅" if TOKEN else "❌")

if not TOKEN:
    st.info("Connectez-vous depuis l'accueil.")
    st.stop()

try:
    jobs = to_list_like(_call("GET", f"{API_BASE}/jobs", HDRS))
    categories = to_list_like(_call("GET", f"{API_BASE}/purchase-orders/categories", HDRS))
except requests.RequestException as e:
    st.error(f"Chargement impossible : {e}")
    st.stop()

job_ids = {f"{j['Number']} — {j['Label']}": j["JobID"] for j in jobs}
cat_ids = {c["Label"]: c["CategoryID"] for c in categories}

# ---------- Create ----------
st.subheader("🆕 Nouveau bon de commande")
with st.form("create_po"):
    c = st.columns([2, 2, 2, 1, 1])
    job_label = c[0].selectbox("Affaire", list(job_ids) or ["—"])
    cat_label = c[1].selectbox("Catégorie", list(cat_ids) or ["—"])
    supplier = c[2].text_input("Fournisseur")
    amount = c[3].number_input("Montant HT", min_value=0.0, step=10.0, format="%.2f")
    delivery = c[4].date_input("Livraison souhaitée", value=None)
    comment = st.text_input("Commentaire")
    submitted = st.form_submit_button("Créer")

if submitted:
    payload = {
        "JobID": job_ids.get(job_label),
        "CategoryID": cat_ids.get(cat_label),
        "SupplierName": supplier,
        "AmountHT": f"{amount:.2f}",
        "RequestedDeliveryDate": delivery.isoformat() if delivery else None,
        "Comment": comment or None,
    }
    try:
        po = _call("POST", f"{API_BASE}/purchase-orders", HDRS, json=payload)
        toast(f"Bon {po['Number']} créé")
        st.session_state["last_po"] = po["OrderID"]
    except requests.HTTPError as e:
        st.error(f"Création refusée : {_error(e)}")
    except requests.RequestException as e:
        st.error(f"Erreur réseau : {e}")

# ---------- List ----------
st.subheader("📋 Liste")
f1, f2 = st.columns(2)
status_f = f1.selectbox("Statut", ["", "PENDING", "VALIDATED", "RECEIVED", "CANCELLED"])
job_f = f2.selectbox("Affaire ", [""] + list(job_ids))
params = {"status_s": status_f or None, "job_id": job_ids.get(job_f)}

colL, colR = st.columns([3, 2])
with colL:
    try:
        rows = to_list_like(_call("GET", f"{API_BASE}/purchase-orders", HDRS, params=params))
        df = pd.DataFrame(rows)
        if df.empty:
            st.info("Aucun bon de commande.")
        else:
            cols = ["OrderID", "Number", "SupplierName", "AmountHT", "OrderDate", "RequestedDeliveryDate",
                    "ReceptionDate", "StatusLabel", "IsLate"]
            st.dataframe(df[cols], use_container_width=True, height=360, hide_index=True)
    except requests.RequestException as e:
        st.error(f"Liste indisponible : {e}")

with colR:
    st.write("**Actions**")
    po_id = st.number_input("OrderID", min_value=1, step=1, value=int(st.session_state.get("last_po") or 1))
    b1, b2, b3 = st.columns(3)
    reception = st.date_input("Date de réception", value=None)
    credential = st.text_input("Code de suppression", type="password")
    b4 = st.button("Supprimer")

    def _action(label: str, method: str, path: str, **kw):
        try:
            _call(method, f"{API_BASE}/purchase-orders/{int(po_id)}{path}", HDRS, **kw)
            toast(label)
        except requests.HTTPError as e:
            st.error(_error(e))
        except requests.RequestException as e:
            st.error(f"Erreur réseau : {e}")

    if b1.button("Valider"):
        _action("Validé", "POST", "/validate")
    if b2.button("Annuler"):
        _action("Annulé", "POST", "/cancel")
    if b3.button("Réceptionner"):
        body = {"ReceptionDate": reception.isoformat()} if reception else None
        _action("Réceptionné", "POST", "/receive", json=body)
    if b4:
        extra = {"X-Delete-Credential": credential} if credential else {}
        try:
            _call("DELETE", f"{API_BASE}/purchase-orders/{int(po_id)}", {**HDRS, **extra})
            toast("Supprimé")
        except requests.HTTPError as e:
            st.error(_error(e))

    upload = st.file_uploader("Pièce jointe", type=["pdf", "png", "jpg", "jpeg"])
    if upload is not None and st.button("Joindre"):
        _action("Pièce jointe enregistrée", "POST", "/attachment",
                files={"file": (upload.name, upload.getvalue(), upload.type)})
    if st.button("Retirer la pièce jointe"):
        _action("Pièce jointe retirée", "DELETE", "/attachment")
