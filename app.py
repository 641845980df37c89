# app.py
import json
import os
import tempfile

import requests
import streamlit as st

from constants import AVAILABLE_TEMPLATES, BATCH_SIZE_DEFAULT, EXPORT_FILENAME_DEFAULT, EXPORT_LIMIT_DEFAULT
from export_variants import run_export
from import_variants import run_import
from store_profiles import load_store_profiles
from update_product_templates import run_template_update
from utils.ui_utils import setup_log_state, reset_ui_state, make_push_with_status, render_all_sections

st.set_page_config(page_title="Shopify Variant Metafields", page_icon="🏷️", layout="centered")
st.title("🏷️ Shopify Variant Metafields")

STORE_PROFILES = load_store_profiles()
WORKFLOW_SECTIONS = {"Export": "export", "Import": "import", "Templates": "templates"}

# ---------------- Sidebar / Controls ----------------
with st.sidebar:
    st.header("Run options")
    store = st.selectbox("Store", list(STORE_PROFILES.keys()))
    workflow = st.radio("Workflow", list(WORKFLOW_SECTIONS.keys()))
    dry_run = st.checkbox("Dry run", value=True)

    if workflow == "Export":
        product_id = st.text_input("Product ID (optional)", "")
        search = st.text_input("Title search (optional)", "")
        limit = st.number_input("Product limit", min_value=1, max_value=5000, value=EXPORT_LIMIT_DEFAULT, step=1)
        include_all = st.checkbox("Include app metafield namespaces", value=False)
    elif workflow == "Import":
        batch_size = st.number_input("Batch size", min_value=1, max_value=250, value=BATCH_SIZE_DEFAULT, step=1)
        csv_upload = st.file_uploader("Edited variants CSV", type=["csv"])
    else:
        template = st.selectbox("Template", AVAILABLE_TEMPLATES)
        filter_tag = st.text_input("Tag (optional)", "")
        filter_vendor = st.text_input("Vendor (optional)", "")
        filter_type = st.text_input("Product type (optional)", "")
        filter_collection = st.text_input("Collection ID (optional)", "")
        template_search = st.text_input("Title/handle search (optional)", "")
        product_ids_in = st.text_input("Product IDs (comma-separated, optional)", "")
        confirmed = st.checkbox("I confirm the template change", value=False)

run_btn = st.button("Run", type="primary")

# ---------------- Setup UI + Logging ----------------
setup_log_state()
render_all_sections()
status_placeholder = st.empty()
push = make_push_with_status(status_placeholder)

# ---------------- Run Workflow ----------------
if run_btn:
    reset_ui_state()
    st.session_state["workflow_section"] = WORKFLOW_SECTIONS[workflow]
    status_placeholder.info("⏳ Starting…")
    config = STORE_PROFILES[store]

    with st.spinner("Working…"):
        try:
            if workflow == "Export":
                out_dir = tempfile.mkdtemp()
                report_df, summary = run_export(
                    config=config,
                    output=EXPORT_FILENAME_DEFAULT,
                    output_dir=out_dir,
                    product_id=product_id or None,
                    search=search or None,
                    limit=int(limit),
                    include_all=include_all,
                    progress=push,
                )
                with open(summary["output_path"], "rb") as f:
                    download = ("Download export CSV", f.read(), EXPORT_FILENAME_DEFAULT, "text/csv")
            elif workflow == "Import":
                if csv_upload is None:
                    st.error("Upload the edited CSV first.")
                    st.stop()
                tmp_dir = tempfile.mkdtemp()
                tmp_path = os.path.join(tmp_dir, csv_upload.name)
                with open(tmp_path, "wb") as tmp:
                    tmp.write(csv_upload.read())
                report_df, summary = run_import(
                    config=config,
                    input_path=tmp_path,
                    dry_run=dry_run,
                    batch_size=int(batch_size),
                    progress=push,
                )
                with open(summary["results_path"], "rb") as f:
                    download = ("Download results JSON", f.read(),
                                os.path.basename(summary["results_path"]), "application/json")
            else:
                ids = [s.strip() for s in product_ids_in.split(",") if s.strip()] if product_ids_in else None
                summary = run_template_update(
                    config=config,
                    template=template,
                    tag=filter_tag or None,
                    vendor=filter_vendor or None,
                    product_type=filter_type or None,
                    collection=filter_collection or None,
                    search=template_search or None,
                    product_ids=ids,
                    dry_run=dry_run,
                    force=confirmed,
                    confirm=lambda _msg: False,
                    progress=push,
                )
                report_df = None
                download = ("Download summary JSON", json.dumps(summary, indent=2).encode("utf-8"),
                            "template-update-summary.json", "application/json")
        except (FileNotFoundError, ValueError, RuntimeError, requests.RequestException) as e:
            st.error(str(e))
            st.stop()

    status_placeholder.success("✅ Run complete.")

    st.subheader("Summary")
    st.json(summary)
    if summary.get("cancelled"):
        st.warning("Tick the confirmation box (or use dry run) to apply template changes.")

    if report_df is not None and not report_df.empty:
        st.subheader("Report preview")
        st.dataframe(report_df.head(200))

    label, data, file_name, mime = download
    st.download_button(label, data=data, file_name=file_name, mime=mime)
