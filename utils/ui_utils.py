# ui_utils.py
import streamlit as st

SECTIONS = {
    "connection": "Connection",
    "metafields": "Metafield Definitions",
    "export": "Export Variants",
    "import": "Import Metafields",
    "templates": "Template Update",
}

MAX_LINES_PER_SECTION = 400


def setup_log_state():
    if "log_lines" not in st.session_state:
        st.session_state.log_lines = {k: [] for k in SECTIONS}
    if "summaries" not in st.session_state:
        st.session_state.summaries = {k: "⏳ Pending" for k in SECTIONS}
    if "current_section" not in st.session_state:
        st.session_state.current_section = "connection"
    if "placeholders" not in st.session_state:
        st.session_state.placeholders = {
            k: {"header": st.empty(), "body": st.empty()} for k in SECTIONS
        }


def _render_section(k: str):
    title = SECTIONS[k]
    summary = st.session_state.summaries[k]
    lines = st.session_state.log_lines[k]

    st.session_state.placeholders[k]["header"].markdown(f"**{title} — {summary}**")

    with st.session_state.placeholders[k]["body"].expander(title, expanded=False):
        if lines:
            st.code("\n".join(lines), language="text")
        else:
            st.caption("No logs yet…")


def render_all_sections():
    for _k in SECTIONS:
        _render_section(_k)


def set_section(section_key: str, summary: str | None = None):
    if section_key in SECTIONS:
        st.session_state.current_section = section_key
        if summary is not None:
            st.session_state.summaries[section_key] = summary
        _render_section(section_key)


def reset_ui_state():
    for k in SECTIONS:
        st.session_state.log_lines[k] = []
        st.session_state.summaries[k] = "⏳ Pending"
    st.session_state.current_section = "connection"
    st.session_state.placeholders = {
        k: {"header": st.empty(), "body": st.empty()} for k in SECTIONS
    }
    render_all_sections()


def make_push_with_status(status_placeholder):
    def push(msg: str):
        if not isinstance(msg, str):
            return

        lower = msg.lower().strip()

        if "connected to" in lower:
            set_section("connection", "✅ Connected")
        elif "fetching variant metafield definitions" in lower:
            set_section("metafields", "⏳ Fetching")
            status_placeholder.info("🏷️ Reading metafield definitions…")
        elif "metafield definitions," in lower and "kept" in lower:
            set_section("metafields", "✅ Loaded")
        elif lower.startswith("fetching product") or lower.startswith("searching"):
            set_section(st.session_state.get("workflow_section", "export"))
        elif lower.startswith("starting variant export"):
            set_section("export", "⏳ Exporting")
            status_placeholder.info("📤 Exporting variants…")
        elif lower.startswith("✅ export completed"):
            set_section("export", "✅ Exported")
        elif lower.startswith("starting variant import") or lower.startswith("processing batch"):
            set_section("import", "⏳ Importing")
            status_placeholder.info("📥 Applying metafield changes in batches…")
        elif lower.startswith("detailed results saved"):
            set_section("import", "✅ Done")
        elif lower.startswith("starting product template update"):
            set_section("templates", "⏳ Updating")
            status_placeholder.info("🧩 Updating product templates…")
        elif "template update completed" in lower or "this was a dry run" in lower:
            if st.session_state.current_section == "templates":
                set_section("templates", "✅ Done")

        if "[warn]" in lower or "[error]" in lower:
            k = st.session_state.current_section
            st.session_state.summaries[k] = "⚠️ Warnings"

        k = st.session_state.current_section
        st.session_state.log_lines[k].append(msg)
        if len(st.session_state.log_lines[k]) > MAX_LINES_PER_SECTION:
            st.session_state.log_lines[k] = st.session_state.log_lines[k][-MAX_LINES_PER_SECTION:]
        _render_section(k)
    return push
