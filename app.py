"""
app.py — Streamlit Entry Point

Insight Desk: Upload CSV → Ask questions → Get charts and reports

UI only handles presentation and user interaction. Ingestion lives in
tools/, conversation state and the analysis graph in agent/.
"""

import asyncio
import logging

import pandas as pd
import streamlit as st

from agent.conversation import ConversationManager
from agent.graph import analyze
from agent.models import Dataset, Exchange
from config.llm_config import get_llm_status
from config.logging_config import configure_logging
from config.settings import get_settings
from tools.charts import build_chart_figure
from tools.csv_ingest import format_cell, load_dataset
from tools.exports import (
    MIME_TYPES,
    build_pdf_report,
    build_text_report,
    chart_to_png,
    dataset_to_csv,
    export_filename,
    result_to_json,
)
from tools.profiling import profile_dataset
from tools.validators import sanitize_html_text, sanitize_query, validate_file_extension


settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("insight_desk.app")


# =============================================================================
# PAGE CONFIG
# =============================================================================

st.set_page_config(
    page_title=f"{settings.app_name} — Conversational Data Insights",
    page_icon="✨",
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# SESSION STATE INITIALIZATION
# =============================================================================

TABS = {
    "dashboard": "📊 Dashboard",
    "dataset": "🗂️ Data Table",
    "chat": "💬 AI Chat",
}


def init_session_state():
    """Initialize session state with default values."""
    defaults = {
        "active_tab": "dashboard",
        "dataset": None,
        "upload_key": None,  # (name, size) of the last processed upload
        "upload_error": None,
        "pending_query": None,  # Set by starter / follow-up buttons
        "export_cache": {},  # (kind, exchange_id) → bytes
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value
    if "conversation" not in st.session_state:
        st.session_state.conversation = ConversationManager(analyze)


init_session_state()


# =============================================================================
# CUSTOM CSS
# =============================================================================

st.markdown("""
<style>
    /* Cards - Dark/Gray Theme */
    .info-card {
        background: linear-gradient(135deg, #1e293b 0%, #334155 100%);
        border-radius: 16px;
        padding: 1.25rem 1.5rem;
        box-shadow: 0 4px 6px rgba(0,0,0,0.15), 0 2px 4px rgba(0,0,0,0.1);
        border: 1px solid #475569;
        margin-bottom: 1rem;
    }
    .info-card .card-title {
        font-size: 1.15rem;
        font-weight: 700;
        color: #f1f5f9;
        margin-bottom: 0.35rem;
    }
    .info-card .card-body {
        color: #94a3b8;
        font-size: 0.9rem;
        line-height: 1.5;
    }

    /* Summary headline under assistant replies */
    .summary-headline {
        font-size: 1.05rem;
        font-weight: 700;
        color: #1e293b;
        padding-left: 0.75rem;
        border-left: 3px solid #3b82f6;
        margin: 0.75rem 0;
    }

    /* Header */
    .main-header {
        text-align: center;
        padding: 1.5rem 0 2rem 0;
    }
    .main-header h1 {
        background: linear-gradient(135deg, #3b82f6 0%, #8b5cf6 100%);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        background-clip: text;
        font-size: 2.5rem;
        font-weight: 700;
        margin-bottom: 0.5rem;
    }
    .main-header p {
        color: #64748b;
        font-size: 1.1rem;
    }

    /* Hide Streamlit branding */
    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}

    /* Sidebar Styling */
    [data-testid="stSidebar"] {
        background: linear-gradient(180deg, #0f172a 0%, #1e293b 100%);
    }
    [data-testid="stSidebar"] [data-testid="stMarkdownContainer"] p {
        color: #e2e8f0;
    }
    .sidebar-title {
        font-size: 1.5rem;
        font-weight: 700;
        color: #f1f5f9;
        margin-bottom: 0.5rem;
        display: flex;
        align-items: center;
        gap: 0.5rem;
    }
    .sidebar-subtitle {
        font-size: 0.85rem;
        color: #64748b;
        margin-bottom: 2rem;
    }
    .nav-section-title {
        font-size: 0.7rem;
        font-weight: 600;
        color: #64748b;
        text-transform: uppercase;
        letter-spacing: 0.1em;
        margin-bottom: 0.75rem;
    }
</style>
""", unsafe_allow_html=True)


# =============================================================================
# STATE HELPERS
# =============================================================================

def conversation() -> ConversationManager:
    return st.session_state.conversation


def set_tab(tab: str):
    st.session_state.active_tab = tab


def reset_conversation():
    """Clear chat history, chart handles and prepared exports."""
    conversation().reset()
    st.session_state.export_cache = {}
    st.session_state.pending_query = None


def remove_dataset():
    st.session_state.dataset = None
    st.session_state.upload_key = None
    st.session_state.upload_error = None
    reset_conversation()
    set_tab("dashboard")


@st.cache_data(ttl=60, show_spinner=False)
def cached_llm_status() -> dict:
    return get_llm_status()


# =============================================================================
# SIDEBAR NAVIGATION
# =============================================================================

def render_sidebar():
    """Render the sidebar navigation."""
    with st.sidebar:
        st.markdown(f"""
        <div class="sidebar-title">
            <span>✨</span> {settings.app_name}
        </div>
        <div class="sidebar-subtitle">Conversational data insights</div>
        """, unsafe_allow_html=True)

        st.markdown('<div class="nav-section-title">Navigation</div>', unsafe_allow_html=True)
        for tab, label in TABS.items():
            st.button(
                label,
                key=f"nav_{tab}",
                type="primary" if st.session_state.active_tab == tab else "secondary",
                use_container_width=True,
                on_click=set_tab,
                args=(tab,),
            )

        st.markdown("---")
        st.markdown('<div class="nav-section-title">Current Dataset</div>', unsafe_allow_html=True)
        dataset: Dataset | None = st.session_state.dataset
        if dataset:
            st.markdown(f"""
            <div style="background: rgba(59, 130, 246, 0.15); padding: 0.75rem; border-radius: 8px; margin-bottom: 1rem;">
                <div style="color: #60a5fa; font-weight: 600; font-size: 0.85rem;">{sanitize_html_text(dataset.name)}</div>
                <div style="color: #94a3b8; font-size: 0.8rem;">{dataset.row_count:,} rows · {dataset.column_count} columns</div>
            </div>
            """, unsafe_allow_html=True)
        else:
            st.markdown("""
            <div style="color: #94a3b8; font-size: 0.9rem; text-align: center; padding: 1rem;">
                📂 Upload a CSV on the Dashboard to get started
            </div>
            """, unsafe_allow_html=True)

        # LLM Status indicator
        st.markdown("---")
        status = cached_llm_status()
        labels = {
            "gemini": "🟢 Gemini (Cloud)",
            "groq": "🟢 Groq (Cloud)",
            "ollama": "🟡 Ollama (Local)",
        }
        llm_label = labels.get(status["active_provider"], "⚪ Not configured")
        st.markdown(
            f'<div style="color: #64748b; font-size: 0.75rem; text-align: center;">LLM: {llm_label}</div>',
            unsafe_allow_html=True,
        )


# =============================================================================
# HEADER
# =============================================================================

def render_header():
    """Breadcrumb plus dataset download."""
    dataset: Dataset | None = st.session_state.dataset
    col1, col2 = st.columns([4, 1])
    with col1:
        label = TABS[st.session_state.active_tab].split(" ", 1)[1]
        st.caption(f"{label} › **{dataset.name if dataset else 'Ready for Analysis'}**")
    with col2:
        if dataset:
            render_csv_download(dataset, key="header_csv")


def render_csv_download(dataset: Dataset, key: str, label: str = "⬇️ Download CSV"):
    st.download_button(
        label,
        data=dataset_to_csv(dataset),
        file_name=export_filename("csv", dataset.basename),
        mime=MIME_TYPES["csv"],
        key=key,
        use_container_width=True,
    )


# =============================================================================
# DASHBOARD VIEW
# =============================================================================

def handle_upload(uploaded_file) -> None:
    """
    Ingest a newly selected file.

    Invalid input leaves the current dataset untouched and records an
    error for display.
    """
    upload_key = (uploaded_file.name, uploaded_file.size)
    if st.session_state.upload_key == upload_key:
        return
    st.session_state.upload_key = upload_key

    is_valid, error = validate_file_extension(uploaded_file.name)
    if is_valid:
        dataset, error = load_dataset(uploaded_file, uploaded_file.name)
    if error:
        logger.info("Rejected upload %s: %s", uploaded_file.name, error)
        st.session_state.upload_error = error
        return

    st.session_state.upload_error = None
    st.session_state.dataset = dataset
    set_tab("dataset")
    st.rerun()


def render_dashboard():
    """Landing view: upload, or entry points once a dataset is loaded."""
    st.markdown(f"""
    <div class="main-header">
        <h1>✨ {settings.app_name}</h1>
        <p>{settings.tagline}</p>
    </div>
    """, unsafe_allow_html=True)

    dataset: Dataset | None = st.session_state.dataset

    if dataset is None:
        uploaded_file = st.file_uploader(
            "📂 Drop your CSV here or click to browse",
            type=[ext.lstrip(".") for ext in settings.allowed_extensions],
            help=f"Supported: CSV files up to {settings.max_file_size_mb}MB",
            key="file_uploader",
        )
        if uploaded_file is not None:
            handle_upload(uploaded_file)
        if st.session_state.upload_error:
            st.error(
                f"**Invalid CSV**: {st.session_state.upload_error} "
                "Please ensure it's a valid CSV with a header row."
            )
        return

    col1, col2 = st.columns(2)
    with col1:
        st.markdown(f"""
        <div class="info-card">
            <div class="card-title">🗂️ Explore Data</div>
            <div class="card-body">View all {dataset.row_count:,} records in a clean tabular format.</div>
        </div>
        """, unsafe_allow_html=True)
        st.button("Open Data Table", on_click=set_tab, args=("dataset",), use_container_width=True)
    with col2:
        st.markdown("""
        <div class="info-card">
            <div class="card-title">💬 Ask the Assistant</div>
            <div class="card-body">Generate charts and analytical reports with natural language questions.</div>
        </div>
        """, unsafe_allow_html=True)
        st.button("Open AI Chat", on_click=set_tab, args=("chat",), type="primary", use_container_width=True)


# =============================================================================
# DATA TABLE VIEW
# =============================================================================

def table_frame(dataset: Dataset, limit: int) -> pd.DataFrame:
    """String view of the first rows; absent cells show as '-'."""
    columns = list(dict.fromkeys(dataset.columns))
    records = [
        [format_cell(row[col]) if col in row and row[col] != "" else "-" for col in columns]
        for row in dataset.preview(limit)
    ]
    return pd.DataFrame(records, columns=columns)


def render_data_table():
    """Render the loaded dataset."""
    dataset: Dataset | None = st.session_state.dataset
    if dataset is None:
        render_no_dataset()
        return

    col1, col2, col3 = st.columns([4, 1, 1])
    with col1:
        st.subheader(dataset.name)
        st.caption(f"{dataset.column_count} Columns · {dataset.row_count:,} total rows")
    with col2:
        render_csv_download(dataset, key="table_csv", label="⬇️ Download")
    with col3:
        st.button("🗑️ Remove", on_click=remove_dataset, use_container_width=True)

    st.dataframe(
        table_frame(dataset, settings.preview_rows),
        use_container_width=True,
        hide_index=True,
    )
    if dataset.row_count > settings.preview_rows:
        st.caption(f"Showing first {settings.preview_rows} of {dataset.row_count:,} rows.")

    with st.expander("🔎 Column profile"):
        profile = profile_dataset(dataset)
        summary = profile["type_summary"]
        st.caption(
            f"{summary['number']} numeric · {summary['string']} text · "
            f"{summary['mixed']} mixed · {summary['empty']} empty"
        )
        st.dataframe(
            pd.DataFrame([
                {
                    "Column": c["name"],
                    "Type": c["value_type"],
                    "Non-empty": c["non_empty"],
                    "Unique": c["unique_count"],
                    "Min": c.get("min"),
                    "Max": c.get("max"),
                    "Mean": c.get("mean"),
                }
                for c in profile["columns"]
            ]),
            use_container_width=True,
            hide_index=True,
        )


def render_no_dataset():
    st.info("**No Dataset Active** — upload a file to start asking questions and generating visualizations.")
    st.button("Go to Dashboard", on_click=set_tab, args=("dashboard",), type="primary")


# =============================================================================
# CHAT VIEW
# =============================================================================

def queue_query(query: str):
    st.session_state.pending_query = query


def run_query(query: str, dataset: Dataset):
    """Submit one question and wait for the reply."""
    clean = sanitize_query(query)
    if clean is None:
        return
    with st.spinner("Analyzing your data..."):
        accepted = asyncio.run(conversation().submit_query(clean, dataset))
    if not accepted:
        st.toast("A question is already being analyzed.")


def prepare_export(kind: str, exchange: Exchange) -> bytes | None:
    """
    Build a PNG or PDF payload once and cache it.

    Rendering failures are logged and reported with a toast; nothing is
    raised to the page.
    """
    cache_key = (kind, exchange.id)
    cache = st.session_state.export_cache
    if cache_key in cache:
        return cache[cache_key]

    figure = conversation().chart_for(exchange.id)
    try:
        with st.spinner("Generating your export..."):
            if kind == "png":
                if figure is None:
                    return None
                payload = chart_to_png(figure)
            else:
                chart_png = chart_to_png(figure, scale=1.5) if figure is not None else None
                payload = build_pdf_report(exchange, chart_png=chart_png)
    except Exception:
        logger.exception("%s generation failed for %s", kind.upper(), exchange.id)
        st.toast(f"{kind.upper()} export failed. See logs for details.")
        return None

    cache[cache_key] = payload
    return payload


def render_export_menu(exchange: Exchange, dataset: Dataset):
    """Per-reply export options."""
    result = exchange.response
    query = conversation().query_for(exchange.id)

    with st.popover("⬇️ Export Report"):
        for kind, label in (("pdf", "📄 Full PDF Report"), ("png", "🖼️ Export Chart as PNG")):
            if kind == "png" and not result.has_chart:
                continue
            cache_key = (kind, exchange.id)
            if cache_key in st.session_state.export_cache:
                st.download_button(
                    label,
                    data=st.session_state.export_cache[cache_key],
                    file_name=export_filename(kind, exchange.id),
                    mime=MIME_TYPES[kind],
                    key=f"dl_{kind}_{exchange.id}",
                    use_container_width=True,
                )
            elif st.button(f"Prepare {label}", key=f"prep_{kind}_{exchange.id}", use_container_width=True):
                if prepare_export(kind, exchange) is not None:
                    st.rerun()

        render_csv_download(dataset, key=f"dl_csv_{exchange.id}", label="📗 Processed CSV")
        st.download_button(
            "🧾 Raw Response JSON",
            data=result_to_json(result),
            file_name=export_filename("json", exchange.id),
            mime=MIME_TYPES["json"],
            key=f"dl_json_{exchange.id}",
            use_container_width=True,
        )
        st.download_button(
            "📝 Summary Text",
            data=build_text_report(query, exchange),
            file_name=export_filename("txt", exchange.id),
            mime=MIME_TYPES["txt"],
            key=f"dl_txt_{exchange.id}",
            use_container_width=True,
        )


def render_exchange(exchange: Exchange, dataset: Dataset):
    """Render one chat message."""
    with st.chat_message(exchange.role):
        if exchange.role == "assistant" and exchange.response is not None:
            render_export_menu(exchange, dataset)
        st.markdown(exchange.content)

        result = exchange.response
        if result is None:
            return

        st.markdown(f'<div class="summary-headline">{sanitize_html_text(result.summary)}</div>', unsafe_allow_html=True)

        manager = conversation()
        figure = manager.chart_for(exchange.id)
        if figure is None and result.has_chart:
            figure = build_chart_figure(result)
            manager.register_chart(exchange.id, figure)
        if figure is not None:
            st.plotly_chart(figure, use_container_width=True, key=f"chart_{exchange.id}")

        if result.suggestion:
            st.caption("RECOMMENDED FOLLOW-UP")
            st.button(
                f'"{result.suggestion}"',
                key=f"suggest_{exchange.id}",
                on_click=queue_query,
                args=(result.suggestion,),
                disabled=manager.in_flight,
            )


def render_chat():
    """Conversation with the analysis assistant."""
    dataset: Dataset | None = st.session_state.dataset
    if dataset is None:
        render_no_dataset()
        return

    manager = conversation()

    col1, col2 = st.columns([4, 1])
    with col1:
        st.markdown(f"🟢 **Analyzing: {dataset.name}**")
    with col2:
        st.button("✖ Reset Context", on_click=reset_conversation, use_container_width=True)

    if len(manager) == 0:
        st.markdown("### Consult the assistant")
        st.caption("Ask me to summarize trends, compare columns, or visualize relationships in your data.")
        cols = st.columns(2)
        for i, question in enumerate(settings.starter_questions):
            with cols[i % 2]:
                st.button(
                    question,
                    key=f"starter_{i}",
                    on_click=queue_query,
                    args=(question,),
                    use_container_width=True,
                )

    for exchange in manager.exchanges:
        render_exchange(exchange, dataset)

    typed = st.chat_input("Ask anything about your data...", disabled=manager.in_flight)
    query = typed or st.session_state.pending_query
    st.session_state.pending_query = None
    if query:
        run_query(query, dataset)
        st.rerun()


# =============================================================================
# MAIN APP FLOW
# =============================================================================

VIEWS = {
    "dashboard": render_dashboard,
    "dataset": render_data_table,
    "chat": render_chat,
}


def main():
    """Main application flow."""
    render_sidebar()
    render_header()
    VIEWS[st.session_state.active_tab]()

    st.markdown("---")
    st.caption(f"✨ {settings.app_name} — Powered by LangGraph • Built with Streamlit")


if __name__ == "__main__":
    main()
