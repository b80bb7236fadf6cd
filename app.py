import logging
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import streamlit as st

from plotquery import config
from plotquery.autocomplete import apply_suggestion, suggest_at
from plotquery.charts import render_chart
from plotquery.errors import DatasetLoadError, EngineNotReady, PlotQueryError
from plotquery.export import figure_png, figure_svg, python_script, relation_csv
from plotquery.session import Session

# ================== CONFIG ==================
st.set_page_config(page_title="PlotQuery: SQL over Our World in Data", page_icon="🌍", layout="wide")
config.configure_logging()
logger = logging.getLogger("plotquery.app")


# ================== SESSION ==================
def get_session() -> Session:
    if "session" not in st.session_state:
        session = Session()
        try:
            session.start()
        except EngineNotReady as e:
            st.error(str(e))
            logger.exception("SQL engine init failed")
        st.session_state["session"] = session
        st.session_state.setdefault("sql", "")
    return st.session_state["session"]


def _apply(suggestion: str):
    text = st.session_state.get("sql", "")
    st.session_state["sql"], _ = apply_suggestion(text, len(text), suggestion)


session = get_session()

# ================== SIDEBAR ==================
with st.sidebar:
    st.header("📦 Data Source")
    use_engine = st.toggle("Use embedded SQL engine (DuckDB)", value=session.uses_engine,
                           help="Off: a small built-in interpreter (SELECT/WHERE =/GROUP BY/ORDER BY/LIMIT).")
    try:
        session.set_engine_mode("duckdb" if use_engine else "interpreter")
    except PlotQueryError as e:
        st.error(str(e))

    st.divider()
    st.header("🌍 Datasets")
    for ds in config.DATASETS:
        selected = session.dataset is not None and session.dataset.id == ds.id
        label = ("✓ " if selected else "") + ds.name
        if st.button(label, key=f"ds_{ds.id}", help=ds.description, use_container_width=True):
            with st.spinner(f"Loading {ds.name}…"):
                try:
                    if session.load_dataset(ds):
                        st.session_state["sql"] = session.query
                        st.success(f"Loaded {session.row_count:,} rows with {len(session.columns)} columns")
                except (DatasetLoadError, EngineNotReady) as e:
                    st.error(f"Failed to load dataset: {e}")
        st.caption(ds.description)

# ================== MAIN UI ==================
st.title("🌍 PlotQuery: Our World in Data SQL Analytics")
st.caption("Query global datasets with SQL • Automatic charts • Export-ready results")

if session.dataset is None:
    st.info("Pick a dataset in the sidebar to start querying.")
    st.stop()

st.markdown(f"### SQL Query Editor · `{session.dataset.table_name}`")
st.caption(f"{len(session.columns)} columns available")
st.text_area("SQL", key="sql", height=160, label_visibility="collapsed",
             placeholder="Enter your SQL query...")

suggestions = suggest_at(st.session_state.get("sql", ""), None, session.columns)
if suggestions:
    cols = st.columns(min(len(suggestions), 5))
    for i, sug in enumerate(suggestions):
        cols[i % len(cols)].button(sug, key=f"sug_{i}", on_click=_apply, args=(sug,))

if st.button("▶ Run Query", type="primary"):
    with st.spinner("Executing query…"):
        try:
            session.run_query(st.session_state.get("sql", ""))
        except PlotQueryError as e:
            st.error(f"Query error: {e}")

result = session.result
if result is not None:
    st.success(f"✓ Query returned {len(result):,} rows")

    if session.chart is not None:
        st.markdown("### 📊 Visualization")
        fig = render_chart(session.chart)
        png, svg = figure_png(fig), figure_svg(fig)
        st.pyplot(fig, use_container_width=True, clear_figure=True)
        plt.close(fig)

        c1, c2, c3, c4 = st.columns(4)
        c1.download_button("📊 PNG", data=png, file_name=f"{config.CHART_FILENAME}.png", mime="image/png")
        c2.download_button("📄 SVG", data=svg, file_name=f"{config.CHART_FILENAME}.svg", mime="image/svg+xml")
        c3.download_button("💻 Python", data=python_script(session.dataset, session.query, result),
                           file_name=config.SCRIPT_FILENAME, mime="text/x-python")
        c4.download_button("💾 CSV", data=relation_csv(result), file_name=config.CSV_FILENAME, mime="text/csv")
    else:
        st.download_button("💾 CSV", data=relation_csv(result), file_name=config.CSV_FILENAME, mime="text/csv")

    st.markdown(f"### Query Results ({len(result):,} rows)")
    st.dataframe(result.to_frame().head(config.DISPLAY_ROWS), use_container_width=True)
    if len(result) > config.DISPLAY_ROWS:
        st.caption(f"Showing first {config.DISPLAY_ROWS} rows. Download CSV for complete results.")

st.caption("Data from Our World in Data • SQL by DuckDB • Charts by matplotlib")
