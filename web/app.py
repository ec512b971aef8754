#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cutoff_intake.config import settings  # noqa: E402
from cutoff_intake.errors import ParseError, StoreError  # noqa: E402
from cutoff_intake.loader import decode_csv_bytes  # noqa: E402
from cutoff_intake.logger import configure_logging  # noqa: E402
from cutoff_intake.orchestrator import IngestionOrchestrator, Progress, RunState, ValidationReport, validate_text  # noqa: E402
from cutoff_intake.report import format_invalid_rows, preview_frame, raw_preview_frame  # noqa: E402
from cutoff_intake.store import SnapshotStore, open_store  # noqa: E402

APPEND_MODE_NOTES = [
    "Duplicate entries will be automatically detected and skipped",
    "New records will be assigned sequential rank numbers",
    "Your existing data remains safe and unchanged",
    "Use the data management screens to manually delete records if needed",
]
RAW_PREVIEW_ROWS = 10


@st.cache_resource(show_spinner=False)
def get_store() -> SnapshotStore:
    return open_store(remote=bool(settings.store_url and settings.store_key))


def ensure_state() -> None:
    st.session_state.setdefault("last_summary", None)
    st.session_state.setdefault("last_state", None)


def set_visuals() -> None:
    st.set_page_config(page_title="Cutoff data upload", page_icon="📄", layout="wide", initial_sidebar_state="collapsed")
    st.title("Upload JoSAA cutoff data")
    st.caption("Single CSV export with the columns Year, Round, College, Couse, Quota, Seat Type, Gender, Opening Rank, Closing Rank.")


def render_append_notice() -> None:
    st.markdown(
        "**Append mode**  \n"
        "New data will be **added** to your existing database, not replaced.\n\n"
        + "\n".join(f"- {note}" for note in APPEND_MODE_NOTES)
    )


def render_validation(report: ValidationReport) -> None:
    st.subheader("Validation results")
    rows = report.rows
    metrics = st.columns(4)
    metrics[0].metric("Total rows", rows.total_rows)
    metrics[1].metric("Valid rows", rows.valid_rows)
    metrics[2].metric("Invalid rows", len(rows.invalid_rows))
    metrics[3].metric("Empty rows", rows.empty_rows)

    if report.error:
        st.error(report.error)
    if report.header.missing_headers:
        st.error("Missing headers: " + ", ".join(report.header.missing_headers))
    if report.header.extra_headers:
        if report.blocked:
            st.error("Extra headers: " + ", ".join(report.header.extra_headers))
        else:
            st.warning("Extra headers: " + ", ".join(report.header.extra_headers))
    for warning in report.warnings:
        st.warning(warning)
    if rows.invalid_rows:
        st.warning("Invalid rows: " + format_invalid_rows(rows.invalid_rows))
    if rows.empty_rows:
        st.info(f"Empty rows: {rows.empty_rows} (will be skipped)")

    if rows.preview:
        st.markdown("**Data preview**")
        st.dataframe(preview_frame(rows.preview), width="stretch", hide_index=True)


def run_append(text: str, store: SnapshotStore) -> None:
    try:
        existing = store.load_snapshot()
    except StoreError as exc:
        st.error(f"Could not load the existing dataset: {exc}")
        return

    bar = st.progress(0, text="Processing...")

    def on_progress(progress: Progress) -> None:
        bar.progress(progress.percent, text=f"Processing... {progress.processed}/{progress.total} rows")

    result = IngestionOrchestrator().run(text, existing, on_progress=on_progress)
    if not result.committable:
        bar.empty()
        st.session_state.last_state = result.state.value
        st.session_state.last_summary = result.summary
        return

    try:
        store.save_snapshot(result.snapshot)
    except StoreError as exc:
        st.session_state.last_state = RunState.FAILED.value
        st.session_state.last_summary = f"Error processing file: {exc}"
        return
    bar.progress(100, text="Done")
    st.session_state.last_state = result.state.value
    st.session_state.last_summary = result.summary


def render_last_result() -> None:
    summary = st.session_state.get("last_summary")
    if not summary:
        return
    if st.session_state.get("last_state") == RunState.COMPLETE.value:
        st.success(summary)
    else:
        st.error(summary)


def main() -> None:
    configure_logging()
    set_visuals()
    ensure_state()
    render_append_notice()

    uploaded = st.file_uploader("CSV file", type=["csv"], accept_multiple_files=False)
    if uploaded is None:
        render_last_result()
        return

    raw = uploaded.getvalue()
    st.caption(f"Selected file: {uploaded.name} ({round(len(raw) / 1024)} KB)")
    try:
        text = decode_csv_bytes(raw)
    except ParseError as exc:
        st.error(f"Error processing file: {exc}")
        return

    report = validate_text(text)
    render_validation(report)

    raw_frame = raw_preview_frame(text, RAW_PREVIEW_ROWS)
    if not raw_frame.empty:
        with st.expander(f"CSV preview (first {RAW_PREVIEW_ROWS} rows)"):
            st.dataframe(raw_frame, width="stretch", hide_index=True)

    if st.button(
        "Append to dataset",
        type="primary",
        disabled=not report.can_ingest,
        width="stretch",
    ):
        run_append(text, get_store())
    render_last_result()


if __name__ == "__main__":
    main()
