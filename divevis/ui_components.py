"""Shared UI components: section headers, callouts, navigation."""
import streamlit as st

from divevis.constants import PART_TITLES


def section_header(number, title, part=None):
    """Render a report section header with its part label."""
    if part:
        st.caption(f"Part {part}: {PART_TITLES.get(part, '')}")
    st.title(f"{number}. {title}")
    st.divider()


def concept_box(title, content):
    """Render a highlighted concept box."""
    st.markdown(f"""
<div style="background-color: #EBF5FB; padding: 20px; border-radius: 10px; border-left: 5px solid #2E86C1; margin: 10px 0;">
<h4 style="color: #2E86C1; margin-top: 0;">{title}</h4>
<p style="color: #1B4F72;">{content}</p>
</div>
""", unsafe_allow_html=True)


def formula_box(title, formula, explanation=""):
    """Render a formula with explanation."""
    st.markdown(f"**{title}**")
    st.latex(formula)
    if explanation:
        st.caption(explanation)


def insight_box(text):
    """Render a key finding callout."""
    st.info(f"**Finding:** {text}")


def warning_box(text):
    """Render a caveat box."""
    st.warning(f"**Caveat:** {text}")


def code_example(code, language="python"):
    """Render a collapsible code listing."""
    with st.expander("Show Code"):
        st.code(code, language=language)


def takeaways(points):
    """Render key takeaways as a list."""
    st.subheader("Takeaways")
    for p in points:
        st.markdown(f"- {p}")


def metric_row(metrics):
    """Render a row of metric cards from (label, value) pairs."""
    cols = st.columns(len(metrics))
    for col, (label, value) in zip(cols, metrics):
        col.metric(label, value)


def navigation(prev_label=None, next_label=None, prev_page=None, next_page=None):
    """Render prev/next navigation links."""
    col1, col2, col3 = st.columns([1, 2, 1])
    with col1:
        if prev_label:
            st.page_link(f"pages/{prev_page}", label=f"← {prev_label}")
    with col3:
        if next_label:
            st.page_link(f"pages/{next_page}", label=f"{next_label} →")


def feature_sliders(df, features, labels=None, key_prefix="f"):
    """One slider per feature over its observed range; constant features are fixed."""
    labels = labels or {}
    values = {}
    for feat in features:
        lo, hi = float(df[feat].min()), float(df[feat].max())
        label = labels.get(feat, feat)
        if hi <= lo:
            values[feat] = lo
            st.caption(f"{label} is constant in the data ({lo:g}).")
            continue
        values[feat] = st.slider(label, lo, hi, float(df[feat].median()),
                                 key=f"{key_prefix}_{feat}")
    return values
