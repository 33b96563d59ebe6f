from __future__ import annotations

import hashlib
from datetime import datetime
from pathlib import Path

import streamlit as st
import pandas as pd
import altair as alt

from rootfinder.config import load_config, bisection_config, fixed_point_config
from rootfinder.errors import InvalidBracketError, RootFinderError
from rootfinder.expression import parse
from rootfinder.report import bracket_hint, convergence_warning, history_frame, tolerance_warning
from rootfinder.solver import solve_bisection, solve_fixed_point


# =============================================================================
# Page configuration
# =============================================================================
st.set_page_config(
    page_title="Root Finder - Bisection and Fixed Point",
    layout="wide",
)

st.title("Root Finder - Numerical Methods")
st.caption(
    "Approximate roots of f(x) with interval bisection, or fixed points x = g(x) "
    "with successive substitution."
)

# =============================================================================
# Sidebar – configuration and inputs
# =============================================================================
PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_CFG = PROJECT_ROOT / "config" / "solver_params.yml"

cfg_path = st.sidebar.text_input(
    "YAML config path",
    str(DEFAULT_CFG),
)
try:
    cfg = load_config(cfg_path)
except (OSError, RootFinderError) as exc:
    st.sidebar.error(f"Could not load config, using built-in defaults: {exc}")
    cfg_path = None
    cfg = load_config()

method = st.sidebar.radio(
    "Method",
    options=["Bisection", "Fixed point"],
    index=0,
)
is_bisection = method == "Bisection"
section = cfg["bisection"] if is_bisection else cfg["fixed_point"]

st.sidebar.subheader("Examples")
for example in cfg["examples"]["bisection" if is_bisection else "fixed_point"]:
    st.sidebar.code(example, language=None)

st.sidebar.divider()
if cfg_path:
    try:
        cfg_sha256 = hashlib.sha256(Path(cfg_path).read_bytes()).hexdigest()
    except OSError:
        cfg_sha256 = "N/A"
    st.sidebar.caption(f"Config file: {cfg_path}")
    st.sidebar.caption(f"Loaded: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    st.sidebar.caption(f"SHA-256: {cfg_sha256}")

# =============================================================================
# Explanation
# =============================================================================
with st.expander("Overview of the methods", expanded=False):
    st.markdown(
        r"""
**Bisection.** Requires a sign change of \(f\) on \([a, b]\). Each step evaluates
\(f\) at \(c = a + (b - a)/2\) and keeps the half that still brackets the root.
The loop stops when \(|f(c)|\) or the interval width falls below the tolerance,
and never runs more than \(\lceil \log_2((b-a)/tol) \rceil + 10\) steps.

**Fixed point.** Iterates \(x_{n+1} = g(x_n)\) until \(|g(x_n) - x_n|\) is below
the tolerance or the iteration limit is reached. Convergence is not guaranteed;
the reported value is the last \(x_n\) before \(g\) was applied.

Operators `+ - * / ^`, functions `sin cos tan sqrt log ln exp`, constants `e pi`.
"""
    )

col1, col2 = st.columns([1, 1])

with col1:
    label = "f(x)" if is_bisection else "g(x)"
    formula = st.text_input(label, value=str(section["formula"]))

    if is_bisection:
        x_low = st.number_input("Lower bound a", value=float(section["lower"]), format="%.6f")
        x_high = st.number_input("Upper bound b", value=float(section["upper"]), format="%.6f")
    else:
        x0 = st.number_input("Initial value x0", value=float(section["initial_guess"]), format="%.6f")
        max_iter = st.number_input("Max iterations", value=int(section["max_iterations"]), step=10, min_value=1)
    tol = st.number_input("Tolerance", value=float(section["tolerance"]), format="%.1e")

    run = st.button("Solve")

if run:
    try:
        expression = parse(formula)
        if is_bisection:
            settings = bisection_config(cfg, lower=x_low, upper=x_high, tolerance=tol)
            warning = tolerance_warning(settings.lower, settings.upper, settings.tolerance)
            if warning:
                st.warning(warning)
            res = solve_bisection(expression, settings.lower, settings.upper, settings.tolerance)
        else:
            settings = fixed_point_config(cfg, initial_guess=x0, max_iterations=int(max_iter), tolerance=tol)
            res = solve_fixed_point(expression, settings.initial_guess, settings.max_iterations,
                                    settings.tolerance)
    except InvalidBracketError as exc:
        st.error(str(exc))
        hint = bracket_hint(exc.f_lower, exc.f_upper)
        if hint:
            st.info(hint)
    except RootFinderError as exc:
        st.error(f"{exc.kind.replace('_', ' ').capitalize()} error: {exc}")
    else:
        with col2:
            st.success(f"{'Root' if is_bisection else 'Fixed point'} ≈ {res.root!r}")
            st.dataframe(
                pd.DataFrame([{
                    "Method": res.method,
                    "Root": res.root,
                    "Residual": res.residual,
                    "Iterations": res.iterations,
                    "Converged": res.converged,
                }]),
                use_container_width=True,
            )
            warning = convergence_warning(res)
            if warning:
                st.warning(warning)

        st.markdown("#### Iteration table")
        df_hist = history_frame(res.history)
        if df_hist.empty:
            st.info("No iterations were needed (root found at an interval endpoint).")
        else:
            st.dataframe(df_hist, use_container_width=True)

            st.markdown("#### Convergence Plot (Error vs Iteration)")
            df_plot = df_hist[df_hist["error"] > 0]
            error_chart = alt.Chart(df_plot).mark_line(point=True).encode(
                x=alt.X("iteration:Q", title="Iteration"),
                y=alt.Y("error:Q", title="Error", scale=alt.Scale(type="log")),
                tooltip=[
                    alt.Tooltip("iteration:Q", title="Iteration"),
                    alt.Tooltip("error:Q", title="Error", format=".3e"),
                ],
            )
            st.altair_chart(error_chart.properties(height=320), use_container_width=True)
