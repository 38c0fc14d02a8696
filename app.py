import asyncio

import streamlit as st

from minilang_verify.ast_nodes import format_program
from minilang_verify.config import AnalysisConfig
from minilang_verify.errors import AnalysisError, AnalysisInProgress, ParseError
from minilang_verify.pipeline import Outcome
from minilang_verify.session import AnalysisSession
from minilang_verify.solver import Z3Solver
from minilang_verify.ssa import format_ssa

EXAMPLE_VERIFY = """x := 3;
if (x < 5) {
  y := x + 1;
} else {
  y := x - 1;
}
assert(y > 0);
"""

EXAMPLE_EQUIV_2 = """x := 3;
y := x + 1;
"""


# Normalize whitespace
def normalize_whitespace(code: str) -> str:
    return code.replace('\u00A0', ' ').replace('\u200B', ' ')


def get_session(config: AnalysisConfig) -> AnalysisSession:
    # one session per browser tab; a new config replaces it
    session = st.session_state.get('analysis_session')
    if session is None or session.config != config:
        solver = Z3Solver(config.solver_timeout_ms, config.max_models)
        session = AnalysisSession(solver, config)
        st.session_state['analysis_session'] = session
    return session


def show_models(models):
    for m in models:
        st.json(m)


# UI
st.title('MiniLang Verification & Equivalence')
mode = st.sidebar.selectbox('Mode', ['Verification', 'Equivalence'])
use_unroll = st.sidebar.checkbox('Unroll loops', value=False)
unroll = st.sidebar.number_input('Unroll depth', 1, 10, 3, disabled=not use_unroll)
max_models = st.sidebar.number_input('Counterexamples', 1, 5, 2)
encode_optimized = st.sidebar.checkbox('Encode optimized SSA', value=False)

config = AnalysisConfig(
    unroll_depth=int(unroll) if use_unroll else None,
    max_models=int(max_models),
    encode_optimized=encode_optimized,
)

# Inputs
if mode == 'Verification':
    code1 = st.text_area('Program to verify:', height=200, value=EXAMPLE_VERIFY)
    code2 = None
else:
    col1, col2 = st.columns(2)
    code1 = col1.text_area('Program 1:', height=200, value=EXAMPLE_VERIFY)
    code2 = col2.text_area('Program 2:', height=200, value=EXAMPLE_EQUIV_2)

session = get_session(config)
if st.button('Run'):
    with st.spinner('Processing...'):
        try:
            if mode == 'Verification':
                report = asyncio.run(session.verify(normalize_whitespace(code1)))
            else:
                report = asyncio.run(session.check_equivalence(
                    normalize_whitespace(code1), normalize_whitespace(code2)))
        except AnalysisInProgress:
            st.warning('An analysis is already running.')
            st.stop()
        except ParseError as e:
            st.error(f'Parse error on line {e.line}: {e.reason}')
            st.stop()
        except AnalysisError as e:
            st.exception(e)
            st.stop()

    tab1, tab2, tab3, tab4, tab5, tab6 = st.tabs(
        ['AST', 'SSA', 'Optimized SSA', 'CFG', 'SMT', 'Results'])
    several = len(report.analyses) > 1
    for index, analysis in enumerate(report.analyses, start=1):
        title = f'Program {index}' if several else 'Program'
        with tab1:
            st.subheader(f'AST {title}')
            st.code(format_program(analysis.ast))
        with tab2:
            st.subheader(f'SSA {title}')
            st.code(str(analysis.ssa))
        with tab3:
            st.subheader(f'Optimized SSA {title}')
            st.code(format_ssa(analysis.optimized or []))
        with tab4:
            st.subheader(f'CFG {title}')
            st.graphviz_chart(analysis.cfg.to_dot())
    with tab5:
        if report.script is not None:
            st.code(str(report.script), language='lisp')
        else:
            st.info('No constraint script: the programs were rejected before solving.')
    with tab6:
        if report.outcome in (Outcome.VERIFIED, Outcome.EQUIVALENT):
            st.success(f'✅ {report.message}')
        elif report.outcome is Outcome.INCONCLUSIVE:
            st.warning(report.message)
        else:
            st.error(f'❌ {report.message}')
            if report.counterexamples:
                label = 'counterexamples' if mode == 'Verification' else 'distinguishing inputs'
                st.write(f'{len(report.counterexamples)} {label}:')
                show_models(report.counterexamples)
