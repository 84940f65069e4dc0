"""Main Streamlit UI for the AI storyboard creator.

Flow: credential gate -> creative brief form -> editable storyboard table with
per-cut sketches -> raster PDF export.
"""

from __future__ import annotations

import html
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import streamlit as st
from dotenv import load_dotenv

# Ensure backend package is importable when running `streamlit run streamlit_app.py`.
ROOT = Path(__file__).resolve().parent
BACKEND_ROOT = ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))
load_dotenv(ROOT / ".env", override=False)

SECRET_ENV_KEYS = (
    "STORYBOARD_BASE_URL",
    "STORYBOARD_TEXT_MODEL",
    "STORYBOARD_IMAGE_MODEL",
    "STORYBOARD_SKETCH_WORKERS",
    "STORYBOARD_SKETCH_RETRIES",
    "STORYBOARD_SKETCH_BACKOFF",
    "STORYBOARD_FONT_PATH",
    "STORYBOARD_LOG_LEVEL",
)


def _secrets_dict() -> dict[str, Any]:
    try:
        secrets_obj = st.secrets
        return secrets_obj.to_dict()  # type: ignore[attr-defined]
    except Exception:
        return {}


def _hydrate_env_from_streamlit_secrets() -> None:
    """Load non-credential settings from Streamlit Secrets into env when not already set."""
    secrets = _secrets_dict()
    for key in SECRET_ENV_KEYS:
        value = secrets.get(key)
        if isinstance(value, str) and value.strip() and not os.getenv(key):
            os.environ[key] = value.strip()


def _secret_api_key() -> str | None:
    """Host-provided key: `GEMINI_API_KEY` or a `[gemini] api_key` block in secrets."""
    secrets = _secrets_dict()
    value = secrets.get("GEMINI_API_KEY")
    block = secrets.get("gemini")
    if not value and isinstance(block, dict):
        value = block.get("api_key")
    return value if isinstance(value, str) else None


_hydrate_env_from_streamlit_secrets()

from storyboard_studio.app import create_app  # noqa: E402
from storyboard_studio.credentials import CredentialGate  # noqa: E402
from storyboard_studio.errors import GenerationError, InvalidTransition  # noqa: E402
from storyboard_studio.export import export_storyboard_pdf, storyboard_file_name  # noqa: E402
from storyboard_studio.models import (  # noqa: E402
    DEFAULT_CONSTRAINTS,
    DEFAULT_CUT_COUNT,
    NO_REFERENCE,
    Brief,
    Reference,
    ReferenceFile,
)
from storyboard_studio.rows import CutRow, RowStage  # noqa: E402
from storyboard_studio.sketch import generate_sketches  # noqa: E402
from storyboard_studio.view import StoryboardView  # noqa: E402

logger = logging.getLogger(__name__)

GENERIC_ERROR = "스토리보드를 생성하는 도중 문제가 발생했습니다. API 키를 확인하거나 잠시 후 다시 시도해주세요."
REVOKED_NOTICE = "API 키가 유효하지 않습니다. 새 키를 연결해주세요."

BRIEF_FIELDS = {
    "topic": "sb_topic",
    "purpose": "sb_purpose",
    "target_audience": "sb_target_audience",
    "key_concepts": "sb_key_concepts",
    "narrative_flow": "sb_narrative_flow",
    "cut_count": "sb_cut_count",
    "constraints": "sb_constraints",
    "concept_settings": "sb_concept_settings",
}
COLUMN_LAYOUT = [0.5, 3.2, 1.4, 2.4, 2.4]
COLUMN_LABELS = ["#", "화면 내용 (Visual)", "소스 파일 (Source)", "자막 (Subtitle)", "내레이션 (Audio)"]


@st.cache_resource
def _get_services(api_key: str) -> dict[str, Any]:
    return create_app(api_key=api_key)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _rerun() -> None:
    st.rerun()


def _init_state() -> None:
    defaults = {
        "sb_topic": "",
        "sb_purpose": "",
        "sb_target_audience": "",
        "sb_key_concepts": "",
        "sb_narrative_flow": "",
        "sb_cut_count": DEFAULT_CUT_COUNT,
        "sb_constraints": DEFAULT_CONSTRAINTS,
        "sb_concept_settings": "",
        "sb_view": None,
        "sb_error": None,
        "sb_notice": None,
        "sb_pdf": None,
        "sb_auto_sketch": False,
        "sb_status_line": "Ready.",
    }
    for key, value in defaults.items():
        st.session_state.setdefault(key, value)


def _credential_gate() -> CredentialGate:
    if "sb_gate" not in st.session_state:
        st.session_state["sb_gate"] = CredentialGate(
            host_probe=_secret_api_key,
            override_store=st.session_state,
        )
    return st.session_state["sb_gate"]


def _inject_styles() -> None:
    st.markdown(
        """
        <style>
        .hero-card {
            border: 1px solid #e2e8f0;
            border-radius: 14px;
            padding: 18px 22px;
            margin-bottom: 18px;
            background: linear-gradient(120deg, #eef2ff 0%, #f5f3ff 100%);
        }
        .hero-title {
            margin: 6px 0 2px 0;
            font-size: 1.6rem;
            font-weight: 800;
            color: #4338ca;
        }
        .hero-sub { margin: 0; color: #475569; }
        .mode-pill {
            display: inline-block;
            padding: 2px 10px;
            border-radius: 999px;
            font-size: 0.75rem;
            font-weight: 700;
        }
        .mode-pill.live { background: #dcfce7; color: #166534; }
        .mode-pill.gated { background: #fee2e2; color: #991b1b; }
        .cut-number {
            display: inline-flex;
            width: 2rem;
            height: 2rem;
            border-radius: 999px;
            align-items: center;
            justify-content: center;
            background: #f1f5f9;
            font-weight: 700;
        }
        .subtitle-box {
            background: #fefce8;
            border: 1px solid #fef08a;
            border-radius: 8px;
            padding: 8px 10px;
            white-space: pre-wrap;
        }
        .narration-box {
            background: #eff6ff;
            border: 1px solid #bfdbfe;
            border-radius: 8px;
            padding: 8px 10px;
            font-style: italic;
            white-space: pre-wrap;
        }
        .source-code {
            font-family: monospace;
            font-size: 0.8rem;
            word-break: break-all;
        }
        </style>
        """,
        unsafe_allow_html=True,
    )


def _reference_from_upload(upload: Any) -> Reference:
    if upload is None:
        return NO_REFERENCE
    return ReferenceFile.from_bytes(upload.name, upload.getvalue(), getattr(upload, "type", None))


def _brief_from_state(state: Mapping[str, Any], upload: Any = None) -> Brief:
    values = {name: str(state.get(key, "") or "") for name, key in BRIEF_FIELDS.items()}
    return Brief(reference=_reference_from_upload(upload), **values)


def _header(connected: bool, services: dict[str, Any] | None) -> None:
    mode_class = "live" if connected else "gated"
    mode_text = "API Connected" if connected else "API Key Required"
    model = services["ai_client"].default_chat_model if services else "-"
    st.markdown(
        f"""
        <div class="hero-card">
          <span class="mode-pill {mode_class}">{mode_text}</span>
          <h2 class="hero-title">AI Storyboard Creator</h2>
          <p class="hero-sub">콘텐츠 브리프를 작성하면 AI가 교육적 규칙과 서사를 반영한 정교한 스토리보드를 생성합니다.
          Text model: {html.escape(model)}</p>
        </div>
        """,
        unsafe_allow_html=True,
    )


def _sidebar(gate: CredentialGate, connected: bool) -> None:
    st.sidebar.markdown("## Session")
    st.sidebar.checkbox(
        "스토리보드 생성 후 스케치 자동 생성",
        key="sb_auto_sketch",
        help="모든 컷의 스케치를 제한된 동시 요청 수로 한 번에 생성합니다.",
    )
    if connected and st.sidebar.button("API 키 변경", use_container_width=True):
        gate.revoke()
        st.session_state["sb_error"] = None
        st.session_state["sb_status_line"] = "API key disconnected."
        _rerun()
    st.sidebar.markdown("---")
    st.sidebar.caption(f"Status: {st.session_state['sb_status_line']}")


def _gate_screen(gate: CredentialGate) -> None:
    st.subheader("API 키 연결")
    st.write(
        "스토리보드와 스케치를 생성하려면 Gemini API 키가 필요합니다. "
        "Streamlit Secrets 또는 `.env`의 `GEMINI_API_KEY`를 설정하거나 아래에 직접 입력하세요."
    )
    if st.session_state.get("sb_notice"):
        st.warning(st.session_state["sb_notice"])
    st.text_input("Gemini API Key", type="password", key="sb_api_key_input")
    connect = st.button(
        "연결하기",
        type="primary",
        key="sb_connect",
        disabled=not st.session_state.get("sb_api_key_input", "").strip(),
    )
    if connect:
        gate.set_override(st.session_state["sb_api_key_input"])
        st.session_state["sb_notice"] = None
        st.session_state["sb_status_line"] = "API key connected."
        _rerun()


def _record_generation_failure(state: MutableMapping[str, Any], gate: CredentialGate, exc: GenerationError) -> bool:
    """Store the failure for display; a rejected key reopens the gate with a notice instead."""
    if gate.handle_error(exc):
        state["sb_error"] = None
        state["sb_notice"] = REVOKED_NOTICE
        state["sb_status_line"] = REVOKED_NOTICE
        return True
    state["sb_error"] = GENERIC_ERROR
    state["sb_status_line"] = f"Storyboard generation failed ({exc.kind.value})."
    return False


def _brief_section(services: dict[str, Any], gate: CredentialGate) -> None:
    st.subheader("영상 제작을 위한 완벽한 콘티 설계")

    st.text_input("주제 (Topic) *", key="sb_topic", placeholder="예: 서울의 숨겨진 역사 유적 탐방 브이로그")

    col_a, col_b = st.columns(2)
    col_a.text_area(
        "콘텐츠의 목적 *",
        key="sb_purpose",
        height=110,
        placeholder="학습자가 무엇을 이해해야 하는지, 어떤 상황에서 쓰이는지",
    )
    col_b.text_area(
        "타깃 학습자 (난이도)",
        key="sb_target_audience",
        height=110,
        placeholder="예: 초등학교 3학년 수준, 시각적 비중 높이고 설명 단순화",
    )

    col_c, col_d = st.columns(2)
    col_c.text_input("핵심 개념", key="sb_key_concepts", placeholder="각 컷이 전달해야 할 핵심 메시지")
    col_d.text_input("서사 흐름", key="sb_narrative_flow", placeholder="예: 도입 -> 문제제시 -> 개념설명 -> 예시 -> 정리")

    col_e, col_f = st.columns(2)
    col_e.text_input("컷 수 및 분량", key="sb_cut_count", placeholder="예: 10~15컷, 2~3분 포맷")
    col_f.text_input("제한 조건", key="sb_constraints", placeholder="과도한 창의성 제어, 캐릭터 변경 금지 등")

    st.text_area(
        "컨셉보드 / 캐릭터 설정",
        key="sb_concept_settings",
        height=130,
        placeholder="예: 주인공 '미나'는 노란색 후드티를 입은 10살 소녀, 호기심 많은 성격",
    )
    upload = st.file_uploader(
        "컨셉보드 파일 첨부 (PDF 또는 이미지, 선택)",
        type=["pdf", "png", "jpg", "jpeg", "webp"],
        key="sb_concept_file",
    )

    brief = _brief_from_state(st.session_state, upload)
    submittable = brief.is_submittable()
    generate = st.button(
        "AI 스토리보드 생성하기",
        type="primary",
        disabled=not submittable,
        use_container_width=True,
    )
    if not submittable:
        st.caption("주제와 콘텐츠 목적을 입력해주세요.")

    if generate:
        st.session_state["sb_error"] = None
        revoked = False
        with st.spinner("스토리보드 설계 중..."):
            try:
                storyboard = services["storyboard"].generate(brief)
            except GenerationError as exc:
                storyboard = None
                revoked = _record_generation_failure(st.session_state, gate, exc)

        if revoked:
            _rerun()

        if storyboard is not None:
            view = StoryboardView.from_storyboard(storyboard)
            st.session_state["sb_view"] = view
            st.session_state["sb_pdf"] = None
            st.session_state["sb_status_line"] = f"Storyboard generated ({len(storyboard.cuts)} cuts)."
            if st.session_state["sb_auto_sketch"]:
                _run_all_sketches(services, view)
            _rerun()

    if st.session_state["sb_error"]:
        st.error(st.session_state["sb_error"])


def _run_all_sketches(services: dict[str, Any], view: StoryboardView) -> None:
    settings = services["settings"]
    pending = [row for row in view.rows if row.stage is not RowStage.DISPLAYING]
    tokens = {row.index: row.begin() for row in pending}
    jobs = [(row.index, row.prompt) for row in pending]

    with st.spinner(f"스케치 {len(jobs)}개 생성 중..."):
        results = generate_sketches(
            services["sketches"],
            jobs,
            max_workers=settings["sketch_workers"],
            max_retries=settings["sketch_retries"],
            backoff_seconds=settings["sketch_backoff"],
        )

    for index, image in results.items():
        view.rows[index].finish(tokens[index], image)
    missing = sum(1 for image in results.values() if image is None)
    st.session_state["sb_status_line"] = f"Sketches generated ({len(results) - missing}/{len(results)})."


def _on_toggle_edit(view: StoryboardView, key: str) -> None:
    view.set_edit_mode(bool(st.session_state[key]))
    st.session_state["sb_pdf"] = None


def _on_cut_change(view: StoryboardView, index: int, field_name: str, key: str) -> None:
    try:
        view.update_cut(index, field_name, st.session_state[key])
    except InvalidTransition as exc:
        st.session_state["sb_status_line"] = str(exc)


def _on_header_change(view: StoryboardView, field_name: str, key: str) -> None:
    try:
        view.update_header(**{field_name: st.session_state[key]})
    except InvalidTransition as exc:
        st.session_state["sb_status_line"] = str(exc)


def _on_prompt_change(view: StoryboardView, index: int, key: str) -> None:
    try:
        view.edit_prompt(index, st.session_state[key])
    except InvalidTransition as exc:
        st.session_state["sb_status_line"] = str(exc)


def _editable_text(view: StoryboardView, index: int, field_name: str, value: str, height: int = 120) -> None:
    key = f"sb_{view.revision}_{field_name}_{index}"
    st.text_area(
        field_name,
        value=value,
        key=key,
        height=height,
        label_visibility="collapsed",
        on_change=_on_cut_change,
        args=(view, index, field_name, key),
    )


def _image_cell(services: dict[str, Any], view: StoryboardView, row: CutRow) -> None:
    cut = view.storyboard.cuts[row.index]

    if row.stage is RowStage.DISPLAYING and row.image is not None:
        st.image(row.image.to_bytes(), caption=f"Cut {cut.cut_number} Storyboard", use_container_width=True)
        redo_col, revise_col = st.columns(2)
        if redo_col.button("다시 생성", key=f"sb_{view.revision}_redo_{row.index}", use_container_width=True):
            with st.spinner("스케치 생성 중..."):
                row.run(services["sketches"])
            _rerun()
        if revise_col.button("프롬프트 수정", key=f"sb_{view.revision}_revise_{row.index}", use_container_width=True):
            row.revise()
            _rerun()
        return

    if row.stage is RowStage.LOADING:
        st.caption("스케치 생성 중...")
        return

    prompt_key = f"sb_{view.revision}_prompt_{row.index}"
    st.text_area(
        "Sketch prompt",
        value=row.prompt,
        key=prompt_key,
        height=90,
        label_visibility="collapsed",
        on_change=_on_prompt_change,
        args=(view, row.index, prompt_key),
    )
    if row.error:
        st.caption(f"스케치를 생성하지 못했습니다. {cut.visual_description[:160]}")
    label = "다시 시도" if row.error else "스케치 생성"
    if st.button(label, key=f"sb_{view.revision}_sketch_{row.index}", use_container_width=True):
        with st.spinner("스케치 생성 중..."):
            row.run(services["sketches"])
        _rerun()


def _cut_row(services: dict[str, Any], view: StoryboardView, row: CutRow) -> None:
    cut = view.storyboard.cuts[row.index]
    cols = st.columns(COLUMN_LAYOUT, gap="small")

    cols[0].markdown(f"<span class='cut-number'>{cut.cut_number}</span>", unsafe_allow_html=True)

    with cols[1]:
        if view.edit_mode:
            _editable_text(view, row.index, "visual_description", cut.visual_description, height=160)
        else:
            st.markdown(html.escape(cut.visual_description))
        _image_cell(services, view, row)

    with cols[2]:
        if view.edit_mode:
            _editable_text(view, row.index, "source_file_name", cut.source_file_name, height=80)
        else:
            st.markdown(f"<div class='source-code'>{html.escape(cut.source_file_name)}</div>", unsafe_allow_html=True)

    with cols[3]:
        if view.edit_mode:
            _editable_text(view, row.index, "subtitles", cut.subtitles)
        else:
            st.markdown(f"<div class='subtitle-box'>{html.escape(cut.subtitles)}</div>", unsafe_allow_html=True)

    with cols[4]:
        if view.edit_mode:
            _editable_text(view, row.index, "narration", cut.narration, height=160)
        else:
            st.markdown(f"<div class='narration-box'>\"{html.escape(cut.narration)}\"</div>", unsafe_allow_html=True)

    st.divider()


def _storyboard_section(services: dict[str, Any], view: StoryboardView) -> None:
    if st.button("← 새로운 브리프 작성하기", key="sb_back"):
        st.session_state["sb_view"] = None
        st.session_state["sb_pdf"] = None
        st.session_state["sb_status_line"] = "Ready."
        _rerun()

    storyboard = view.storyboard
    if view.edit_mode:
        title_key = f"sb_{view.revision}_title"
        synopsis_key = f"sb_{view.revision}_synopsis"
        st.text_input("제목", value=storyboard.title, key=title_key, on_change=_on_header_change, args=(view, "title", title_key))
        st.text_area(
            "시놉시스",
            value=storyboard.synopsis,
            key=synopsis_key,
            on_change=_on_header_change,
            args=(view, "synopsis", synopsis_key),
        )
    else:
        st.subheader(storyboard.title)
        st.write(storyboard.synopsis)

    toolbar = st.columns(4)
    edit_key = f"sb_{view.revision}_edit"
    toolbar[0].toggle(
        "편집 모드",
        value=view.edit_mode,
        key=edit_key,
        on_change=_on_toggle_edit,
        args=(view, edit_key),
    )
    if toolbar[1].button("모든 스케치 생성", key="sb_all_sketches", use_container_width=True):
        _run_all_sketches(services, view)
        _rerun()
    if toolbar[2].button("PDF 만들기", key="sb_export", disabled=not view.can_export(), use_container_width=True):
        with st.spinner("PDF 생성 중..."):
            result = view.export_pdf(export_storyboard_pdf)
        if result.ok:
            st.session_state["sb_pdf"] = (result.file_name, result.data)
            st.session_state["sb_status_line"] = f"PDF ready: {result.file_name}"
        else:
            st.session_state["sb_pdf"] = None
            st.error(result.message)
    toolbar[3].download_button(
        "JSON 다운로드",
        data=json.dumps(storyboard.to_wire(), ensure_ascii=False, indent=2),
        file_name=storyboard_file_name(storyboard, "json"),
        mime="application/json",
        use_container_width=True,
        key="sb_dl_json",
    )

    if view.edit_mode:
        st.info("편집 모드에서는 PDF 저장이 비활성화됩니다. 편집을 마친 후 편집 모드를 꺼주세요.")

    if st.session_state["sb_pdf"]:
        file_name, data = st.session_state["sb_pdf"]
        st.download_button(
            "PDF 다운로드",
            data=data,
            file_name=file_name,
            mime="application/pdf",
            use_container_width=True,
            key="sb_dl_pdf",
        )

    header_cols = st.columns(COLUMN_LAYOUT, gap="small")
    for col, label in zip(header_cols, COLUMN_LABELS):
        col.markdown(f"**{label}**")
    st.divider()

    for row in view.rows:
        _cut_row(services, view, row)


def main() -> None:
    st.set_page_config(
        page_title="AI Storyboard Creator",
        page_icon="🎬",
        layout="wide",
    )

    _init_state()
    _inject_styles()

    gate = _credential_gate()
    api_key = gate.resolve()
    services = _get_services(api_key) if api_key else None
    _configure_logging(services["settings"]["log_level"] if services else "INFO")

    _header(api_key is not None, services)
    _sidebar(gate, api_key is not None)

    if services is None:
        _gate_screen(gate)
        return

    view = st.session_state["sb_view"]
    if view is None:
        _brief_section(services, gate)
    else:
        _storyboard_section(services, view)


if __name__ == "__main__":
    main()
