from __future__ import annotations

from typing import Dict, List

import streamlit as st

from ability_chat.config import PROVIDERS, Settings
from ability_chat.pipeline import Orchestrator, build_orchestrator


GREETING = (
    "Hello! I'm your AI assistant. I can answer general questions and also search "
    "the site's content for you. How can I help?"
)


def _config_signature(provider: str, model: str) -> str:
    return f"{provider}|{model}"


def _initialize_session(provider: str, model: str) -> None:
    settings = Settings.from_env().with_overrides(provider=provider)
    field = "ollama_model" if provider == "ollama" else "gemini_model"
    settings = settings.with_overrides(**{field: model or None})

    previous = st.session_state.get("orchestrator")
    if previous is not None:
        previous.close()
    st.session_state.orchestrator = build_orchestrator(settings)
    st.session_state.messages = [{"role": "assistant", "content": GREETING}]
    st.session_state.last_result = None
    st.session_state.config_sig = _config_signature(provider, model)


def _get_orchestrator() -> Orchestrator:
    return st.session_state.orchestrator


def main() -> None:
    st.set_page_config(page_title="Ability Chat", layout="centered")
    st.title("Ability Chat")
    st.caption("Ask a question. The assistant can search the site's content when it helps.")

    defaults = Settings.from_env()
    with st.sidebar:
        st.header("Model")
        provider = st.selectbox("Provider", PROVIDERS, index=PROVIDERS.index(defaults.provider), key="provider_input")
        default_model = defaults.ollama_model if provider == "ollama" else defaults.gemini_model
        model = st.text_input("Model id", value=default_model, key=f"model_input_{provider}")
        start_new = st.button("Clear conversation")
        show_debug = st.checkbox("Show tool calls", value=False)

    sig = _config_signature(provider, model)
    if "orchestrator" not in st.session_state or start_new or st.session_state.get("config_sig") != sig:
        _initialize_session(provider, model)

    orchestrator = _get_orchestrator()
    messages: List[Dict[str, str]] = st.session_state.get("messages", [])

    for message in messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])

    prompt = st.chat_input("Ask me a question...")
    if prompt:
        st.session_state.messages.append({"role": "user", "content": prompt})
        with st.chat_message("user"):
            st.markdown(prompt)
        with st.chat_message("assistant"):
            with st.spinner("Thinking..."):
                result = orchestrator.handle(prompt)
            response = result.message if result.success else f"Error: {result.message}"
            st.session_state.last_result = result
            st.markdown(response)
        st.session_state.messages.append({"role": "assistant", "content": response})

    if show_debug:
        result = st.session_state.get("last_result")
        with st.expander("Last exchange", expanded=False):
            if result is None:
                st.markdown("No exchange yet.")
            else:
                st.markdown(f"**State:** {result.state}")
                for call in result.tool_calls:
                    st.markdown(f"**{call['name']}** `{call['arguments']}`")
                    st.text_area(f"{call['name']} result", value=call["result"], height=160)


if __name__ == "__main__":
    main()
