"""
Streamlit Console for the Sheets Ledger Bot

A local chat window over the same ConversationEngine the Telegram bot
uses. Handy for trying flows without a bot token.

Run with:
    streamlit run app/main.py

Rows go to Google Sheets when LEDGER storage is configured, otherwise
they are kept in memory for the life of the process.
"""

import asyncio

import streamlit as st

from ledgerbot.conversation import Reply
from ledgerbot.conversation import keyboards as kb
from ledgerbot.orchestrator import create_app_components


CONSOLE_USER_ID = "console"


# Page configuration
st.set_page_config(
    page_title="Sheets Ledger",
    page_icon="💰",
    layout="centered",
)


@st.cache_resource
def get_event_loop():
    """One loop for the whole process so per-user locks stay on it."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_event_loop().run_until_complete(coro)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(allowed_ids=[CONSOLE_USER_ID])
    except Exception as e:
        st.error(f"Google Sheets unavailable, using in-memory ledger: {e}")
        return create_app_components(use_storage=False, allowed_ids=[CONSOLE_USER_ID])


def as_markdown(text: str) -> str:
    # Single newlines become markdown hard breaks
    return text.replace("\n", "  \n")


def send(text: str) -> None:
    components = get_components()
    st.session_state.messages.append({"role": "user", "text": text})
    replies: list[Reply] = run_async(
        components.engine.handle_message(CONSOLE_USER_ID, CONSOLE_USER_ID, text)
    )
    for reply in replies:
        st.session_state.messages.append({"role": "assistant", "text": reply.text})
        if reply.keyboard is not None:
            st.session_state.keyboard = reply.keyboard


def render_keyboard() -> None:
    keyboard = st.session_state.keyboard
    if keyboard is None:
        return

    for row_index, row in enumerate(keyboard.rows):
        columns = st.columns(len(row))
        for column, label in zip(columns, row):
            if column.button(label, key=f"kb-{row_index}-{label}", use_container_width=True):
                send(label)
                st.rerun()


def main():
    """Main application entry point."""
    if "messages" not in st.session_state:
        st.session_state.messages = []
    if "keyboard" not in st.session_state:
        st.session_state.keyboard = None
        send(kb.START)

    st.sidebar.title("💰 Sheets Ledger")
    st.sidebar.markdown("---")
    components = get_components()
    st.sidebar.markdown(f"**Storage:** {type(components.storage).__name__}")
    if st.sidebar.button("🔄 Restart conversation"):
        st.session_state.messages = []
        send(kb.START)
        st.rerun()

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(as_markdown(message["text"]), unsafe_allow_html=True)

    render_keyboard()

    text = st.chat_input("Type a reply")
    if text:
        send(text)
        st.rerun()


if __name__ == "__main__":
    main()
