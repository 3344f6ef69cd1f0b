"""
MMDC Campus Assistant
Streamlit Web Application

Entry point for the chatbot interface. A signed-in student, mentor or
admin asks questions about enrollment, billing, courses and learning
modules; answers are limited to what their role may see.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import streamlit as st

from ai import health_check
from clients import SchoolApiClient
from config import APP_SUBTITLE, APP_TITLE, GEMINI_MODEL, LOG_LEVEL, SCHOOL_API_BASE_URL, SCHOOL_API_TOKEN
from core import DomainError
from services import ChatResponse, ChatService, map_user_to_context

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================

st.set_page_config(
    page_title=APP_TITLE,
    page_icon="🎓",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    [data-testid="stChatMessage"] {
        border-radius: 16px;
        padding: 16px;
        margin: 10px 0;
        border: 1px solid rgba(3, 3, 24, 0.08);
    }

    .stButton > button {
        background-color: #7A1F2B;
        color: #FFFFFF;
        border: none;
        border-radius: 10px;
        font-weight: 600;
    }
</style>
""", unsafe_allow_html=True)

# ============================================================================
# SESSION STATE INITIALIZATION
# ============================================================================

def initialize_session_state():
    """Initialize Streamlit session state variables."""

    if "chat_service" not in st.session_state:
        st.session_state.chat_service = ChatService()

    if "messages" not in st.session_state:
        st.session_state.messages = []

    if "session_id" not in st.session_state:
        st.session_state.session_id = f"session_{int(time.time())}"

    if "api_client" not in st.session_state:
        st.session_state.api_client = None

    if "user_context" not in st.session_state:
        st.session_state.user_context = None


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_message_history() -> List[Dict[str, str]]:
    """Format session messages as chatbot history."""
    return [
        {"role": msg["role"], "content": msg["content"]}
        for msg in st.session_state.messages
    ]


def add_message(role: str, content: str, metadata: Optional[Dict] = None):
    st.session_state.messages.append({
        "role": role,
        "content": content,
        "metadata": metadata or {},
        "timestamp": time.time(),
    })


def render_chat_message(message: Dict[str, Any]):
    """Render a single chat message."""
    if message["role"] == "user":
        with st.chat_message("user", avatar="👤"):
            st.markdown(message["content"])
        return

    with st.chat_message("assistant", avatar="🎓"):
        st.markdown(message["content"])

        metadata = message.get("metadata", {})
        if metadata.get("tools_used"):
            with st.expander("ℹ️ Message Details", expanded=False):
                st.caption(f"**Tools Used:** {', '.join(metadata['tools_used'])}")
                st.caption(f"**Iterations:** {metadata.get('iterations', 0)}")
                if metadata.get("used_fallback"):
                    st.caption("**Summarized after reaching the tool limit**")


@st.cache_data(ttl=300, show_spinner=False)
def cached_health_check() -> Dict[str, Any]:
    return health_check()


def sign_in(token: str) -> None:
    """Fetch the current user and keep their client and context."""
    client = SchoolApiClient(base_url=SCHOOL_API_BASE_URL, token=token)
    try:
        me = client.get_me()
    except DomainError as e:
        client.close()
        st.error(f"❌ Could not sign in: {e.public_message or 'unknown error'}")
        return

    st.session_state.api_client = client
    st.session_state.user_context = map_user_to_context(me.get("role"), me)
    st.session_state.messages = []
    logger.info(f"✅ Signed in as role={st.session_state.user_context.get('role')}")


def handle_user_input(user_message: str):
    """Process user input and get bot response."""
    history = format_message_history()
    add_message("user", user_message)

    with st.spinner("🤔 Thinking..."):
        response: ChatResponse = st.session_state.chat_service.ask(
            st.session_state.api_client,
            st.session_state.user_context,
            history,
            user_message,
            session_id=st.session_state.session_id,
        )

    metadata = dict(response.metadata, answer_status=response.status.value)
    add_message("assistant", response.message, metadata=metadata)


# ============================================================================
# SIDEBAR
# ============================================================================

def render_sidebar():
    """Render sidebar with sign-in and controls."""

    with st.sidebar:
        st.markdown("### 🔐 Account")

        context = st.session_state.user_context
        if context:
            st.success(f"Signed in as **{context.get('email')}** ({context.get('role')})")
            if st.button("🚪 Sign out", use_container_width=True):
                st.session_state.api_client.close()
                st.session_state.api_client = None
                st.session_state.user_context = None
                st.session_state.messages = []
                st.rerun()
        else:
            token = st.text_input("Access token", value=SCHOOL_API_TOKEN or "", type="password")
            if st.button("Sign in", use_container_width=True) and token:
                sign_in(token)
                if st.session_state.user_context:
                    st.rerun()

        st.divider()

        with st.expander("📊 System Status", expanded=False):
            report = cached_health_check()
            st.caption(f"**Gemini:** {report['gemini_api']} ({GEMINI_MODEL})")
            embedding = report["embedding_model"]
            st.caption(f"**Embeddings:** {'✅' if embedding['available'] else '❌'} {embedding['name']}")
            st.caption(f"**Tracing:** {report['tracing']}")
            st.caption(f"**Session:** {st.session_state.session_id} · {len(st.session_state.messages)} msgs")

        if st.button("🔄 Clear Conversation", use_container_width=True):
            st.session_state.messages = []
            st.rerun()


# ============================================================================
# MAIN APP
# ============================================================================

def main():
    """Main application entry point."""
    initialize_session_state()
    render_sidebar()

    st.title(APP_TITLE)
    st.markdown(f"#### {APP_SUBTITLE}")

    if not st.session_state.user_context:
        st.info("Sign in from the sidebar to start chatting.")
        return

    for message in st.session_state.messages:
        render_chat_message(message)

    user_input = st.chat_input("Type your question here...", key="chat_input")
    if user_input:
        handle_user_input(user_input)
        st.rerun()

    if len(st.session_state.messages) == 0:
        st.markdown("---")
        st.markdown("### 💡 Example Questions:")

        col1, col2, col3 = st.columns(3)
        with col1:
            if st.button("📚 My courses", use_container_width=True):
                handle_user_input("What courses am I enrolled in?")
                st.rerun()
        with col2:
            if st.button("💳 My bills", use_container_width=True):
                handle_user_input("Do I have any unpaid bills?")
                st.rerun()
        with col3:
            if st.button("🗓️ Enrollment", use_container_width=True):
                handle_user_input("Is enrollment open right now?")
                st.rerun()


if __name__ == "__main__":
    main()
