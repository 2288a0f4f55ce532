"""
Streamlit Frontend for the ZZP Assistant

A chat window over the drafting engine. Everything the user types goes
through ``AssistantRouter.classify_and_route``; the page only renders the
replies.

DESIGN PRINCIPLES:
1. One question at a time, in plain Dutch
2. Nothing is created until the assistant has every required field
3. Created records are shown so the user can check them
4. Clear error messages, never stack traces
"""

import asyncio

import streamlit as st

from zzp_assistant.audit import create_request_id
from zzp_assistant.config import validate_all_settings
from zzp_assistant.models.results import RouterResult
from zzp_assistant.orchestrator import AssistantRouter, create_app_components


# Page configuration
st.set_page_config(
    page_title="ZZP Assistent",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .success-box {
        padding: 16px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .info-box {
        padding: 16px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Opslag kon niet worden gestart: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    router, _ = get_components()

    st.sidebar.title("🧾 ZZP Assistent")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Ga naar:",
        ["💬 Chat", "⚙️ Instellingen"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.text_input("Gebruiker", value="demo", key="user_id")
    st.sidebar.markdown(
        """
        **Probeer bijvoorbeeld:**
        - "Maak een factuur voor Jansen, 10 uur @ 75"
        - "Nieuwe klant Bakkerij de Vries, info@bakkerij.nl"
        - "Uitgave tanken 65,40 euro gisteren"
        - "Hoeveel btw moet ik dit kwartaal betalen?"
        - "annuleren"
        """
    )

    if page == "💬 Chat":
        render_chat_page(router)
    elif page == "⚙️ Instellingen":
        render_settings_page()


def render_chat_page(router: AssistantRouter):
    """Render the chat with the assistant."""
    st.title("💬 Chat")

    if "messages" not in st.session_state:
        st.session_state.messages = []

    for entry in st.session_state.messages:
        with st.chat_message(entry["role"]):
            st.markdown(entry["content"])

    prompt = st.chat_input("Wat wil je doen?")
    if not prompt:
        return

    st.session_state.messages.append({"role": "user", "content": prompt})
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        with st.spinner("Even denken..."):
            try:
                result = run_async(
                    router.classify_and_route(
                        prompt,
                        user_id=st.session_state.user_id or "demo",
                        request_id=create_request_id(),
                    )
                )
            except Exception as e:
                st.error(f"Er ging iets mis: {str(e)}")
                return

        render_result(result)

    st.session_state.messages.append({"role": "assistant", "content": result.message or ""})


def render_result(result: RouterResult):
    """Show one reply, with the created record or query data when there is one."""
    st.markdown(result.message or "")

    if result.needs_confirmation and result.data:
        st.markdown(
            '<div class="success-box">Controleer de geregistreerde gegevens hieronder.</div>',
            unsafe_allow_html=True,
        )

    if result.data:
        with st.expander("🔍 Details"):
            st.markdown(f"**Type:** {result.type or result.intent}")
            st.json(result.data)

    if result.needs_more_info and result.missing_fields:
        st.caption("Nog nodig: " + ", ".join(result.missing_fields))


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Instellingen")

    st.markdown("### Verbindingen")

    status = validate_all_settings()

    services = [
        ("Google Sheets (concepten en auditlog)", "google_sheets"),
        ("Productdocumentatie (helpvragen)", "knowledge"),
        ("Applicatie-instellingen", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Niet geconfigureerd")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuratie")
    st.markdown(
        "Zonder Google Sheets draait de assistent volledig in het geheugen. "
        "Zet de `GOOGLE_SHEETS_*` variabelen in een `.env` bestand om concepten "
        "en het auditlog te bewaren. Zie `.env.example` voor alle variabelen."
    )


if __name__ == "__main__":
    main()
