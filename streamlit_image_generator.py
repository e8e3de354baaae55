import streamlit as st
import asyncio
import base64
import binascii
import logging
from datetime import datetime
from typing import Optional

from attachments import PendingUpload
from chat_controller import ImageChatController
from config import get_settings
from models import ASPECT_RATIOS, MAX_IMAGES, MIN_IMAGES, GeneratedImage, Sender
from session_store import FileKeyValueStore, SessionStore, shorten

logger = logging.getLogger(__name__)

UNREADABLE_IMAGE = "⚠️ Image data could not be read"

# Configure Streamlit page
st.set_page_config(
    page_title="AI Image Studio",
    page_icon="🎨",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
.reference-caption { color: #8ab4f8; font-size: 0.8rem; font-weight: 600; }
.stButton > button {
    width: 100%;
}
</style>
""", unsafe_allow_html=True)


def _decode(data: str) -> Optional[bytes]:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Skipping undecodable image data: {str(e)}")
        return None


def show_image(data: str, **kwargs) -> Optional[bytes]:
    """Render base64 image data, or a placeholder when it cannot be decoded."""
    raw = _decode(data)
    if raw is None:
        st.caption(UNREADABLE_IMAGE)
    else:
        st.image(raw, **kwargs)
    return raw


def _format_date(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime('%Y-%m-%d')


class ImageGeneratorChat:
    """Main class for the Image Studio chat application"""

    def __init__(self):
        self.settings = get_settings()
        self.initialize_session_state()

    @property
    def controller(self) -> ImageChatController:
        return st.session_state.controller

    def initialize_session_state(self):
        """Initialize all session state variables"""
        if "controller" not in st.session_state:
            store = SessionStore.load(FileKeyValueStore(self.settings.data_dir))
            st.session_state.controller = ImageChatController(store, api_key=self.settings.api_key)

        defaults = {
            "prompt_input": "",
            "uploader_counter": 0,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @property
    def uploader_key(self) -> str:
        return f"uploader_{st.session_state.uploader_counter}"

    def reset_uploader(self):
        st.session_state.uploader_counter += 1

    # -- callbacks -----------------------------------------------------------

    def on_send(self):
        controller = self.controller
        controller.input_text = st.session_state.prompt_input
        uploaded = st.session_state.get(self.uploader_key)
        if uploaded is not None:
            controller.pending_upload = uploaded

        if not controller.can_send():
            return

        st.session_state.prompt_input = ""
        self.reset_uploader()
        count = controller.current.number_of_images
        with st.spinner(f"Generating {count} image{'s' if count != 1 else ''}..."):
            asyncio.run(controller.send())

    def on_reuse_image(self, image: GeneratedImage):
        self.controller.reuse_image(image)
        st.session_state.prompt_input = ""
        self.reset_uploader()

    def on_discard_pending(self):
        self.controller.pending_upload = None
        self.reset_uploader()

    def on_new_session(self):
        if self.controller.create_session() is not None:
            st.session_state.prompt_input = ""
            self.reset_uploader()

    def on_aspect_ratio_change(self):
        self.controller.set_aspect_ratio(st.session_state.aspect_ratio_select)

    def on_image_count_change(self):
        self.controller.set_number_of_images(st.session_state.image_count_select)

    def on_set_api_key(self):
        api_key = st.session_state.get("api_key_input")
        if api_key:
            self.controller.api_key = api_key
            logger.info("API key set for this browser session")

    # -- rendering -----------------------------------------------------------

    def render_image_actions(self, image: GeneratedImage, key_prefix: str, raw: Optional[bytes]):
        # Undecodable images can be neither reused nor downloaded
        if raw is None:
            return
        col1, col2 = st.columns(2)
        with col1:
            st.button(
                "✏️ Edit this",
                key=f"{key_prefix}_reuse_{image.id}",
                on_click=self.on_reuse_image,
                args=(image,),
                disabled=self.controller.is_loading,
                use_container_width=True
            )
        with col2:
            st.download_button(
                label="📥 Download",
                data=raw,
                file_name=f"design-{image.id}.png",
                mime="image/png",
                key=f"{key_prefix}_download_{image.id}",
                use_container_width=True
            )

    def render_messages(self):
        session = self.controller.current
        if not session.messages:
            st.info("Describe a product or upload an image to get started.")
            return

        for message in session.messages:
            role = "user" if message.sender == Sender.USER else "assistant"
            with st.chat_message(role):
                if message.text:
                    st.markdown(message.text)
                for attachment in message.attachments or []:
                    show_image(attachment.data, width=160)
                for image in message.generated_images or []:
                    raw = show_image(image.data, use_container_width=True)
                    self.render_image_actions(image, f"msg_{message.id}", raw)

    def render_input(self):
        controller = self.controller
        session = controller.current

        pending = controller.pending_upload
        if isinstance(pending, PendingUpload):
            st.image(pending.getvalue(), width=120)
            st.caption(f"Pending upload: {pending.name}")
            st.button("Discard", on_click=self.on_discard_pending, key="discard_pending")
        elif session.active_reference_image is not None:
            st.markdown('<span class="reference-caption">Using Reference Image</span>', unsafe_allow_html=True)

        st.file_uploader(
            "📎 Upload an image",
            type=["png", "jpg", "jpeg", "webp"],
            key=self.uploader_key,
            disabled=controller.is_loading
        )

        placeholder = ("Describe changes (e.g., 'add trees', 'make it night')..."
                       if session.active_reference_image is not None and pending is None
                       else "Describe a product, scene, or style...")
        st.text_input("Prompt", key="prompt_input", placeholder=placeholder, label_visibility="collapsed")
        st.button(
            "Send",
            key="send",
            type="primary",
            on_click=self.on_send,
            disabled=controller.is_loading,
            use_container_width=True
        )

    def render_gallery(self):
        st.subheader("🖼️ Gallery")
        gallery = self.controller.current.gallery
        if not gallery:
            st.info("No creations yet. Your generated images and edits will appear here.")
            return

        for idx, image in enumerate(reversed(gallery), 1):
            with st.expander(f"Image: {shorten(image.prompt)}", expanded=(idx == 1)):
                raw = show_image(image.data, use_container_width=True)
                st.caption(f"**Prompt:** {image.prompt}")
                self.render_image_actions(image, "gallery", raw)

    def render_sidebar(self):
        controller = self.controller
        session = controller.current

        with st.sidebar:
            st.button(
                "➕ New Project",
                key="new_project",
                type="primary",
                on_click=self.on_new_session,
                disabled=controller.is_loading,
                use_container_width=True
            )

            st.subheader("History")
            sessions = controller.store.sessions
            for item in sessions:
                col1, col2 = st.columns([5, 1])
                with col1:
                    st.button(
                        f"{item.display_title}  ·  {_format_date(item.last_modified)}",
                        key=f"select_{item.id}",
                        type="primary" if item.id == session.id else "secondary",
                        on_click=controller.select_session,
                        args=(item.id,),
                        disabled=controller.is_loading,
                        use_container_width=True
                    )
                with col2:
                    if len(sessions) > 1:
                        st.button(
                            "🗑️",
                            key=f"delete_{item.id}",
                            help="Delete Session",
                            on_click=controller.delete_session,
                            args=(item.id,),
                            disabled=controller.is_loading
                        )

            st.divider()

            st.subheader("⚙️ Generation Settings")
            st.session_state.aspect_ratio_select = session.aspect_ratio
            st.selectbox(
                "Aspect Ratio",
                ASPECT_RATIOS,
                key="aspect_ratio_select",
                on_change=self.on_aspect_ratio_change
            )
            st.session_state.image_count_select = session.number_of_images
            st.radio(
                "Number of Images",
                list(range(MIN_IMAGES, MAX_IMAGES + 1)),
                key="image_count_select",
                horizontal=True,
                on_change=self.on_image_count_change
            )

            if session.active_reference_image is not None:
                st.divider()
                st.subheader("Reference Image")
                show_image(session.active_reference_image.data, use_container_width=True)
                st.button(
                    "Clear Reference",
                    on_click=controller.clear_reference,
                    disabled=controller.is_loading,
                    use_container_width=True
                )

            if not controller.api_key:
                st.divider()
                st.text_input(
                    "🔑 OpenAI API Key",
                    type="password",
                    key="api_key_input",
                    placeholder="sk-...",
                    help="Used for this browser session only and never saved"
                )
                st.button("Set API Key", on_click=self.on_set_api_key)

            st.divider()
            st.metric("Images in Project", len(session.gallery))
            st.caption(f"Model: {self.settings.image_model}")

    def render_ui(self):
        """Render the main UI"""
        self.render_sidebar()

        title = self.controller.current.display_title
        st.title(f"🎨 {title}")

        if not self.controller.api_key:
            st.warning("⚠️ Set OPENAI_API_KEY or enter a key in the sidebar to generate images")

        chat_col, image_col = st.columns([2, 3])

        with chat_col:
            st.subheader("💬 Chat")
            message_container = st.container(height=550)
            with message_container:
                self.render_messages()
            self.render_input()

        with image_col:
            self.render_gallery()


def main():
    """Main application entry point"""
    app = ImageGeneratorChat()
    app.render_ui()


if __name__ == "__main__":
    main()
