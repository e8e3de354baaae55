"""
Send flow: turns a user's prompt and upload into chat messages and gallery images.
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

from attachments import AttachmentReadError, image_to_upload, read_attachment
from image_generator import generate_or_edit_image
from models import (
    GeneratedImage,
    ImageAttachment,
    Message,
    Sender,
    Session,
    now_ms,
    validate_aspect_ratio,
    validate_number_of_images,
)
from session_store import SessionStore, derive_title

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "Unknown error occurred."

GenerateFn = Callable[..., Awaitable[List[str]]]


def summarize_generation(text: str, aspect_ratio: str, count: int,
                         used_reference: bool, new_upload: bool) -> str:
    """Human-readable reply for a successful generation."""
    count_text = f" {count} images" if count > 1 else ""

    if used_reference and not new_upload:
        return f'I\'ve updated the reference image based on: "{text}" ({aspect_ratio}){count_text}'
    if new_upload:
        if text:
            return f'Here is a variation based on your new image: "{text}" ({aspect_ratio}){count_text}'
        return f"Here is a variation of your uploaded image ({aspect_ratio}){count_text}"

    what = f"{count} images" if count > 1 else "an image"
    return f'I\'ve generated {what} for you based on: "{text}" ({aspect_ratio})'


def error_reply(error: Exception) -> str:
    return f"I encountered an error: {str(error) or UNKNOWN_ERROR}. Please try again."


class ImageChatController:
    """
    Owns the session store plus the draft state of the input area
    (prompt text, pending upload, loading flag).
    """

    def __init__(self, store: SessionStore, generate: GenerateFn = generate_or_edit_image,
                 api_key: Optional[str] = None):
        self.store = store
        self.generate = generate
        self.api_key = api_key
        self.input_text = ""
        self.pending_upload: Any = None
        self.is_loading = False
        self._last_message_id = 0

    @property
    def current(self) -> Session:
        return self.store.current

    def _next_id(self) -> str:
        self._last_message_id = max(now_ms(), self._last_message_id + 1)
        return str(self._last_message_id)

    def can_send(self) -> bool:
        if self.is_loading:
            return False
        return bool(self.input_text.strip() or self.pending_upload is not None
                    or self.current.active_reference_image is not None)

    async def send(self) -> bool:
        """
        Run one send. Returns False when the send was ignored (already
        loading, nothing to send, or the upload could not be read).
        """
        if not self.can_send():
            return False

        text = self.input_text.strip()
        upload = self.pending_upload
        session = self.current
        aspect_ratio = session.aspect_ratio
        number_of_images = session.number_of_images or 1

        self.input_text = ""
        self.pending_upload = None
        self.is_loading = True

        try:
            attachment_for_request: Optional[ImageAttachment] = None
            message_attachments: List[ImageAttachment] = []

            if upload is not None:
                try:
                    new_attachment = await read_attachment(upload)
                except AttachmentReadError as e:
                    logger.error(f"Failed to process file: {str(e)}")
                    return False
                message_attachments.append(new_attachment)
                attachment_for_request = new_attachment
                self.store.update_current(
                    lambda s: s.model_copy(update={"active_reference_image": new_attachment})
                )
            elif session.active_reference_image is not None:
                attachment_for_request = session.active_reference_image

            self._append_user_message(text, message_attachments)

            try:
                images = await self.generate(
                    text, aspect_ratio, number_of_images, attachment_for_request,
                    api_key=self.api_key,
                )
            except Exception as e:
                logger.error(f"Generation failed: {str(e)}")
                self._append_messages(Message(id=self._next_id(), sender=Sender.AI, text=error_reply(e)))
                return True

            stamp = now_ms()
            prompt_label = text or ("Variation of image" if attachment_for_request else "Generated Image")
            generated = [
                GeneratedImage(id=f"{stamp}-{idx}", data=data, prompt=prompt_label, timestamp=stamp)
                for idx, data in enumerate(images)
            ]
            reply = summarize_generation(
                text, aspect_ratio, len(generated),
                used_reference=attachment_for_request is not None,
                new_upload=upload is not None,
            )
            self._append_messages(
                Message(id=self._next_id(), sender=Sender.AI, text=reply, generated_images=generated),
                gallery=generated,
            )
            logger.info(f"Added {len(generated)} image(s) to session {self.current.id}")
            return True
        finally:
            self.is_loading = False

    def _append_user_message(self, text: str, attachments: List[ImageAttachment]) -> None:
        message = Message(
            id=self._next_id(),
            sender=Sender.USER,
            text=text or None,
            attachments=attachments or None,
        )

        def add(session: Session) -> Session:
            title = session.title or derive_title(text, bool(attachments))
            return session.model_copy(update={"messages": session.messages + [message], "title": title})

        self.store.update_current(add)

    def _append_messages(self, message: Message, gallery: Optional[List[GeneratedImage]] = None) -> None:
        def add(session: Session) -> Session:
            update = {"messages": session.messages + [message]}
            if gallery:
                update["gallery"] = session.gallery + list(gallery)
            return session.model_copy(update=update)

        self.store.update_current(add)

    def reuse_image(self, image: GeneratedImage) -> None:
        """Queue a generated image as the next upload and clear the prompt."""
        self.pending_upload = image_to_upload(image)
        self.input_text = ""

    def clear_reference(self) -> None:
        self.store.update_current(lambda s: s.model_copy(update={"active_reference_image": None}))

    def set_aspect_ratio(self, aspect_ratio: str) -> None:
        validate_aspect_ratio(aspect_ratio)
        self.store.update_current(lambda s: s.model_copy(update={"aspect_ratio": aspect_ratio}))

    def set_number_of_images(self, count: int) -> None:
        validate_number_of_images(count)
        self.store.update_current(lambda s: s.model_copy(update={"number_of_images": count}))

    def create_session(self) -> Optional[Session]:
        if self.is_loading:
            return None
        self.input_text = ""
        self.pending_upload = None
        return self.store.create_session()

    def select_session(self, session_id: str) -> None:
        if not self.is_loading:
            self.store.select_session(session_id)

    def delete_session(self, session_id: str) -> None:
        if not self.is_loading:
            self.store.delete_session(session_id)
