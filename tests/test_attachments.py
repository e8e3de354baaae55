import base64

import pytest

from attachments import (
    AttachmentReadError,
    PendingUpload,
    file_to_base64,
    image_to_upload,
    read_attachment,
)
from models import GeneratedImage


class BrokenFile:
    name = "broken.png"
    type = "image/png"

    def getvalue(self):
        raise OSError("disk read error")


class DataUrlFile:
    name = "pasted.png"
    type = "image/png"

    def getvalue(self):
        return "data:image/png;base64,aGVsbG8="


@pytest.mark.anyio
async def test_bytes_are_base64_encoded():
    upload = PendingUpload("photo.jpg", "image/jpeg", b"hello")
    assert await file_to_base64(upload) == "aGVsbG8="


@pytest.mark.anyio
async def test_data_url_prefix_is_stripped():
    assert await file_to_base64(DataUrlFile()) == "aGVsbG8="


@pytest.mark.anyio
async def test_read_failure_propagates():
    with pytest.raises(AttachmentReadError, match="disk read error"):
        await file_to_base64(BrokenFile())


@pytest.mark.anyio
async def test_read_attachment_keeps_declared_mime_type():
    attachment = await read_attachment(PendingUpload("photo.webp", "image/webp", b"hello"))
    assert attachment.mime_type == "image/webp"
    assert attachment.data == "aGVsbG8="


def test_image_to_upload_decodes_generated_image(png_b64):
    image = GeneratedImage(id="1-0", data=png_b64, prompt="a red chair")

    upload = image_to_upload(image)

    assert upload.name == "edited-image.png"
    assert upload.type == "image/png"
    assert upload.getvalue() == base64.b64decode(png_b64)


def test_image_to_upload_rejects_corrupt_data():
    with pytest.raises(AttachmentReadError):
        image_to_upload(GeneratedImage(id="1-0", data="not base64!", prompt="x"))
