import os

import pytest
from streamlit.testing.v1 import AppTest

from models import GeneratedImage, Message, Sender, Session
from session_store import CURRENT_ID_KEY, SESSIONS_KEY, FileKeyValueStore, serialize_sessions

APP_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "streamlit_image_generator.py")


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("IMAGE_STUDIO_DATA_DIR", str(tmp_path / "studio"))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    return AppTest.from_file(APP_PATH, default_timeout=30)


def test_app_starts_with_an_untitled_project(app):
    app.run()

    assert not app.exception
    assert app.title[0].value == "🎨 Untitled Project"
    assert len(app.session_state["controller"].store.sessions) == 1


def test_new_project_button_adds_a_session(app):
    app.run()
    app.button(key="new_project").click().run()

    assert not app.exception
    store = app.session_state["controller"].store
    assert len(store.sessions) == 2
    assert store.current_id == store.sessions[0].id


def test_corrupt_image_data_renders_a_placeholder(app, tmp_path, png_b64):
    broken = GeneratedImage(id="2-0", data="not base64!", prompt="a red chair", timestamp=2)
    good = GeneratedImage(id="2-1", data=png_b64, prompt="y" * 40, timestamp=2)
    session = Session(
        id="1",
        title="a red chair",
        messages=[Message(id="2", sender=Sender.AI, text="done", generated_images=[broken], timestamp=2)],
        gallery=[good, broken],
    )
    storage = FileKeyValueStore(str(tmp_path / "studio"))
    storage.set_item(SESSIONS_KEY, serialize_sessions([session]))
    storage.set_item(CURRENT_ID_KEY, "1")

    app.run()

    assert not app.exception
    captions = [caption.value for caption in app.caption]
    assert captions.count("⚠️ Image data could not be read") == 2
    labels = [expander.label for expander in app.expander]
    assert labels == ["Image: a red chair", "Image: " + "y" * 30 + "..."]
