"""
Unit Tests: Prompt Rendering

Gemma turn rendering and image interleaving.
"""

import pytest

from core.ai.prompting import (
    END_TURN,
    MODEL_TURN,
    USER_TURN,
    ImageInput,
    build_multimodal_input,
    normalise_image,
    render_turns,
)

pytestmark = pytest.mark.unit


class TestRenderTurns:
    """Test render_turns()."""

    def test_system_hoisted_to_front(self):
        messages = [
            {"role": "user", "content": "first"},
            {"role": "system", "content": "rules"},
            {"role": "assistant", "content": "reply"},
            {"role": "user", "content": "second"},
        ]

        prompt = render_turns(messages)

        assert prompt == (
            USER_TURN + "rules" + END_TURN
            + USER_TURN + "first" + END_TURN
            + MODEL_TURN + "reply" + END_TURN
            + USER_TURN + "second" + END_TURN
            + MODEL_TURN
        )

    def test_closed_prompt(self):
        prompt = render_turns([{"role": "user", "content": "hi"}], open_model_turn=False)
        assert prompt == "<start_of_turn>user\nhi<end_of_turn>\n"

    def test_empty_system_dropped(self):
        prompt = render_turns([{"role": "system", "content": ""}, {"role": "user", "content": "x"}])
        assert prompt.count(USER_TURN) == 1


class TestBuildMultimodalInput:
    """Test build_multimodal_input()."""

    def test_images_precede_last_user_text(self):
        parts = build_multimodal_input(
            [{"role": "user", "content": "describe"}],
            ["AAA", "data:image/jpeg;base64,BBB"],
        )

        assert parts == [
            USER_TURN,
            ImageInput(data="AAA"),
            " ",
            ImageInput(data="BBB", mime_type="image/jpeg"),
            " ",
            "describe",
            END_TURN + MODEL_TURN,
        ]

    def test_history_rendered_before_last_user(self):
        messages = [
            {"role": "system", "content": "rules"},
            {"role": "user", "content": "earlier"},
            {"role": "assistant", "content": "answer"},
            {"role": "user", "content": "now"},
        ]

        parts = build_multimodal_input(messages, ["AAA"])

        assert parts[0] == (
            USER_TURN + "rules" + END_TURN
            + USER_TURN + "earlier" + END_TURN
            + MODEL_TURN + "answer" + END_TURN
            + USER_TURN
        )
        assert parts[-2] == "now"

    def test_no_user_message(self):
        parts = build_multimodal_input([{"role": "system", "content": "rules"}], ["AAA"])
        assert parts[-2] == ""


class TestNormaliseImage:
    """Test normalise_image()."""

    def test_passthrough(self):
        image = ImageInput(data="x", mime_type="image/gif")
        assert normalise_image(image) is image

    def test_data_url(self):
        assert normalise_image("data:image/webp;base64,Zm9v") == ImageInput(data="Zm9v", mime_type="image/webp")

    def test_bare_base64(self):
        assert normalise_image("Zm9v") == ImageInput(data="Zm9v", mime_type="image/png")

    def test_unsupported(self):
        with pytest.raises(ValueError):
            normalise_image(b"raw bytes")
