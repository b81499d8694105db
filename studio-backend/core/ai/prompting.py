"""
Prompt Rendering

Turns role/content message lists into the single-string prompt format the
multimodal backend expects (Gemma turn delimiters), and interleaves image
inputs ahead of the user's text.

@.architecture
Incoming: core/ai/orchestrator.py, core/ai/backends/multimodal.py --- {List[Dict] messages, Sequence images}
Processing: render_turns(), build_multimodal_input(), normalise_image() --- {3 jobs: system_hoisting, turn_delimiting, image_interleaving}
Outgoing: core/ai/backends/multimodal.py --- {str prompt, List[PromptPart] interleaved parts}
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Union

USER_TURN = "<start_of_turn>user\n"
MODEL_TURN = "<start_of_turn>model\n"
END_TURN = "<end_of_turn>\n"


@dataclass(frozen=True)
class ImageInput:
    """Base64 image payload without any data: URL prefix."""
    data: str
    mime_type: str = "image/png"


PromptPart = Union[str, ImageInput]


def normalise_image(image: Any) -> ImageInput:
    """
    Accept an ImageInput, a bare base64 string or a data: URL.

    Raises:
        ValueError: unsupported image value
    """
    if isinstance(image, ImageInput):
        return image
    if isinstance(image, str):
        if image.startswith("data:"):
            header, _, payload = image.partition(",")
            mime = header[len("data:"):].split(";")[0] or "image/png"
            return ImageInput(data=payload, mime_type=mime)
        return ImageInput(data=image)
    raise ValueError(f"Unsupported image input: {type(image).__name__}")


def render_turns(messages: Sequence[Dict[str, Any]], open_model_turn: bool = True) -> str:
    """
    Render messages with Gemma turn delimiters.

    System messages have no turn of their own; they are hoisted to the front
    as one user turn. Assistant messages become model turns.
    """
    system = [m["content"] for m in messages if m.get("role") == "system" and m.get("content")]
    prompt = ""
    if system:
        prompt += USER_TURN + "\n\n".join(system) + END_TURN

    for message in messages:
        role = message.get("role")
        if role == "user":
            prompt += USER_TURN + message.get("content", "") + END_TURN
        elif role == "assistant":
            prompt += MODEL_TURN + message.get("content", "") + END_TURN

    if open_model_turn:
        prompt += MODEL_TURN
    return prompt


def build_multimodal_input(
    messages: Sequence[Dict[str, Any]],
    images: Sequence[Any],
) -> List[PromptPart]:
    """
    Interleave images into the last user turn.

    Earlier turns are rendered as text. The last user message becomes
    ``user turn, image, " ", image, " ", ..., text, end turn, model turn``.
    """
    last_user = None
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].get("role") == "user":
            last_user = index
            break

    if last_user is None:
        history, text = list(messages), ""
    else:
        history = list(messages[:last_user])
        text = messages[last_user].get("content", "")

    parts: List[PromptPart] = []
    prefix = render_turns(history, open_model_turn=False)
    parts.append(prefix + USER_TURN)
    for image in images:
        parts.append(normalise_image(image))
        parts.append(" ")
    parts.append(text)
    parts.append(END_TURN + MODEL_TURN)
    return parts
