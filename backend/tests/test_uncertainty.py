import pytest

from interviewer.services.uncertainty_service import DONT_KNOW_PHRASES, user_doesnt_know


@pytest.mark.parametrize("phrase", DONT_KNOW_PHRASES)
def test_every_phrase_matches_in_any_casing(phrase: str):
    assert user_doesnt_know(f"Well... {phrase}, honestly.") is True
    assert user_doesnt_know(phrase.upper()) is True
    assert user_doesnt_know(phrase.title()) is True


@pytest.mark.parametrize(
    "transcript",
    [
        "I'm not sure about that",
        "Honestly I have NO IDEA how the event loop works",
        "I can't recall the exact syntax",
    ],
)
def test_common_uncertain_answers(transcript: str):
    assert user_doesnt_know(transcript) is True


@pytest.mark.parametrize(
    "transcript",
    [
        "Closures capture variables from the enclosing scope.",
        "The event loop drains the microtask queue before the next macrotask.",
        "I know this one: let is block scoped.",
    ],
)
def test_confident_answers_do_not_match(transcript: str):
    assert user_doesnt_know(transcript) is False


@pytest.mark.parametrize("value", [None, "", 42, b"don't know", ["no idea"], {"text": "not sure"}])
def test_malformed_input_returns_false_without_raising(value):
    assert user_doesnt_know(value) is False
