import logging

logger = logging.getLogger("uncertainty")

DONT_KNOW_PHRASES = (
    "don't know",
    "do not know",
    "i am not sure",
    "i am unsure",
    "i have no idea",
    "sorry, i don't know",
    "can't recall",
    "cannot recall",
    "don't remember",
    "i am sorry",
    "i'm sorry",
    "i am not familiar",
    "not sure",
    "no idea",
)


def user_doesnt_know(transcript) -> bool:
    if not transcript or not isinstance(transcript, str):
        logger.warning("Received invalid transcript | type=%s", type(transcript).__name__)
        return False

    lowered = transcript.lower()
    return any(phrase in lowered for phrase in DONT_KNOW_PHRASES)
