from core.config import INTERVIEW_QUESTIONS_RAW

GREETING = "Hello! Welcome to the interview. Let's begin with a few technical questions."
REPEAT_PROMPT = "I'm sorry, I couldn't understand that. Could you please repeat?"
NOT_HEARD_PROMPT = "I couldn't hear you clearly. Could you repeat?"
CLOSING = "That's all the time we have. Thank you for your answers!"
UNKNOWN_TOPIC = "unknown topic"

DEFAULT_TECHNICAL_QUESTIONS = [
    "Can you explain the difference between var, let, and const in JavaScript?",
    "What is the event loop in Node.js and how does it work?",
    "How do you handle state management in React applications?",
    "Can you explain the concept of closures in JavaScript?",
    "What are the key features of ES6 that you frequently use?",
]


def dont_know_acknowledgment(topic: str) -> str:
    return f"No problem with {topic}. Let's move to a different topic."


def parse_questions(raw: str) -> list[str]:
    return [item.strip() for item in str(raw or "").split("||") if item.strip()]


def get_initial_questions() -> list[str]:
    configured = parse_questions(INTERVIEW_QUESTIONS_RAW)
    return configured or list(DEFAULT_TECHNICAL_QUESTIONS)
