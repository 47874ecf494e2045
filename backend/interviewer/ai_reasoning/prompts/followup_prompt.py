SYSTEM_PROMPT = "You are a professional technical interviewer."


def _join(items) -> str:
    values = [str(item).strip() for item in (items or []) if str(item or "").strip()]
    return ", ".join(values) if values else "NONE"


def build_followup_prompt(context: dict) -> str:
    return f"""
Context: You are conducting an interview for a {context.get("role", "software engineer")} role.

Rules:
- Focus on evaluating the candidate's technical depth.
- Ask skill-specific, tricky, and to-the-point questions.
- Ask exactly ONE short question.
- Do NOT repeat already asked questions.
- Avoid topics the candidate does not know.
- Do NOT give hints, explanations, or numbering.

Topics the candidate does not know:
{_join(context.get("dont_know_topics"))}

Questions already asked:
{_join(context.get("asked_questions"))}

Candidate response:
{context.get("transcript", "")}

Generate one short technical follow-up question.
"""
