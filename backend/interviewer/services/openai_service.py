import asyncio
import logging
import re

from openai import AsyncOpenAI

from core.config import LLM_RETRIES, LLM_TIMEOUT_SEC, MODEL_NAME, OPENAI_API_KEY
from interviewer.ai_reasoning.prompts.followup_prompt import SYSTEM_PROMPT, build_followup_prompt
from interviewer.errors import GenerationFailure

logger = logging.getLogger("interviewer.services.openai_service")


def build_openai_client(api_key: str | None = None) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=api_key or OPENAI_API_KEY or None)


def _clean_question(raw_text: str) -> str:
    text = str(raw_text or "").replace("\r", "\n").strip()
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    if not lines:
        return ""

    line = lines[0]
    line = re.sub(r"[`*_#]", "", line)
    line = re.sub(r"^(?:[-•]|\d+[.)])\s*", "", line.strip())
    line = re.sub(r"^(?:follow[- ]up question|question)\s*:\s*", "", line, flags=re.IGNORECASE)
    line = re.sub(r"\s+", " ", line)
    return line.strip().strip("\"'“”").strip()


class FollowUpGenerator:
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = MODEL_NAME,
        timeout_sec: float = LLM_TIMEOUT_SEC,
        retries: int = LLM_RETRIES,
    ):
        self.client = client or build_openai_client()
        self.model = model
        self.timeout_sec = timeout_sec
        self.retries = retries

    def build_prompt(self, role: str, asked_questions: list[str], dont_know_topics: list[str], transcript: str) -> str:
        return build_followup_prompt({
            "role": role,
            "asked_questions": list(asked_questions or []),
            "dont_know_topics": list(dont_know_topics or []),
            "transcript": transcript,
        })

    async def _create_with_retry(self, prompt: str):
        last_error: Exception | None = None
        for attempt in range(max(1, self.retries + 1)):
            try:
                return await asyncio.wait_for(
                    self.client.chat.completions.create(
                        model=self.model,
                        messages=[
                            {"role": "system", "content": SYSTEM_PROMPT},
                            {"role": "user", "content": prompt},
                        ],
                        temperature=0.7,
                    ),
                    timeout=self.timeout_sec,
                )
            except asyncio.TimeoutError as exc:
                last_error = exc
                logger.warning("LLM timeout | model=%s attempt=%s", self.model, attempt + 1)
            except Exception as exc:
                last_error = exc
                logger.warning("LLM failure | model=%s attempt=%s err=%s", self.model, attempt + 1, exc)

            if attempt < self.retries:
                await asyncio.sleep(0.4 * (attempt + 1))

        raise GenerationFailure(f"LLM request failed after retries: {last_error}") from last_error

    async def generate(self, role: str, asked_questions: list[str], dont_know_topics: list[str], transcript: str) -> str:
        prompt = self.build_prompt(role, asked_questions, dont_know_topics, transcript)
        response = await self._create_with_retry(prompt)

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise GenerationFailure(f"Malformed LLM response: {exc}") from exc

        question = _clean_question(content)
        if not question:
            raise GenerationFailure("LLM returned an empty follow-up question")
        return question
