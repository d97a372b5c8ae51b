from __future__ import annotations

import time
from typing import AsyncIterator

from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from travel_agent.core.config import OPENAI_API_KEY, OPENAI_MODEL, OPENAI_TEMPERATURE
from travel_agent.core.errors import ProviderError


AGENT_LABEL = "itinerary_generator"


# ====== Prompt ======

# Literal braces are doubled for ChatPromptTemplate
SYSTEM = """你是專業的旅遊規劃專家。請為用戶規劃 {days} 天的旅遊行程。

嚴格遵守以下 JSON 結構：
{{
  "title": "行程標題（繁體中文）",
  "days": [
    {{
      "day": 1,
      "theme": "主題（可選，繁體中文）",
      "stops": [
        {{
          "name": "景點名稱",
          "description": "景點描述",
          "duration_minutes": 180
        }}
      ]
    }}
  ]
}}

重要規則：
1. JSON Key 必須是英文
2. 所有 Value（景點名稱、描述、主題）必須使用繁體中文
3. day 從 1 開始計數
4. duration_minutes 必須是數字（分鐘）
5. 每天至少要有 2 個景點，每天 3-5 個景點為佳
6. 只回傳 JSON，不要加上任何說明文字或程式碼區塊"""

USER = "請為以下需求創建旅遊行程：{prompt}"


def build_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages([("system", SYSTEM), ("user", USER)])


# ====== Generator ======


class ItineraryGenerator:
    """
    Chat-completion provider for itineraries. Produces raw JSON text;
    validation and persistence happen in the generation session.
    """

    def __init__(self, llm: ChatOpenAI | None = None) -> None:
        self.llm = llm
        self._llm_unavailable_reason: str = ""
        if self.llm is None:
            if OPENAI_API_KEY:
                try:
                    self.llm = ChatOpenAI(
                        model=OPENAI_MODEL,
                        temperature=OPENAI_TEMPERATURE,
                        api_key=OPENAI_API_KEY,
                    )
                except Exception as e:
                    self._llm_unavailable_reason = f"Failed to initialize OpenAI client: {e}"
            else:
                self._llm_unavailable_reason = "No API key found in OPENAI_API_KEY"
        self.prompt = build_prompt()

    def _chain(self):
        if self.llm is None:
            print(f"[{AGENT_LABEL}] LLM unavailable: {self._llm_unavailable_reason}")
            raise ProviderError("LLM unavailable", details=self._llm_unavailable_reason)
        return self.prompt | self.llm.bind(response_format={"type": "json_object"})

    async def stream(self, prompt: str, days: int) -> AsyncIterator[str]:
        """Yield text deltas as the provider produces them."""
        chain = self._chain()
        t0 = time.time()
        total = 0
        print(f"[{AGENT_LABEL}] Streaming {days}-day itinerary for: {prompt}")
        try:
            async for chunk in chain.astream({"prompt": prompt, "days": days}):
                content = chunk.content if isinstance(chunk.content, str) else ""
                if content:
                    total += len(content)
                    yield content
        except Exception as e:
            print(f"[{AGENT_LABEL}] ❌ Stream failed: {type(e).__name__}: {e}")
            raise ProviderError("生成失敗", details=str(e)) from e

        print(f"[PERF] Stream finished: {total} chars in {(time.time() - t0) * 1000:.2f}ms")

    async def generate(self, prompt: str, days: int) -> str:
        """Return the full completion text in one call."""
        chain = self._chain()
        t0 = time.time()
        print(f"[{AGENT_LABEL}] Generating {days}-day itinerary for: {prompt}")
        try:
            message = await chain.ainvoke({"prompt": prompt, "days": days})
        except Exception as e:
            print(f"[{AGENT_LABEL}] ❌ OpenAI API call failed: {type(e).__name__}: {e}")
            raise ProviderError("Failed to generate", details=str(e)) from e

        content = message.content if isinstance(message.content, str) else ""
        if not content:
            raise ProviderError("AI returned empty response")
        print(f"[PERF] API latency: {(time.time() - t0) * 1000:.2f}ms")
        return content


_generator: ItineraryGenerator | None = None


def get_generator() -> ItineraryGenerator:
    global _generator
    if _generator is None:
        _generator = ItineraryGenerator()
    return _generator


__all__ = ["ItineraryGenerator", "build_prompt", "get_generator", "SYSTEM"]
