"""LangChain ChatAnthropic wrapper for image + prompt vision calls."""

from __future__ import annotations

import logging

from app.config import settings
from app.llm.model_router import get_model_for_task
from app.llm.prompts import get_prompt_template

logger = logging.getLogger(__name__)

_MAX_TOKENS = {
    "detect": 2500,
    "retry": 2000,
    "verify": 1500,
}


async def get_vision_response(task: str, prompt: str, image_url: str) -> str:
    """Send one image + prompt to the vision model; return its text ("" if unavailable)."""
    if not settings.anthropic_api_key:
        logger.warning("Vision oracle not configured: set ANTHROPIC_API_KEY in .env")
        return ""

    from langchain_anthropic import ChatAnthropic
    from langchain_core.messages import HumanMessage, SystemMessage

    llm = ChatAnthropic(
        model=get_model_for_task(task),
        api_key=settings.anthropic_api_key,
        max_tokens=_MAX_TOKENS.get(task, 2000),
    )

    system_msg, _ = get_prompt_template(task)
    message = HumanMessage(
        content=[
            {"type": "image", "source": {"type": "url", "url": image_url}},
            {"type": "text", "text": prompt},
        ]
    )

    response = await llm.ainvoke([SystemMessage(content=system_msg), message])
    content = response.content
    if isinstance(content, list):
        return "".join(block.get("text", "") for block in content if isinstance(block, dict))
    return str(content)
