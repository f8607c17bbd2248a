import time
import logging
from typing import Callable, Any, Optional
import os
from functools import lru_cache

from groq import Groq

from app.settings import AI_REQUEST_TIMEOUT_SECONDS, GROQ_MODEL

logger = logging.getLogger(__name__)


def generate_with_backoff(callable_fn: Callable[[], Any], max_retries: int = 3, initial_delay: float = 1.0) -> Any:
    delay = initial_delay
    for attempt in range(1, max_retries + 1):
        try:
            return callable_fn()
        except Exception as e:
            logger.warning(f"LLM call attempt {attempt} failed: {e}")
            if attempt == max_retries:
                logger.error("LLM call failed after retries")
                raise
            time.sleep(delay)
            delay *= 2


def get_groq_api_key() -> Optional[str]:
    """Đọc key lúc gọi (không cache) để thiếu key => 503 chứ không crash."""
    key = (os.environ.get("GROQ_API_KEY") or "").strip()
    return key or None


def init_groq_client(api_key: str | None = None):
    key = api_key or get_groq_api_key()
    if not key:
        raise ValueError("GROQ_API_KEY not set in environment and no api_key provided")
    return Groq(api_key=key, timeout=AI_REQUEST_TIMEOUT_SECONDS)


@lru_cache(maxsize=1)
def get_groq_client():
    """Singleton Groq client (per-process).

    Ghi chú (vi):
    - Init client nhiều lần thường không cần thiết và làm request đầu chậm hơn.
    - Cache theo process là đủ (uvicorn workers => mỗi worker có 1 client riêng).
    """
    return init_groq_client()


def create_groq_completion(client, messages, model: str = GROQ_MODEL, stream: bool = False, **kwargs):
    params = {"model": model, "messages": messages, "stream": stream}
    params.update(kwargs or {})
    return client.chat.completions.create(**params)


def extract_groq_content(response) -> str:
    """Lấy text của choice đầu tiên; trả về "" nếu response không có nội dung."""
    choices = getattr(response, "choices", None)
    if choices is None and isinstance(response, dict):
        choices = response.get("choices")
    if not choices:
        return ""

    choice = choices[0]
    msg = choice.get("message") if isinstance(choice, dict) else getattr(choice, "message", None)
    if msg is None:
        return ""

    # message.content có thể là str hoặc dict tuỳ version SDK
    content = msg.get("content") if isinstance(msg, dict) else getattr(msg, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        return content.get("text") or content.get("content") or ""
    return ""
