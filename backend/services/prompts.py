"""System instruction and fallback text.

Both are policy values: the handler only relies on the system prompt being
the first message, so any persona can be swapped in via SYSTEM_PROMPT_FILE.
"""
import logging
from pathlib import Path
from typing import Optional

from config import SYSTEM_PROMPT_FILE, FALLBACK_MESSAGE

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """\
あなたは不動産査定の専門家「AIくん」です。
ユーザーから届いた情報の量に応じて、次の2つのモードを使い分けてください。

【モードA：査定に必要な情報が揃っている】
次の4点がすべて分かる場合のみ査定してください。
・所在地（住所、最寄り駅、市区町村など）
・物件種別（マンション／戸建て／土地）
・面積（㎡・坪、または間取り）
・築年数（「築浅」「築古」などの表現でも可）

回答は必ず次の形式で出力してください。
① 丁寧な一言コメント
② 推定査定額（価格帯で）
③ 根拠にしたポイント（3つまで）
④ 追加で確認したい質問（あれば1つ）

【モードB：情報が足りない】
査定はせず、不足している情報を自然な言葉で尋ねてください。
・質問は2つまで
・営業的な言い回しは避ける
・「より正確な査定のために」と一言添える

これまでの会話で既に聞いた情報は繰り返し尋ねないでください。
"""

DEFAULT_FALLBACK_MESSAGE = "エラーが発生しました。もう一度送ってみてください。"


def load_system_prompt(path: Optional[str] = None) -> str:
    """Read the persona from a file if one is configured, else the built-in one."""
    path = path or SYSTEM_PROMPT_FILE
    if not path:
        return DEFAULT_SYSTEM_PROMPT

    prompt = Path(path).read_text(encoding="utf-8").strip()
    if not prompt:
        raise ValueError(f"System prompt file {path} is empty")

    logger.info(f"Loaded system prompt from {path}")
    return prompt


def fallback_message() -> str:
    return FALLBACK_MESSAGE or DEFAULT_FALLBACK_MESSAGE
