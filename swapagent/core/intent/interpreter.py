"""
Command Interpreter

Turns a free-text chat message into a ``SwapIntent``. The language model is
asked for a single JSON object or the literal ``null``; anything else, and
any provider failure or timeout, drops to a deterministic pattern parser.
``None`` means the message was conversational, not a trade.
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional, Pattern

from pydantic import ValidationError

from ...config import settings
from ...errors import IntentParseFailure
from ...providers.llm import LLMProvider, LLMProviderError
from ..tokens import supported_symbols
from .models import SwapIntent

logger = logging.getLogger(__name__)

_AMOUNT = r"(\d+(?:\.\d+)?|\.\d+)"
_SYMBOL = r"\$?([a-z][a-z0-9]*)"

FALLBACK_PATTERNS: List[Pattern[str]] = [
    re.compile(rf"\b(swap|trade|exchange)\s+{_AMOUNT}\s+{_SYMBOL}\s+(?:for|to)\s+{_SYMBOL}\b", re.IGNORECASE),
    re.compile(rf"(){_AMOUNT}\s+{_SYMBOL}\s+(?:for|to)\s+{_SYMBOL}\b", re.IGNORECASE),
]

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)

FALLBACK_REPLY = (
    "I'm having trouble reaching my language service right now, but I can still help with swaps. "
    "Try a command like 'swap 10 POL for USDC'."
)

INTENT_SYSTEM_PROMPT = (
    "You extract token swap instructions from chat messages for a wallet on the Polygon network. "
    "Reply with exactly one JSON object or the literal null. No prose, no markdown."
)


def _intent_prompt(text: str) -> str:
    tokens = ", ".join(supported_symbols(include_aliases=True))
    return f"""Parse this user message for token swap instructions.

User message: {json.dumps(text)}

Available tokens: {tokens}

Notes:
- MATIC has been renamed to POL; WMATIC is now WPOL. Use the new names.
- ETH on this network is WETH.

Return a single JSON object:
{{"action": "swap|trade|exchange", "fromToken": "SYMBOL", "toToken": "SYMBOL", "amount": "number as string", "amountUnit": "SYMBOL"}}

Return null if there is no swap/trade/exchange intent, information is missing, or a token is unsupported.

Examples:
- "swap 5 ETH for USDC" -> {{"action":"swap","fromToken":"WETH","toToken":"USDC","amount":"5","amountUnit":"WETH"}}
- "trade 100 MATIC for DAI" -> {{"action":"trade","fromToken":"POL","toToken":"DAI","amount":"100","amountUnit":"POL"}}
- "hello there" -> null"""


def _reply_prompt(text: str, intent: Optional[SwapIntent]) -> str:
    if intent is not None:
        return f"""The user requested a token swap: {json.dumps(intent.to_dict())}

Write a friendly confirmation of the swap details ({intent.amount} {intent.from_token} -> {intent.to_token}).
Mention that a quote follows and nothing is executed until they confirm.
Keep it to two or three sentences.
User message: {json.dumps(text)}"""

    tokens = ", ".join(supported_symbols())
    return f"""User message: {json.dumps(text)}

You are a helpful assistant for a self-custody wallet on the Polygon network.
Available tokens: {tokens}
MATIC has been renamed to POL; both names refer to the same token.
If they ask about swaps, explain the format "swap <amount> <token> for <token>".
Keep it conversational and concise (two or three sentences)."""


class CommandInterpreter:
    """LLM-backed intent extraction with a deterministic fallback."""

    def __init__(
        self,
        llm_provider: Optional[LLMProvider] = None,
        timeout: Optional[float] = None,
        *,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        reply_temperature: Optional[float] = None,
    ):
        self.llm_provider = llm_provider
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self.max_tokens = max_tokens or settings.max_tokens
        self.temperature = settings.temperature if temperature is None else temperature
        self.reply_temperature = settings.reply_temperature if reply_temperature is None else reply_temperature

    async def parse(self, text: str) -> Optional[SwapIntent]:
        """Extract a swap intent from ``text``, or ``None`` for conversation."""

        if not text or not text.strip():
            return None

        if self.llm_provider is None:
            return self.fallback_parse(text)

        try:
            completion = await asyncio.wait_for(
                self.llm_provider.complete(
                    _intent_prompt(text),
                    system=INTENT_SYSTEM_PROMPT,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Intent completion timed out after %.1fs; using fallback parser", self.timeout)
            return self.fallback_parse(text)
        except LLMProviderError as exc:
            logger.warning("Intent completion failed (%s); using fallback parser", exc)
            return self.fallback_parse(text)

        try:
            return self._interpret_completion(completion)
        except IntentParseFailure as exc:
            logger.info("Discarding model output: %s", exc.message)
            return self.fallback_parse(text)

    def _interpret_completion(self, completion: str) -> Optional[SwapIntent]:
        """Apply the JSON-object-or-null contract to a raw completion."""

        raw = (completion or "").strip()
        fenced = _CODE_FENCE.match(raw)
        if fenced:
            raw = fenced.group(1).strip()

        if raw.strip("\"'").lower() == "null":
            return None

        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise IntentParseFailure(f"completion is not JSON: {raw[:80]!r}") from exc

        if not isinstance(payload, dict):
            raise IntentParseFailure(f"expected a JSON object, got {type(payload).__name__}")

        missing = [key for key in ("action", "fromToken", "toToken", "amount") if not payload.get(key)]
        if missing:
            raise IntentParseFailure(f"missing fields: {', '.join(missing)}")

        try:
            return SwapIntent.model_validate(payload)
        except ValidationError as exc:
            raise IntentParseFailure(f"invalid intent: {exc.error_count()} error(s)") from exc

    def fallback_parse(self, text: str) -> Optional[SwapIntent]:
        """Pattern-match ``<verb> <amount> <tokenA> for|to <tokenB>``."""

        for pattern in FALLBACK_PATTERNS:
            for match in pattern.finditer(text or ""):
                verb, amount, from_symbol, to_symbol = match.groups()
                payload: Dict[str, Any] = {
                    "action": (verb or "swap").lower(),
                    "fromToken": from_symbol,
                    "toToken": to_symbol,
                    "amount": amount,
                }
                try:
                    return SwapIntent.model_validate(payload)
                except ValidationError:
                    continue
        return None

    async def generate_reply(self, text: str, intent: Optional[SwapIntent] = None) -> str:
        """Free-form answer for conversational messages."""

        if self.llm_provider is None:
            return FALLBACK_REPLY

        try:
            reply = await asyncio.wait_for(
                self.llm_provider.complete(
                    _reply_prompt(text, intent),
                    max_tokens=self.max_tokens,
                    temperature=self.reply_temperature,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, LLMProviderError) as exc:
            logger.warning("Reply generation failed: %s", str(exc) or type(exc).__name__)
            return FALLBACK_REPLY

        return reply.strip() or FALLBACK_REPLY
