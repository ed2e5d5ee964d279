"""
Tests for intent extraction: model contract, validation and the fallback parser.
"""

import asyncio
from typing import List, Optional

import pytest
from pydantic import ValidationError

from swapagent.core.intent import FALLBACK_REPLY, CommandInterpreter, SwapIntent
from swapagent.providers.llm import LLMProvider, LLMProviderAPIError, LLMResponse


class ScriptedProvider(LLMProvider):
    """Returns canned completions in order and records the prompts."""

    def __init__(self, *completions: str, delay: float = 0.0, error: Optional[Exception] = None):
        self.completions = list(completions)
        self.delay = delay
        self.error = error
        self.prompts: List[str] = []
        super().__init__(api_key="test", model="test-model")

    def _setup_client(self, **kwargs) -> None:
        self.client = None

    async def generate_response(self, messages, max_tokens=None, temperature=None, **kwargs) -> LLMResponse:
        self.prompts.append(messages[-1].content)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(content=self.completions.pop(0), model=self.model)


# ---------------------------------------------------------------------------
# SwapIntent validation
# ---------------------------------------------------------------------------


def test_intent_canonicalizes_symbols():
    intent = SwapIntent.model_validate({"action": "Swap", "fromToken": "matic", "toToken": "usdc", "amount": "10"})
    assert intent.action == "swap"
    assert intent.from_token == "POL"
    assert intent.to_token == "USDC"
    assert intent.amount_unit == "POL"
    assert intent.amount_base_units == 10 * 10**18


def test_intent_rejects_unknown_token():
    with pytest.raises(ValidationError):
        SwapIntent.model_validate({"fromToken": "DOGE", "toToken": "USDC", "amount": "1"})


@pytest.mark.parametrize("amount", ["0", "-1", "abc", "NaN", None, True])
def test_intent_rejects_bad_amounts(amount):
    with pytest.raises(ValidationError):
        SwapIntent.model_validate({"fromToken": "USDC", "toToken": "DAI", "amount": amount})


def test_intent_rejects_amount_below_precision():
    with pytest.raises(ValidationError):
        SwapIntent.model_validate({"fromToken": "USDC", "toToken": "DAI", "amount": "0.0000001"})


def test_intent_rejects_same_token_after_wrapping():
    with pytest.raises(ValidationError):
        SwapIntent.model_validate({"fromToken": "POL", "toToken": "WMATIC", "amount": "1"})


def test_intent_rejects_amount_in_target_token():
    with pytest.raises(ValidationError):
        SwapIntent.model_validate({"fromToken": "USDC", "toToken": "DAI", "amount": "1", "amountUnit": "DAI"})


def test_intent_to_dict_uses_wire_names():
    intent = SwapIntent(from_token="ETH", to_token="USDC", amount="5")
    assert intent.to_dict() == {
        "action": "swap",
        "fromToken": "WETH",
        "toToken": "USDC",
        "amount": "5",
        "amountUnit": "WETH",
    }


# ---------------------------------------------------------------------------
# Fallback parser
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_parse_swap_eth_for_usdc_without_llm():
    intent = await CommandInterpreter().parse("swap 5 ETH for USDC")
    assert intent is not None
    assert intent.from_token == "WETH"
    assert intent.to_token == "USDC"
    assert intent.amount == "5"


@pytest.mark.asyncio
async def test_parse_conversation_returns_none():
    assert await CommandInterpreter().parse("what's the weather today") is None
    assert await CommandInterpreter().parse("   ") is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("please trade 100 MATIC to DAI", ("trade", "POL", "DAI", "100")),
        ("Exchange 0.5 wbtc for $usdc now", ("exchange", "WBTC", "USDC", "0.5")),
        ("2.25 usdt to link", ("swap", "USDT", "LINK", "2.25")),
    ],
)
def test_fallback_parse_variants(text, expected):
    intent = CommandInterpreter().fallback_parse(text)
    assert (intent.action, intent.from_token, intent.to_token, intent.amount) == expected


def test_fallback_parse_skips_unknown_tokens():
    assert CommandInterpreter().fallback_parse("swap 5 DOGE for USDC") is None


# ---------------------------------------------------------------------------
# Model path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_parse_uses_model_json():
    provider = ScriptedProvider('{"action":"swap","fromToken":"MATIC","toToken":"USDC","amount":"12.5","amountUnit":"MATIC"}')
    intent = await CommandInterpreter(provider).parse("could you move twelve and a half matic into usdc")
    assert intent.from_token == "POL"
    assert intent.amount == "12.5"
    assert "twelve and a half" in provider.prompts[0]


@pytest.mark.asyncio
async def test_parse_accepts_fenced_json():
    provider = ScriptedProvider('```json\n{"action":"swap","fromToken":"USDC","toToken":"DAI","amount":"3"}\n```')
    intent = await CommandInterpreter(provider).parse("3 usdc into dai please")
    assert intent.to_token == "DAI"


@pytest.mark.asyncio
async def test_model_null_is_no_intent():
    provider = ScriptedProvider("null")
    assert await CommandInterpreter(provider).parse("gm") is None


@pytest.mark.asyncio
async def test_model_null_does_not_override_obvious_pattern():
    provider = ScriptedProvider("null")
    assert await CommandInterpreter(provider).parse("swap 5 ETH for USDC") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "completion",
    [
        "Sure! Here is your swap.",
        "[1, 2]",
        '{"action":"swap","fromToken":"WETH","amount":"5"}',
        '{"action":"swap","fromToken":"DOGE","toToken":"USDC","amount":"5"}',
    ],
)
async def test_malformed_completion_falls_back(completion):
    provider = ScriptedProvider(completion)
    intent = await CommandInterpreter(provider).parse("swap 5 ETH for USDC")
    assert intent is not None
    assert intent.from_token == "WETH"


@pytest.mark.asyncio
async def test_provider_error_falls_back():
    provider = ScriptedProvider(error=LLMProviderAPIError("boom"))
    intent = await CommandInterpreter(provider).parse("trade 1 LINK for USDC")
    assert intent.from_token == "LINK"


@pytest.mark.asyncio
async def test_provider_timeout_falls_back():
    provider = ScriptedProvider("null", delay=1.0)
    intent = await CommandInterpreter(provider, timeout=0.01).parse("swap 2 USDC for DAI")
    assert intent.amount == "2"


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_generate_reply_without_provider():
    assert await CommandInterpreter().generate_reply("hello") == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_generate_reply_uses_provider():
    provider = ScriptedProvider("  Hi! Ask me for a swap.  ")
    assert await CommandInterpreter(provider).generate_reply("hello") == "Hi! Ask me for a swap."


@pytest.mark.asyncio
async def test_generate_reply_error_uses_fallback():
    provider = ScriptedProvider(error=LLMProviderAPIError("down"))
    assert await CommandInterpreter(provider).generate_reply("hello") == FALLBACK_REPLY
