"""
Chat session: the seam between a conversational UI and the swap pipeline.

A message is either a trade request, which goes to the orchestrator, or
conversation, which gets a free-form reply. Confirmation and cancellation
arrive as separate calls (buttons in a UI, keywords in the CLI).
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..config import settings
from ..errors import PendingSwapExists
from ..logging_config import bind_session_context
from ..providers.llm import get_llm_provider
from ..providers.llm.base import LLMProvider
from .execution import JsonRpcClient, TransactionExecutor
from .intent import CommandInterpreter
from .quote import QuoteService, create_venue
from .swap import AssistantReply, SwapEvent, SwapOrchestrator, SwapRejected
from .wallet import JsonFileWalletStore, KdfParams, WalletCustody, WalletRecordStore, create_signer

_logger = logging.getLogger(__name__)


class ChatSession:
    """One user's conversation with at most one swap in flight.

    ``rpc`` and an owned LLM provider are closed with the session; shared
    clients are left to whoever created them.
    """

    def __init__(
        self,
        interpreter: CommandInterpreter,
        orchestrator: SwapOrchestrator,
        custody: Optional[WalletCustody] = None,
        *,
        rpc: Optional[JsonRpcClient] = None,
        owns_llm_provider: bool = True,
    ):
        self.interpreter = interpreter
        self.orchestrator = orchestrator
        self.custody = custody
        self.rpc = rpc
        self.owns_llm_provider = owns_llm_provider

    @property
    def account_id(self) -> Optional[str]:
        return self.custody.account_id if self.custody else None

    async def handle_message(self, text: str) -> List[SwapEvent]:
        bind_session_context(self.account_id)
        events = self.orchestrator.tick()

        intent = await self.interpreter.parse(text)
        if intent is None:
            reply = await self.interpreter.generate_reply(text)
            events.append(AssistantReply(text=reply))
            return events

        _logger.info("Parsed intent: %s", intent.describe())
        try:
            events.extend(await self.orchestrator.submit_intent(intent))
        except PendingSwapExists as exc:
            events.append(SwapRejected(reason=exc.code, message=exc.message))
        return events

    async def confirm(self) -> List[SwapEvent]:
        bind_session_context(self.account_id)
        return await self.orchestrator.confirm()

    def cancel(self) -> List[SwapEvent]:
        bind_session_context(self.account_id)
        return self.orchestrator.cancel()

    def tick(self, now: Optional[datetime] = None) -> List[SwapEvent]:
        return self.orchestrator.tick(now)

    def status(self) -> Dict[str, Any]:
        pending = self.orchestrator.pending
        last = self.orchestrator.last_outcome
        return {
            "state": self.orchestrator.state.value,
            "pendingSwap": pending.to_dict() if pending else None,
            "lastOutcome": last.to_dict() if last else None,
            "wallet": self.custody.status() if self.custody else None,
        }

    async def close(self) -> None:
        if self.rpc is not None:
            await self.rpc.close()
        if self.owns_llm_provider and self.interpreter.llm_provider is not None:
            await self.interpreter.llm_provider.close()


def build_session(
    account_id: str,
    *,
    llm_provider: Optional[LLMProvider] = None,
    rpc: Optional[JsonRpcClient] = None,
    store: Optional[WalletRecordStore] = None,
    use_llm: bool = True,
) -> ChatSession:
    """Wire a session from settings. The LLM is optional; without a key the fallback parser runs alone.

    Clients passed in are shared and stay open when the session closes.
    """

    custody = WalletCustody(
        account_id,
        store or JsonFileWalletStore(settings.wallet_store_dir),
        kdf_params=KdfParams.from_settings(),
    )
    owns_rpc = rpc is None
    rpc = rpc or JsonRpcClient()
    owns_llm_provider = llm_provider is None

    if llm_provider is None and use_llm and settings.has_llm_key:
        llm_provider = get_llm_provider()
    elif llm_provider is None and use_llm:
        _logger.info("No API key for %s; using the pattern parser only", settings.llm_provider)

    venue = create_venue(settings.swap_venue, rpc)
    orchestrator = SwapOrchestrator(
        QuoteService(venue),
        TransactionExecutor(rpc),
        lambda: create_signer(custody, rpc),
    )
    _logger.info("Chat session ready for account %s on %s", account_id, venue.label)
    return ChatSession(
        CommandInterpreter(llm_provider),
        orchestrator,
        custody,
        rpc=rpc if owns_rpc else None,
        owns_llm_provider=owns_llm_provider,
    )
