"""In-process registry of chat sessions, one per account."""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..config import settings
from ..core.chat import ChatSession, build_session
from ..core.execution import JsonRpcClient
from ..core.wallet import JsonFileWalletStore, WalletCustody, WalletRecordStore
from ..core.wallet.store import validate_account_id
from ..providers.llm import get_llm_provider
from ..providers.llm.base import LLMProvider

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Sessions keyed by account id.

    Sessions built by the default factory share one RPC client and one LLM
    provider. A session idle for ``idle_seconds`` with no swap in flight is
    dropped, which also discards its unlocked key. Status reads never open
    a session.
    """

    def __init__(
        self,
        factory: Optional[Callable[[str], ChatSession]] = None,
        *,
        store: Optional[WalletRecordStore] = None,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory or self._build_session
        self.store = store
        self.idle_seconds = settings.session_idle_seconds if idle_seconds is None else idle_seconds
        self._clock = clock
        self._sessions: Dict[str, ChatSession] = {}
        self._last_used: Dict[str, float] = {}
        self._rpc: Optional[JsonRpcClient] = None
        self._llm_provider: Optional[LLMProvider] = None
        self._llm_checked = False

    def _store(self) -> WalletRecordStore:
        if self.store is None:
            self.store = JsonFileWalletStore(settings.wallet_store_dir)
        return self.store

    def _build_session(self, account_id: str) -> ChatSession:
        if self._rpc is None:
            self._rpc = JsonRpcClient()
        if not self._llm_checked:
            self._llm_checked = True
            if settings.has_llm_key:
                self._llm_provider = get_llm_provider()
        return build_session(
            account_id,
            rpc=self._rpc,
            llm_provider=self._llm_provider,
            store=self._store(),
            use_llm=self._llm_provider is not None,
        )

    async def get(self, account_id: str) -> ChatSession:
        """The account's session, opened on first use."""
        validate_account_id(account_id)
        await self.evict_idle()

        session = self._sessions.get(account_id)
        if session is None:
            session = self._factory(account_id)
            self._sessions[account_id] = session
            logger.info("Opened chat session for account %s", account_id)
        self._last_used[account_id] = self._clock()
        return session

    def peek(self, account_id: str) -> Optional[ChatSession]:
        validate_account_id(account_id)
        return self._sessions.get(account_id)

    def swap_status(self, account_id: str) -> Dict[str, Any]:
        session = self.peek(account_id)
        if session is not None:
            return session.status()
        return {"state": "Idle", "pendingSwap": None, "lastOutcome": None, "wallet": self.wallet_status(account_id)}

    def wallet_status(self, account_id: str) -> Dict[str, Any]:
        session = self.peek(account_id)
        if session is not None and session.custody is not None:
            return session.custody.status()
        return WalletCustody(account_id, self._store()).status()

    async def evict_idle(self) -> None:
        cutoff = self._clock() - self.idle_seconds
        for account_id, last_used in list(self._last_used.items()):
            session = self._sessions[account_id]
            if last_used > cutoff or session.orchestrator.has_pending_swap:
                continue
            del self._sessions[account_id]
            del self._last_used[account_id]
            logger.info("Closed idle chat session for account %s", account_id)
            await session.close()

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_used.clear()
        for session in sessions:
            await session.close()
        if self._rpc is not None:
            await self._rpc.close()
            self._rpc = None
        if self._llm_provider is not None:
            await self._llm_provider.close()
            self._llm_provider = None
        self._llm_checked = False


_registry = SessionRegistry()


def get_session_registry() -> SessionRegistry:
    return _registry
