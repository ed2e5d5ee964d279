from typing import Any, Dict

from fastapi import APIRouter

from ..config import settings
from ..core.execution import JsonRpcClient
from ..errors import RpcError

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that verifies the chain endpoint and LLM configuration"""

    rpc = JsonRpcClient()
    try:
        block = await rpc.block_number()
        chain_status = {"status": "healthy", "block": block}
    except RpcError as e:
        chain_status = {"status": "unavailable", "error": e.message}
    finally:
        await rpc.close()

    llm_status = {
        "status": "configured" if settings.has_llm_key else "fallback_only",
        "provider": settings.llm_provider,
    }

    return {
        "status": "healthy" if chain_status["status"] == "healthy" else "degraded",
        "chain": {"chain_id": settings.chain_id, "venue": settings.swap_venue, **chain_status},
        "llm": llm_status,
    }
