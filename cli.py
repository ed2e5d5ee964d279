#!/usr/bin/env python3
"""Simple CLI for trading through the swap agent locally"""

import argparse
import asyncio
import getpass
from typing import List

from swapagent.core.chat import ChatSession, build_session
from swapagent.core.execution import JsonRpcClient
from swapagent.core.quote import QuoteService, create_venue
from swapagent.core.swap import (
    AssistantReply,
    ConfirmationRequired,
    ExecutionFailed,
    ExecutionSettled,
    ExecutionStarted,
    QuoteReady,
    SwapCancelled,
    SwapEvent,
    SwapRejected,
    WalletLockedNotice,
)
from swapagent.config import settings
from swapagent.errors import SwapAgentError
from swapagent.logging_config import setup_logging

CONFIRM_WORDS = {"confirm", "yes", "y"}
CANCEL_WORDS = {"cancel", "no", "n"}


def render_event(event: SwapEvent) -> str:
    """One line (or a few) of terminal output per event"""
    if isinstance(event, AssistantReply):
        return f"🤖 {event.text}"
    if isinstance(event, QuoteReady):
        quote = event.quote
        tag = "📈" if quote.is_binding else "📊 (estimate)"
        return f"{tag} {quote.amount_in} {quote.from_token.symbol} → {quote.amount_out_display} {quote.to_token.symbol}"
    if isinstance(event, ConfirmationRequired):
        return f"❓ {event.message}"
    if isinstance(event, ExecutionStarted):
        return "⏳ Executing swap..."
    if isinstance(event, ExecutionSettled):
        lines = [f"✅ Swapped {event.amount_in} {event.from_token} for ~{event.amount_out} {event.to_token}"]
        lines.append(f"   Tx: {event.explorer_url}")
        if event.gas_used:
            lines.append(f"   Gas used: {event.gas_used:,}")
        return "\n".join(lines)
    if isinstance(event, ExecutionFailed):
        return f"❌ {event.user_message}"
    if isinstance(event, WalletLockedNotice):
        return f"🔒 {event.message}"
    if isinstance(event, SwapCancelled):
        return "🚫 Swap cancelled" + (" (confirmation timed out)" if event.reason == "timeout" else "")
    if isinstance(event, SwapRejected):
        return f"⚠️  {event.message}"
    return str(event.to_dict())


def print_events(events: List[SwapEvent]) -> None:
    for event in events:
        print(render_event(event))


def wallet_command(session: ChatSession, command: str) -> None:
    custody = session.custody
    if command == "create-wallet":
        password = getpass.getpass("New wallet password: ")
        if password != getpass.getpass("Repeat password: "):
            print("❌ Passwords do not match")
            return
        print(f"🔑 Wallet created: {custody.create(password)}")
    elif command == "import-wallet":
        private_key = getpass.getpass("Private key (hex): ")
        password = getpass.getpass("Wallet password: ")
        print(f"🔑 Wallet imported: {custody.create(password, private_key=private_key)}")
    elif command == "unlock":
        print(f"🔓 Unlocked {custody.unlock(getpass.getpass('Wallet password: '))}")
    elif command == "lock":
        custody.lock()
        print("🔒 Wallet locked")
    elif command == "delete-wallet":
        if input("Type DELETE to remove the encrypted wallet: ").strip() == "DELETE":
            custody.delete()
            print("🗑  Wallet deleted")


async def cli_chat(account_id: str):
    """Interactive chat mode"""
    session = build_session(account_id)
    print("🤖 Swap Agent Chat")
    print("Type 'exit' to quit, 'help' for commands")
    print("-" * 40)
    print(f"Wallet: {session.custody.state.value} {session.custody.address or ''}")

    try:
        while True:
            try:
                user_input = input("\n💬 You: ").strip()
                lowered = user_input.lower()

                if lowered in ['exit', 'quit', 'q']:
                    print("Goodbye! 👋")
                    break

                elif lowered in ['help', 'h']:
                    print("\nCommands:")
                    print("  swap 10 USDC for WETH - Request a quote")
                    print("  confirm / cancel - Answer a pending quote")
                    print("  create-wallet, import-wallet, unlock, lock, delete-wallet")
                    print("  status - Show wallet and swap state")
                    print("  exit - Quit the chat")
                    continue

                elif not user_input:
                    continue

                elif lowered in ['create-wallet', 'import-wallet', 'unlock', 'lock', 'delete-wallet']:
                    wallet_command(session, lowered)
                    continue

                elif lowered == 'status':
                    status = session.status()
                    print(f"Wallet: {status['wallet']['state']} {status['wallet']['address'] or ''}")
                    print(f"Swap: {status['state']}")
                    continue

                elif lowered in CONFIRM_WORDS and session.orchestrator.has_pending_swap:
                    print_events(await session.confirm())
                    continue

                elif lowered in CANCEL_WORDS and session.orchestrator.has_pending_swap:
                    print_events(session.cancel())
                    continue

                print_events(await session.handle_message(user_input))

            except KeyboardInterrupt:
                print("\nGoodbye! 👋")
                break
            except SwapAgentError as e:
                print(f"❌ {e.message}")
    finally:
        await session.close()


async def cli_quote(amount: str, from_token: str, to_token: str):
    """One-off quote without a wallet"""
    rpc = JsonRpcClient()
    try:
        service = QuoteService(create_venue(settings.swap_venue, rpc))
        quote = await service.get_quote(from_token, to_token, amount)
    except SwapAgentError as e:
        print(f"❌ {e.message}")
        return
    finally:
        await rpc.close()

    if quote is None:
        print(f"❌ No route available for {from_token.upper()} → {to_token.upper()}")
        return
    print(render_event(QuoteReady(quote)))
    print(f"   Route: {quote.route}")
    print(f"   Price impact: {quote.price_impact_display}")
    if quote.gas_estimate:
        print(f"   Gas estimate: {quote.gas_estimate:,}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Swap Agent CLI")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser("chat", help="Interactive chat mode")
    chat_parser.add_argument("account_id", nargs="?", default="local", help="Account whose wallet to use")

    quote_parser = subparsers.add_parser("quote", help="Quote a swap")
    quote_parser.add_argument("amount", help="Amount of the source token")
    quote_parser.add_argument("from_token", help="Source token symbol")
    quote_parser.add_argument("to_token", help="Target token symbol")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level or "WARNING")
    command = args.command.lower()

    if command == "chat":
        await cli_chat(args.account_id)

    elif command == "quote":
        await cli_quote(args.amount, args.from_token, args.to_token)

    else:
        print(f"❌ Unknown command: {command}")
        parser.print_help()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
