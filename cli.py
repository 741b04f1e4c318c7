#!/usr/bin/env python3
"""Simple CLI for driving the gacha exchange against a local node"""

import argparse
import asyncio
from typing import List, Optional

from gacha_exchange.config import settings
from gacha_exchange.core.errors import ExecutionError
from gacha_exchange.core.models import Item
from gacha_exchange.core.reveal.models import RevealTier
from gacha_exchange.core.reveal.sequencer import ResultSequencer
from gacha_exchange.core.session import Notification, create_session
from gacha_exchange.logging_config import setup_logging


STARS = {1: "★", 2: "★★", 3: "★★★", 4: "★★★★", 5: "★★★★★", 6: "✦✦✦✦✦✦"}


class ConsoleRevealPresenter:
    """Prints the reveal instead of playing the animation."""

    def __init__(self, delay_seconds: float = 1.0):
        self.delay_seconds = delay_seconds
        self.sequencer: Optional[ResultSequencer] = None

    async def on_reveal_start(self, tier: RevealTier, item_count: int) -> None:
        print(f"\n✨ Reveal: {tier.name} ({item_count} item{'s' if item_count != 1 else ''})")
        print(f"   Animation: {tier.animation(settings.animation_base_path)}")
        await asyncio.sleep(self.delay_seconds)
        if self.sequencer is not None:
            self.sequencer.on_reveal_end()


def print_notification(notification: Notification) -> None:
    icon = "❌" if notification.is_error else "✅"
    print(f"{icon} {notification.message}")


def print_items(items: List[Item], title: str) -> None:
    """Pretty print items"""
    if not items:
        print(f"\n{title}: nothing to show")
        return

    print(f"\n{title}")
    print("=" * 60)
    for item in items:
        stars = STARS.get(item.rarity, f"{item.rarity}★")
        line = f"#{item.id:<5} {item.name:<28} {stars:<8}"
        if item.is_character:
            line += f" {item.traits.element}/{item.traits.weapon}/{item.traits.faction}"
        else:
            line += f" {item.traits.category}"
        if item.is_listed:
            line += f"  [{item.listing.price} ETH by {item.listing.seller[:10]}…]"
        print(line)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Gacha Exchange CLI")
    parser.add_argument("--account", required=True, help="Sender account (must be unlocked on the node)")
    parser.add_argument("--rpc-url", help=f"JSON-RPC endpoint (default: {settings.rpc_url})")
    parser.add_argument("--contract", help="Contract address (default: from settings)")
    parser.add_argument("--log-level", help="Log level override")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("pull", help="Single pull")
    subparsers.add_parser("multi-pull", help="Multi pull")
    subparsers.add_parser("collection", help="Show owned items")

    market_parser = subparsers.add_parser("market", help="Show active listings")
    market_parser.add_argument("--sort", choices=["price", "rarity"], help="Sort order")

    list_parser = subparsers.add_parser("list", help="List an item for sale")
    list_parser.add_argument("item_id", type=int, help="Token id")
    list_parser.add_argument("price", help="Price in ETH, e.g. 0.05")

    unlist_parser = subparsers.add_parser("unlist", help="Cancel a listing")
    unlist_parser.add_argument("item_id", type=int, help="Token id")

    buy_parser = subparsers.add_parser("buy", help="Buy a listed item")
    buy_parser.add_argument("item_id", type=int, help="Token id")
    buy_parser.add_argument("--price", help="Price in ETH (default: current listing price)")

    mint_parser = subparsers.add_parser("mint", help="Mint a card (contract owner only)")
    mint_parser.add_argument("token_uri", help="Descriptor URI, e.g. ipfs://<cid>")
    mint_parser.add_argument("rarity", type=int, help="Rarity, 1-based")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level)

    presenter = ConsoleRevealPresenter()
    session = create_session(
        args.account,
        presenter=presenter,
        notify=print_notification,
        rpc_url=args.rpc_url,
        contract_address=args.contract,
    )
    presenter.sequencer = session.sequencer

    command = args.command.lower()
    try:
        if command == "pull":
            print_items(await session.pull(), "🎲 Pull result")

        elif command == "multi-pull":
            print_items(await session.multi_pull(), "🎲 Multi-pull results")

        elif command == "collection":
            print_items(await session.refresh_collection(), "🗂  Collection")

        elif command == "market":
            print_items(await session.refresh_marketplace(sort_by=args.sort), "🏪 Marketplace")

        elif command == "list":
            await session.list_item(args.item_id, args.price)

        elif command == "unlist":
            await session.unlist_item(args.item_id)

        elif command == "buy":
            await session.buy(args.item_id, args.price)

        elif command == "mint":
            await session.mint(args.token_uri, args.rarity)

        else:
            print(f"❌ Unknown command: {command}")
            parser.print_help()

    except (ExecutionError, ValueError):
        # Already reported through the notifier.
        raise SystemExit(1)
    finally:
        await session.aclose()


if __name__ == "__main__":
    asyncio.run(main())
