"""
Shopify Store Analytics CLI

Usage:
    shopify-analytics check --shop example.myshopify.com --token shpat_xxx
    shopify-analytics refresh --shop example.myshopify.com --token shpat_xxx --store-id 42
    shopify-analytics webhooks setup --shop example.myshopify.com --token shpat_xxx --base-url https://app.example.com
    shopify-analytics webhooks cleanup --shop example.myshopify.com --token shpat_xxx
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from shopify_analytics.client import ShopifyClient, WebhookManager
from shopify_analytics.config import get_settings
from shopify_analytics.config.logging import configure_logging
from shopify_analytics.ingestion import CollectionService
from shopify_analytics.models import Store
from shopify_analytics.serving import create_cache
from shopify_analytics.serving.webhooks import CacheInvalidator


def _add_store_arguments(command: argparse.ArgumentParser) -> None:
    command.add_argument("--shop", required=True, help="Shop domain, e.g. example.myshopify.com")
    command.add_argument("--token", required=True, help="Admin API access token")
    command.add_argument("--store-id", default=None, help="Store id used in cache keys (default: shop domain)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopify-analytics",
        description="Shopify store analytics pipeline",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    commands = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("check", "Test the Admin API endpoints the pipeline depends on"),
        ("refresh", "Clear the store cache and re-collect store data"),
    ):
        _add_store_arguments(commands.add_parser(name, help=help_text))

    webhooks_parser = commands.add_parser("webhooks", help="Manage the store's webhook subscriptions")
    webhooks_parser.add_argument(
        "action",
        choices=["setup", "cleanup"],
        help="setup: subscribe every configured topic; cleanup: delete all subscriptions",
    )
    _add_store_arguments(webhooks_parser)
    webhooks_parser.add_argument("--base-url", default=None, help="Callback base URL (default: SHOPIFY_WEBHOOK_BASE_URL)")
    webhooks_parser.add_argument("--reset", action="store_true", help="Delete all subscriptions before setup")

    return parser


async def check(store: Store) -> Dict[str, Any]:
    settings = get_settings()
    async with ShopifyClient(settings.shopify) as client:
        endpoints = await client.test_connection(store)
        access = await client.has_protected_data_access(store)
    return {"endpoints": endpoints, "protected_customer_data": access}


async def refresh(store: Store) -> Dict[str, Any]:
    settings = get_settings()
    cache = create_cache(settings)
    try:
        deleted = await CacheInvalidator(cache).clear_store(store)
        async with ShopifyClient(settings.shopify) as client:
            result = await CollectionService(client, cache, settings).collect_initial_data(store)
    finally:
        await cache.close()

    result["cleared_keys"] = deleted
    return result


async def webhooks(
    store: Store,
    action: str,
    base_url: Optional[str] = None,
    reset: bool = False,
) -> Dict[str, Any]:
    settings = get_settings()
    async with ShopifyClient(settings.shopify) as client:
        manager = WebhookManager(client)
        if action == "cleanup":
            return await manager.delete_all(store)

        result: Dict[str, Any] = {}
        if reset:
            result["reset"] = await manager.delete_all(store)
        result.update(await manager.setup(store, base_url))
    return result


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "webhooks" and args.action == "setup":
        if not (args.base_url or get_settings().shopify.webhook_base_url):
            parser.error("webhooks setup needs --base-url or SHOPIFY_WEBHOOK_BASE_URL")

    # stdout carries the JSON result
    configure_logging(args.log_level, stream=sys.stderr)

    store = Store(
        id=args.store_id or args.shop,
        shop_domain=args.shop,
        access_token=args.token,
    )

    if args.command == "check":
        result = asyncio.run(check(store))
        ok = all(endpoint["status"] == "success" for endpoint in result["endpoints"].values())
    elif args.command == "webhooks":
        result = asyncio.run(webhooks(store, args.action, args.base_url, args.reset))
        ok = result.get("success", False)
    else:
        result = asyncio.run(refresh(store))
        ok = result.get("success", False)

    print(json.dumps(result, indent=2, default=str))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
