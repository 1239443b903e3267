"""
Webhook subscription management.

Keeps a store subscribed to the topics the cache invalidator listens for:

    existing subscription, same address -> left alone
    existing subscription, other address -> address updated
    no subscription                      -> registered

Running ``setup`` twice therefore changes nothing the second time.
"""

from typing import Any, Dict, List, Optional

import structlog

from shopify_analytics.client.errors import ApiError
from shopify_analytics.client.shopify import ShopifyClient
from shopify_analytics.config.settings import ShopifySettings
from shopify_analytics.models import Store

logger = structlog.get_logger(__name__)


class WebhookManager:
    """
    Register, update and remove a store's webhook subscriptions.

    Example:
        manager = WebhookManager(client)
        result = await manager.setup(store)
        result["registered"]  # topics now delivered to this app
    """

    def __init__(self, client: ShopifyClient, settings: Optional[ShopifySettings] = None):
        self.client = client
        self.settings = settings or client.settings

    def address_for(self, topic: str, base_url: Optional[str] = None) -> str:
        """Callback URL for a topic, e.g. ``<base>/webhooks/orders-create``"""
        base = (base_url or self.settings.webhook_base_url).rstrip("/")
        return f"{base}/webhooks/{topic.replace('/', '-')}"

    # =========================================================================
    # REST CALLS
    # =========================================================================

    async def existing(self, store: Store) -> List[Dict[str, Any]]:
        data = await self.client.call(store, "GET", "webhooks.json")
        return (data or {}).get("webhooks", [])

    async def register(self, store: Store, topic: str, address: str) -> Dict[str, Any]:
        data = await self.client.call(
            store,
            "POST",
            "webhooks.json",
            {"webhook": {"topic": topic, "address": address, "format": "json"}},
        )
        return (data or {}).get("webhook", {})

    async def update(self, store: Store, webhook_id: Any, address: str) -> Dict[str, Any]:
        data = await self.client.call(
            store,
            "PUT",
            f"webhooks/{webhook_id}.json",
            {"webhook": {"id": webhook_id, "address": address}},
        )
        return (data or {}).get("webhook", {})

    async def delete(self, store: Store, webhook_id: Any) -> None:
        await self.client.call(store, "DELETE", f"webhooks/{webhook_id}.json")

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def setup(self, store: Store, base_url: Optional[str] = None) -> Dict[str, Any]:
        """
        Subscribe the store to every configured topic.

        Args:
            store: Store to subscribe
            base_url: Callback base URL (default: ``SHOPIFY_WEBHOOK_BASE_URL``)

        Returns:
            ``{registered, created, updated, errors, success}``; ``registered``
            lists every topic subscribed after the call

        Raises:
            ValueError: no callback base URL is configured
        """
        if not (base_url or self.settings.webhook_base_url):
            raise ValueError("No webhook callback base URL configured")

        result: Dict[str, Any] = {"registered": [], "created": [], "updated": [], "errors": []}

        try:
            current = await self.existing(store)
        except ApiError as e:
            logger.error("Failed to list webhooks", shop=store.shop_domain, kind=e.kind, error=str(e))
            result["errors"].append("Failed to list existing webhooks")
            result["success"] = False
            return result

        logger.info(
            "Found existing webhooks",
            shop=store.shop_domain,
            topics=[webhook.get("topic") for webhook in current],
        )

        for topic in self.settings.webhook_topics:
            address = self.address_for(topic, base_url)
            same_topic = [webhook for webhook in current if webhook.get("topic") == topic]

            try:
                if any(webhook.get("address") == address for webhook in same_topic):
                    logger.debug("Webhook already registered", shop=store.shop_domain, topic=topic)
                elif same_topic:
                    await self.update(store, same_topic[0]["id"], address)
                    result["updated"].append(topic)
                    logger.info(
                        "Updated webhook address",
                        shop=store.shop_domain,
                        topic=topic,
                        old_address=same_topic[0].get("address"),
                        new_address=address,
                    )
                else:
                    webhook = await self.register(store, topic, address)
                    result["created"].append(topic)
                    logger.info(
                        "Registered webhook",
                        shop=store.shop_domain,
                        topic=topic,
                        webhook_id=webhook.get("id"),
                    )
            except ApiError as e:
                logger.warning(
                    "Failed to register webhook",
                    shop=store.shop_domain,
                    topic=topic,
                    kind=e.kind,
                    error=str(e),
                )
                result["errors"].append(f"Failed to register webhook for topic: {topic}")
                continue

            result["registered"].append(topic)

        result["success"] = not result["errors"]
        return result

    async def delete_all(self, store: Store) -> Dict[str, Any]:
        """Remove every webhook subscription of the store"""
        result: Dict[str, Any] = {"deleted": [], "errors": []}

        try:
            current = await self.existing(store)
        except ApiError as e:
            logger.error("Failed to list webhooks", shop=store.shop_domain, kind=e.kind, error=str(e))
            result["errors"].append("Failed to list existing webhooks")
            result["success"] = False
            return result

        for webhook in current:
            topic = webhook.get("topic")
            try:
                await self.delete(store, webhook["id"])
            except ApiError as e:
                logger.warning(
                    "Failed to delete webhook",
                    shop=store.shop_domain,
                    topic=topic,
                    webhook_id=webhook["id"],
                    kind=e.kind,
                    error=str(e),
                )
                result["errors"].append(f"Failed to delete webhook: {topic}")
                continue

            result["deleted"].append(topic)
            logger.info("Deleted webhook", shop=store.shop_domain, topic=topic, webhook_id=webhook["id"])

        result["success"] = not result["errors"]
        return result
