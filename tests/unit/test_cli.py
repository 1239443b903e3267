"""
Unit Tests - Command Line Interface
"""
import json

import pytest

from shopify_analytics import cli
from shopify_analytics.config import Settings
from shopify_analytics.config.settings import ShopifySettings


class TestParser:
    """Tests for argument parsing"""

    def test_refresh(self):
        args = cli.build_parser().parse_args(
            ["refresh", "--shop", "demo.myshopify.com", "--token", "shpat_x", "--store-id", "42"]
        )
        assert (args.command, args.shop, args.token, args.store_id) == (
            "refresh", "demo.myshopify.com", "shpat_x", "42"
        )

    def test_webhooks_action(self):
        args = cli.build_parser().parse_args(
            ["webhooks", "cleanup", "--shop", "demo.myshopify.com", "--token", "shpat_x"]
        )
        assert (args.command, args.action, args.reset) == ("webhooks", "cleanup", False)

    def test_unknown_webhooks_action(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["webhooks", "register", "--shop", "s", "--token", "t"])

    def test_shop_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["check", "--token", "shpat_x"])


class TestMain:
    """Tests for command dispatch and exit codes"""

    def test_check_reports_failures(self, monkeypatch, capsys):
        stores = []

        async def fake_check(store):
            stores.append(store)
            return {
                "endpoints": {"shop": {"status": "success"}, "orders": {"status": "error"}},
                "protected_customer_data": {"has_access": False},
            }

        monkeypatch.setattr(cli, "configure_logging", lambda level=None, stream=None: None)
        monkeypatch.setattr(cli, "check", fake_check)

        code = cli.main(["check", "--shop", "demo.myshopify.com", "--token", "shpat_x"])

        assert code == 1
        assert stores[0].id == "demo.myshopify.com"
        assert json.loads(capsys.readouterr().out)["endpoints"]["orders"]["status"] == "error"

    def test_refresh_success(self, monkeypatch, capsys):
        async def fake_refresh(store):
            return {"success": True, "order_count": 3, "cleared_keys": 2}

        monkeypatch.setattr(cli, "configure_logging", lambda level=None, stream=None: None)
        monkeypatch.setattr(cli, "refresh", fake_refresh)

        code = cli.main(["refresh", "--shop", "demo.myshopify.com", "--token", "shpat_x", "--store-id", "42"])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["order_count"] == 3

    def test_webhooks_setup(self, monkeypatch, capsys):
        calls = []

        async def fake_webhooks(store, action, base_url=None, reset=False):
            calls.append((store.id, action, base_url, reset))
            return {"registered": ["orders/create"], "errors": [], "success": True}

        monkeypatch.setattr(cli, "configure_logging", lambda level=None, stream=None: None)
        monkeypatch.setattr(cli, "webhooks", fake_webhooks)

        code = cli.main([
            "webhooks", "setup", "--shop", "demo.myshopify.com", "--token", "shpat_x",
            "--store-id", "42", "--base-url", "https://app.example.com", "--reset",
        ])

        assert code == 0
        assert calls == [("42", "setup", "https://app.example.com", True)]
        assert json.loads(capsys.readouterr().out)["registered"] == ["orders/create"]

    def test_webhooks_cleanup_failure(self, monkeypatch, capsys):
        async def fake_webhooks(store, action, base_url=None, reset=False):
            return {"deleted": [], "errors": ["Failed to list existing webhooks"], "success": False}

        monkeypatch.setattr(cli, "configure_logging", lambda level=None, stream=None: None)
        monkeypatch.setattr(cli, "webhooks", fake_webhooks)

        code = cli.main(["webhooks", "cleanup", "--shop", "demo.myshopify.com", "--token", "shpat_x"])

        assert code == 1

    def test_webhooks_setup_needs_base_url(self, monkeypatch):
        monkeypatch.setattr(cli, "configure_logging", lambda level=None, stream=None: None)
        monkeypatch.setattr(cli, "get_settings", lambda: Settings(shopify=ShopifySettings(webhook_base_url="")))

        with pytest.raises(SystemExit):
            cli.main(["webhooks", "setup", "--shop", "demo.myshopify.com", "--token", "shpat_x"])
