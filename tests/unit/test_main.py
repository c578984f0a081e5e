"""
Unit tests for the main module — composition root.

Tests verify structlog configuration and the wiring logic
without making real HTTP calls or database connections.
"""

from __future__ import annotations

import structlog

from sectigo_gateway.adapters.repository import PsycopgCertificateStore
from sectigo_gateway.config import (
    ApiSettings,
    AppSettings,
    DatabaseSettings,
    PickupSettings,
    SyncSettings,
)
from sectigo_gateway.gateway import SectigoGateway
from sectigo_gateway.main import _create_adapters, configure_structlog


class TestConfigureStructlog:
    """Verify structlog configuration function."""

    def test_configure_structlog_sets_log_level(self) -> None:
        configure_structlog("WARNING")
        assert structlog.get_logger() is not None

    def test_configure_structlog_invalid_level_falls_back(self) -> None:
        """
        GIVEN an invalid log_level string
        WHEN configure_structlog is called
        THEN it falls back to INFO (no crash).
        """
        configure_structlog("NONEXISTENT")
        assert structlog.get_logger() is not None


class TestCreateAdapters:
    def test_wires_gateway_and_store_without_connecting(self) -> None:
        """
        GIVEN complete settings
        WHEN _create_adapters is called
        THEN a gateway and a store are returned and nothing touches the network.
        """
        settings = AppSettings(
            _env_file=None,  # type: ignore[call-arg]
            api=ApiSettings(
                endpoint="https://cert-manager.example.com/",
                customer_uri="acme",
                username="api-user",
                password="s3cret",
            ),
            database=DatabaseSettings(dsn="postgresql://u:p@localhost:1/none"),
            sync=SyncSettings(page_size=40),
            pickup=PickupSettings(retries=5),
        )

        gateway, store = _create_adapters(settings)

        assert isinstance(gateway, SectigoGateway)
        assert isinstance(store, PsycopgCertificateStore)
