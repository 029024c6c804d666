"""
Storefront Payments — Payment Method Directory
================================================
Which providers a tenant accepts, and their typed configuration.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from core.errors import GatewayConfigError, PaymentMethodDisabledError
from core.policy.rejection import ReasonCode
from engines.payments.gateways.base import GatewayRegistry, PaymentGateway
from engines.payments.models import PaymentMethodConfig

logger = logging.getLogger("storefront.payments")


class PaymentMethodDirectory:

    def __init__(self, registry: GatewayRegistry):
        self._registry = registry

    @property
    def registry(self) -> GatewayRegistry:
        return self._registry

    def require_enabled(self, tenant_id: uuid.UUID, provider_code: str):
        """
        Returns (gateway, typed config).

        Raises:
            PaymentMethodDisabledError: provider unknown to the platform,
                                        or not enabled for the tenant
            GatewayConfigError:         tenant config incomplete
        """
        code = (provider_code or "").strip().upper()
        gateway = self._registry.get(code)
        if gateway is None:
            raise PaymentMethodDisabledError(
                f"Payment method '{provider_code}' is not supported.",
                code=ReasonCode.PAYMENT_METHOD_UNKNOWN,
                details={"provider_code": code},
            )
        row = PaymentMethodConfig.objects.filter(
            tenant_id=tenant_id, provider_code=code, enabled=True,
        ).first()
        if row is None:
            raise PaymentMethodDisabledError(
                f"Payment method {code} is not enabled for this store.",
                code=ReasonCode.PAYMENT_METHOD_DISABLED,
                details={"provider_code": code, "tenant_id": str(tenant_id)},
            )
        return gateway, gateway.parse_config(row.config_json)

    def config_for(self, tenant_id: uuid.UUID, gateway: PaymentGateway):
        """Config for callback verification; disabled methods still verify."""
        row = PaymentMethodConfig.objects.filter(
            tenant_id=tenant_id, provider_code=gateway.code,
        ).first()
        if row is None:
            raise GatewayConfigError(
                f"No {gateway.code} configuration for tenant {tenant_id}.",
                details={"provider_code": gateway.code, "tenant_id": str(tenant_id)},
            )
        return gateway.parse_config(row.config_json)

    def list_enabled(self, tenant_id: uuid.UUID) -> list[dict]:
        methods = []
        rows = PaymentMethodConfig.objects.filter(tenant_id=tenant_id, enabled=True)
        for row in rows:
            gateway: Optional[PaymentGateway] = self._registry.get(row.provider_code)
            if gateway is None:
                continue
            try:
                config = gateway.parse_config(row.config_json)
            except GatewayConfigError as exc:
                logger.warning(
                    f"Skipping {row.provider_code} for tenant {tenant_id}: {exc}"
                )
                continue
            methods.append(
                {
                    "provider_code": gateway.code,
                    "display_name": gateway.display_name,
                    "config": gateway.public_checkout_config(config),
                }
            )
        return methods
