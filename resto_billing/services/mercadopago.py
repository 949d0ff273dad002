"""
Mercado Pago API client
Read-only access to subscriptions, payments and merchant orders for one reseller credential
"""

from typing import Any, Callable, Dict, Optional

import mercadopago
from mercadopago.config import RequestOptions
import structlog

from resto_billing.core.config import get_settings

logger = structlog.get_logger(__name__)


class ProviderError(Exception):
    """Mercado Pago answered with a non-success status or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Worth a redelivery: network errors, timeouts, throttling and 5xx"""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class MercadoPagoService:
    """Mercado Pago billing service bound to one access token"""

    def __init__(
        self,
        access_token: str,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        sdk: Any = None
    ):
        """
        Initialize Mercado Pago service

        Args:
            access_token: Reseller's Mercado Pago access token
            timeout: Per-request timeout in seconds (defaults to settings)
            max_retries: Transport retries per request (defaults to settings)
            sdk: Preconfigured SDK instance, mainly for tests
        """
        if not access_token:
            raise ValueError("Mercado Pago access token is required")

        settings = get_settings()
        self.access_token = access_token

        if sdk is None:
            request_options = RequestOptions(
                connection_timeout=float(timeout or settings.MERCADOPAGO_API_TIMEOUT_SECONDS),
                max_retries=int(settings.MERCADOPAGO_MAX_RETRIES if max_retries is None else max_retries),
            )
            sdk = mercadopago.SDK(access_token, request_options=request_options)
        self.sdk = sdk

    def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        """Fetch a subscription (preapproval) by id"""
        return self._call("preapproval", subscription_id, lambda: self.sdk.preapproval().get(subscription_id))

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        """Fetch a payment by id"""
        return self._call("payment", payment_id, lambda: self.sdk.payment().get(payment_id))

    def get_merchant_order(self, merchant_order_id: str) -> Dict[str, Any]:
        """Fetch a merchant order by id"""
        return self._call(
            "merchant_order",
            merchant_order_id,
            lambda: self.sdk.merchant_order().get(merchant_order_id)
        )

    def _call(self, resource: str, resource_id: str, request: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
        try:
            result = request()
        except Exception as e:
            logger.warning(f"Mercado Pago {resource} request failed: {e}", resource_id=resource_id)
            raise ProviderError(f"{resource} {resource_id}: {e}") from e

        status_code = result.get("status")
        if not isinstance(status_code, int) or not 200 <= status_code < 300:
            logger.info(
                f"Mercado Pago {resource} lookup returned {status_code}",
                resource_id=resource_id
            )
            raise ProviderError(
                f"{resource} {resource_id}: HTTP {status_code}",
                status_code=status_code if isinstance(status_code, int) else None
            )

        return result.get("response") or {}


ProviderClientFactory = Callable[[str], MercadoPagoService]


def build_mercadopago_client(access_token: str) -> MercadoPagoService:
    """Default client factory used by the webhook dependencies"""
    return MercadoPagoService(access_token)
