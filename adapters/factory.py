"""Factory for creating vendor-specific adapters."""

from typing import Optional

from adapters.amego import AmegoAdapter
from adapters.base import BaseAdapter
from adapters.ecpay import EcpayAdapter
from adapters.ezpay import EzpayAdapter
from adapters.opay import OpayAdapter
from adapters.smilepay import SmilepayAdapter
from models.credentials import PlatformConfig
from models.errors import ConfigurationError
from models.vendor import VendorType
from processors.relay_client import Gateway

ADAPTER_CLASSES: dict[VendorType, type[BaseAdapter]] = {
    VendorType.EZPAY: EzpayAdapter,
    VendorType.ECPAY: EcpayAdapter,
    VendorType.OPAY: OpayAdapter,
    VendorType.SMILEPAY: SmilepayAdapter,
    VendorType.AMEGO: AmegoAdapter,
}


class AdapterFactory:
    """Factory for creating the adapter that matches a platform configuration."""

    def __init__(self, gateway: Gateway):
        """Initialize factory with the gateway shared by all adapters."""
        self.gateway = gateway

    def get_adapter(self, platform_config: PlatformConfig) -> BaseAdapter:
        """
        Create the adapter for ``platform_config.provider``.

        Args:
            platform_config: Selected vendor and its credentials

        Returns:
            Adapter instance bound to the gateway

        Raises:
            ConfigurationError: If the vendor is not supported
        """
        adapter_class = self.get_adapter_class(platform_config.provider)
        if adapter_class is None:
            supported = ", ".join(v.value for v in self.get_supported_vendors())
            raise ConfigurationError(
                f"Unsupported e-invoice vendor: {platform_config.provider.value} "
                f"(supported: {supported})"
            )
        return adapter_class(platform_config, self.gateway)

    @staticmethod
    def get_adapter_class(vendor_type: VendorType) -> Optional[type[BaseAdapter]]:
        return ADAPTER_CLASSES.get(vendor_type)

    @staticmethod
    def get_supported_vendors() -> list[VendorType]:
        """Get list of supported vendor types."""
        return list(ADAPTER_CLASSES.keys())
