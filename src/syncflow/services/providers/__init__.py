"""Outbound provider clients used by the execution engine."""

from src.syncflow.services.providers.base import ProviderClient, build_http_client
from src.syncflow.services.providers.meta_ads import MetaAdsProvider
from src.syncflow.services.providers.pancake_pos import PancakePosProvider

__all__ = ["MetaAdsProvider", "PancakePosProvider", "ProviderClient", "build_http_client"]
