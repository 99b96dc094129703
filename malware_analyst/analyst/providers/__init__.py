from malware_analyst.analyst.providers.base import BaseProvider
from malware_analyst.analyst.providers.registry import PROVIDER_REGISTRY, available_providers, get_provider
