"""Services that combine the store, live files and device settings."""

from config_broker.services.config import ConfigService
from config_broker.services.mcp import McpService
from config_broker.services.prompt import PromptService
from config_broker.services.provider import ProviderService, normalize_endpoint_url
from config_broker.services.skill import SkillService
from config_broker.services.startup import bootstrap
from config_broker.services.state import BrokerState, InitError, StartupStatus

__all__ = [
    "BrokerState",
    "ConfigService",
    "InitError",
    "McpService",
    "PromptService",
    "ProviderService",
    "SkillService",
    "StartupStatus",
    "bootstrap",
    "normalize_endpoint_url",
]
