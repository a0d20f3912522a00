from config_broker.deeplink import DeepLinkImportRequest, import_request
from config_broker.errors import (
    BrokerError,
    BrokerIOError,
    ConflictError,
    FormatError,
    NotFoundError,
    SchemaMigrationError,
    SchemaTooNewError,
    StoreError,
    ValidationError,
)
from config_broker.models import AppType, McpApps, McpServer, Prompt, Provider, Settings, load_settings
from config_broker.services import (
    BrokerState,
    ConfigService,
    McpService,
    PromptService,
    ProviderService,
    SkillService,
    StartupStatus,
    bootstrap,
)
from config_broker.store import Database

__all__ = [
    "AppType",
    "BrokerError",
    "BrokerIOError",
    "BrokerState",
    "ConfigService",
    "ConflictError",
    "Database",
    "DeepLinkImportRequest",
    "FormatError",
    "McpApps",
    "McpServer",
    "McpService",
    "NotFoundError",
    "Prompt",
    "PromptService",
    "Provider",
    "ProviderService",
    "SchemaMigrationError",
    "SchemaTooNewError",
    "Settings",
    "SkillService",
    "StartupStatus",
    "StoreError",
    "ValidationError",
    "bootstrap",
    "import_request",
    "load_settings",
]
