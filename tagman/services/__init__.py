from tagman.services.bulk import BulkService
from tagman.services.configs import ConfigService
from tagman.services.tags import TagService

__all__ = ["BulkService", "ConfigService", "TagService"]
