from datetime import UTC, datetime

from app.core.config import Settings
from app.schemas.health import HealthResponse


class HealthService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def get_status(self) -> HealthResponse:
        return HealthResponse(
            status="ok",
            service=self.settings.app_name,
            version=self.settings.app_version,
            environment=self.settings.app_env,
            stores={
                "actions": self.settings.actions_store,
                "domain_records": self.settings.domain_records_store,
                "user_context": self.settings.user_context_store,
            },
            timestamp=datetime.now(UTC),
        )
