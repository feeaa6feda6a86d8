from typing import Optional

from fastapi import FastAPI
import structlog

from agentloop.application.api.route.agent import router as agent_router
from agentloop.domain.orchestration.core.main_agent import AgentOrchestrator
from agentloop.infrastructure.config.settings import RuntimeSettings, get_settings
from agentloop.infrastructure.observability.logging import setup_logging
from agentloop.version import __version__

logger = structlog.get_logger(__name__)


def create_app(
    orchestrator: AgentOrchestrator,
    settings: Optional[RuntimeSettings] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the HTTP application around a configured orchestrator"""

    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings.log_level, settings.log_format, settings.service_name)

    app = FastAPI(title="Agent Runtime", version=__version__)
    app.state.orchestrator = orchestrator
    app.include_router(agent_router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "agents": orchestrator.agent_names}

    logger.info("Agent API ready", agents=orchestrator.agent_names)
    return app
