from fastapi import APIRouter, Depends, HTTPException, Request
import structlog

from agentloop.application.api.schema.run import RunRequest, RunResponse
from agentloop.domain.errors import UnknownAgent
from agentloop.domain.orchestration.core.main_agent import AgentOrchestrator
from agentloop.infrastructure.observability.logging import metrics

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/agent", tags=["agent"])


def get_orchestrator(request: Request) -> AgentOrchestrator:
    return request.app.state.orchestrator


@router.post("/run", response_model=RunResponse)
async def run_endpoint(
    body: RunRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
):
    """Run the agents to completion and return the result with its state"""

    try:
        result = await orchestrator.run(body.message, entry_agent_name=body.entry_agent)
    except UnknownAgent as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return RunResponse.from_result(result)


@router.get("/agents")
async def list_agents(orchestrator: AgentOrchestrator = Depends(get_orchestrator)):
    """Describe the agents this server can run"""

    return {
        "entry_agent": orchestrator.entry_agent_name,
        "agents": [agent.get_info() for agent in orchestrator.agents.values()],
    }


@router.get("/metrics")
async def get_metrics():
    """Run, step and tool metrics collected by this process"""

    return metrics.snapshot()
