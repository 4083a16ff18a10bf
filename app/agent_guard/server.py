# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
HTTP interface for the gateway.

The agent reports every sensitive action to ``POST /log`` before executing it
and polls ``GET /approval/{id}`` when it is told to wait for a human.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from . import config
from .constants import SERVICE_NAME, VERSION, ApprovalStatus
from .exceptions import ApprovalNotFoundError, InvalidActionError
from .gateway import Gateway
from .logging_utils import configure_logging
from .notifications import TelegramNotifier, TelegramPoller

# Configure logger
logger = logging.getLogger(__name__)

BANNER = """
╔══════════════════════════════════════════╗
║   AgentGuard                             ║
║   Listening on http://{host}:{port:<19}║
╚══════════════════════════════════════════╝"""


class ActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Left untyped; ActionDescriptor.from_payload rejects or normalizes each field.
    name: Any = Field(default=None, validation_alias=AliasChoices("name", "action"))
    description: Any = None
    parameters: Any = None
    reversible: Any = None
    domain: Any = None


class EvaluationResponse(BaseModel):
    id: str
    decision: str
    riskScore: int
    factors: List[str]
    message: str


class ApprovalStatusResponse(BaseModel):
    id: str
    status: str
    action: str
    description: str


class ResolutionResponse(BaseModel):
    id: str
    status: str
    alreadyResolved: bool


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def create_app(gateway: Optional[Gateway] = None, poll_updates: bool = True) -> FastAPI:
    """
    Build the FastAPI application around a gateway.

    Args:
        gateway: Gateway to serve; built from the environment when omitted
        poll_updates: Start the Telegram poller on startup when Telegram is configured
    """
    gateway = gateway or Gateway.from_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        poller = None
        notifier = app.state.gateway.notifier
        if poll_updates and isinstance(notifier, TelegramNotifier):
            poller = TelegramPoller(notifier, app.state.gateway.handle_telegram_update)
            poller.start()
            logger.info("Telegram bot connected.")
        yield
        if poller is not None:
            poller.stop()
        app.state.gateway.shutdown(wait=False)

    app = FastAPI(title="AgentGuard", version=VERSION, lifespan=lifespan)
    app.state.gateway = gateway
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidActionError)
    async def invalid_action_handler(request: Request, exc: InvalidActionError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ApprovalNotFoundError)
    async def not_found_handler(request: Request, exc: ApprovalNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": "Approval not found"})

    @app.post("/log", response_model=EvaluationResponse)
    def log_action(body: ActionRequest, gw: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
        return gw.evaluate(body.model_dump())

    @app.get("/log")
    def list_actions(gw: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
        return gw.log_listing()

    @app.get("/approval/{approval_id}", response_model=ApprovalStatusResponse)
    def approval_status(approval_id: str, gw: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
        return gw.approval_status(approval_id)

    @app.post("/approval/{approval_id}/approve", response_model=ResolutionResponse)
    def approve(approval_id: str, gw: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
        return gw.resolve(approval_id, ApprovalStatus.APPROVED)

    @app.post("/approval/{approval_id}/deny", response_model=ResolutionResponse)
    def deny(approval_id: str, gw: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
        return gw.resolve(approval_id, ApprovalStatus.DENIED)

    @app.get("/summary")
    def summary(gw: Gateway = Depends(get_gateway)) -> Dict[str, str]:
        return gw.summary()

    @app.get("/health")
    def health(gw: Gateway = Depends(get_gateway)) -> Dict[str, Any]:
        return gw.health()

    @app.post("/telegram/webhook")
    def telegram_webhook(
        update: Dict[str, Any] = Body(...),
        secret_token: Optional[str] = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
        gw: Gateway = Depends(get_gateway)
    ) -> Dict[str, bool]:
        if config.TELEGRAM_WEBHOOK_SECRET and secret_token != config.TELEGRAM_WEBHOOK_SECRET:
            raise HTTPException(status_code=403, detail="Invalid webhook secret")
        gw.handle_telegram_update(update)
        return {"ok": True}

    return app


def main() -> None:
    """Run the gateway with uvicorn on the configured host and port."""
    configure_logging()
    app = create_app()
    logger.info(BANNER.format(host=config.AGENTGUARD_HOST, port=config.AGENTGUARD_PORT))
    logger.info("Service %s %s starting.", SERVICE_NAME, VERSION)
    uvicorn.run(app, host=config.AGENTGUARD_HOST, port=config.AGENTGUARD_PORT, log_level="info")


if __name__ == "__main__":
    main()
