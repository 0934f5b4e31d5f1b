"""HTTP surface for the gateway: streamed answers, badges, structured expansion."""

import logging
from collections.abc import AsyncIterator
from typing import Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from llm_cards.gateway import LLMGateway
from llm_cards.providers.base import ProviderError

logger = logging.getLogger(__name__)


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class StreamRequest(BaseModel):
    messages: list[ChatTurn] = Field(..., min_length=1)
    tier: Literal["fast", "slow"] = "fast"


class BadgesRequest(BaseModel):
    question: str
    response: str


class BadgesResponse(BaseModel):
    badges: list[str]


class ExpandRequest(BaseModel):
    messages: list[ChatTurn] = Field(..., min_length=1)


class SectionOut(BaseModel):
    title: str
    content: str


class ExpandResponse(BaseModel):
    sections: list[SectionOut]


def create_app(gateway: LLMGateway) -> FastAPI:
    """Build the FastAPI app around an already configured gateway."""
    app = FastAPI(title="LLM Cards", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/stream")
    async def stream(request: StreamRequest) -> StreamingResponse:
        conversation = [turn.model_dump() for turn in request.messages]

        async def body() -> AsyncIterator[bytes]:
            try:
                async for chunk in gateway.stream(conversation, request.tier):
                    yield chunk.encode("utf-8")
            except ProviderError as exc:
                # Headers are already sent; ending the body abnormally is the only signal left.
                logger.error("Stream failed (%s): %s", request.tier, exc)
                raise

        return StreamingResponse(body(), media_type="text/plain; charset=utf-8")

    @app.post("/api/badges", response_model=BadgesResponse)
    async def badges(request: BadgesRequest) -> BadgesResponse:
        result = await gateway.summarize_followups(request.question, request.response)
        return BadgesResponse(badges=result)

    @app.post("/api/expand", response_model=ExpandResponse)
    async def expand(request: ExpandRequest) -> ExpandResponse:
        conversation = [turn.model_dump() for turn in request.messages]
        try:
            sections = await gateway.structured_expand(conversation)
        except ProviderError as exc:
            logger.error("Structured expansion failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return ExpandResponse(
            sections=[SectionOut(title=s.title, content=s.content) for s in sections]
        )

    @app.get("/api/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "tiers": {tier: gateway.model_for(tier) for tier in ("fast", "slow")},
        }

    return app
