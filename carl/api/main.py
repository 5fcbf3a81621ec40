# carl/api/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from carl.chatbot.config import Settings, load_settings, setup_logging
from carl.chatbot.pipeline import DEFAULT_USER, ChatPipeline, build_pipeline

log = logging.getLogger("api.main")


class ChatRequest(BaseModel):
    userId: Optional[str] = None
    message: str


def create_app(pipeline: Optional[ChatPipeline] = None, settings: Optional[Settings] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.pipeline is None
        if owned:
            app.state.pipeline = await build_pipeline(settings or load_settings())
        yield
        if owned:
            p = app.state.pipeline
            await p.lms.close()
            if p.llm is not None:
                await p.llm.close()

    app = FastAPI(title="C.A.R.L. API", version="0.1.0", lifespan=lifespan)
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health")
    def healthcheck():
        return {"status": "operational", "name": "C.A.R.L."}

    @app.post("/api/chat")
    async def chat(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid request"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"error": "Invalid request"}, status_code=400)

        if body.get("userId") is not None:
            body["userId"] = str(body["userId"])
        try:
            req = ChatRequest.model_validate(body)
        except ValidationError:
            return JSONResponse({"error": "Message is required"}, status_code=400)
        if not req.message:
            return JSONResponse({"error": "Message is required"}, status_code=400)

        response = await request.app.state.pipeline.handle(req.userId or DEFAULT_USER, req.message)
        return response.model_dump(exclude_none=True)

    return app


# `uvicorn carl.api.main:app`; the pipeline is built on startup
app = create_app()


def main():
    settings = load_settings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings=settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
