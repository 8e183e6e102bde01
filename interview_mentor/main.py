from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from interview_mentor.config import settings
from interview_mentor.utils.logging import configure_logging
from interview_mentor.routers.auth import router as auth_router
from interview_mentor.routers.questions import router as questions_router
from interview_mentor.routers.ws import router as ws_router
from interview_mentor.services.container import Services, build_services
from interview_mentor.utils.audit import auditor


def create_app(services: Optional[Services] = None) -> FastAPI:
	"""Build the API. Pass ``services`` to inject collaborators; otherwise they are built from settings."""
	configure_logging(settings.log_level)
	auditor.configure(settings.analytics_path)

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		owned = None
		if getattr(app.state, "services", None) is None:
			owned = app.state.services = build_services(settings)
		yield
		if owned is not None:
			await owned.aclose()

	app = FastAPI(title="Interview Mentor Backend", version="0.1.0", lifespan=lifespan)
	if services is not None:
		app.state.services = services

	# CORS
	app.add_middleware(
		CORSMiddleware,
		allow_origins=settings.cors_allow_origins,
		# Browsers reject credentialed requests to a wildcard origin
		allow_credentials=False if settings.cors_allow_origins == ["*"] else True,
		allow_methods=["*"],
		allow_headers=["*"],
		max_age=3600,
	)

	@app.get("/health")
	async def health() -> JSONResponse:
		current: Services = app.state.services
		return JSONResponse({
			"status": "ok",
			"version": app.version,
			"llm": {"provider": current.llm.provider, "enabled": current.llm.enabled},
			"remote_sync": current.documents is not None,
			"mentor": current.live_backend is not None,
		})

	# Routers
	app.include_router(auth_router, prefix="/api", tags=["auth"])
	app.include_router(questions_router, prefix="/api", tags=["questions"])
	app.include_router(ws_router, tags=["realtime"])
	return app


app = create_app()


if __name__ == "__main__":
	import uvicorn

	uvicorn.run(app, host=settings.host, port=settings.port)
