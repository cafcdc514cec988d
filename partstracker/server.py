"""FastAPI application exposing the tracker over HTTP."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from . import database, schemas
from .config import Settings, load_settings
from .errors import AccountError, NotAuthenticated, StorageError
from .service import TrackerService
from .session import SessionContext


def get_service(request: Request) -> TrackerService:
    return request.app.state.service


def require_user(service: TrackerService = Depends(get_service)) -> SessionContext:
    """Authenticated gate: resolve the session or answer 401."""
    try:
        return service.context()
    except NotAuthenticated as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def _unavailable(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


def create_app(service: Optional[TrackerService] = None, settings: Optional[Settings] = None) -> FastAPI:
    if service is None:
        service = TrackerService.from_settings(settings or load_settings())

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        if service.engine is not None:
            database.init_db(service.engine)
        yield

    app = FastAPI(title="PC Parts Tracker", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["system"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/auth/register", response_model=schemas.LocalUserRead, status_code=status.HTTP_201_CREATED, tags=["auth"])
    def register(credentials: schemas.Credentials, svc: TrackerService = Depends(get_service)) -> schemas.LocalUserRead:
        try:
            user = svc.accounts.register(credentials.username, credentials.password)
        except AccountError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except StorageError as exc:
            raise _unavailable(str(exc)) from exc
        return schemas.LocalUserRead(id=user.id, username=user.username, currency=user.currency)

    @app.post("/auth/login", response_model=schemas.LocalUserRead, tags=["auth"])
    def login(credentials: schemas.Credentials, svc: TrackerService = Depends(get_service)) -> schemas.LocalUserRead:
        try:
            user = svc.login(credentials.username, credentials.password)
        except AccountError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        except StorageError as exc:
            raise _unavailable(str(exc)) from exc
        return schemas.LocalUserRead(id=user.id, username=user.username, currency=user.currency)

    @app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT, tags=["auth"])
    def logout(svc: TrackerService = Depends(get_service)) -> None:
        try:
            svc.logout()
        except StorageError as exc:
            raise _unavailable(str(exc)) from exc

    @app.get("/parts", response_model=List[schemas.Part])
    def list_parts(
        ctx: SessionContext = Depends(require_user), svc: TrackerService = Depends(get_service)
    ) -> List[schemas.Part]:
        return svc.parts.list(ctx)

    @app.put("/parts", response_model=schemas.Part)
    def save_part(
        part_in: schemas.PartInput,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> schemas.Part:
        part = svc.parts.save(ctx, part_in.component, part_in.name, part_in.amount, part_in.sort_order)
        if part is None:
            raise _unavailable("Unable to save part")
        return part

    @app.put("/parts/order", status_code=status.HTTP_204_NO_CONTENT)
    def update_part_orders(
        parts: List[schemas.PartOrder],
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> None:
        if not svc.parts.update_orders(ctx, parts):
            raise _unavailable("Unable to update part order")

    @app.post("/parts/seed", response_model=List[schemas.Part])
    def seed_parts(
        ctx: SessionContext = Depends(require_user), svc: TrackerService = Depends(get_service)
    ) -> List[schemas.Part]:
        svc.parts.seed_defaults(ctx)
        return svc.parts.list(ctx)

    @app.delete("/parts/{part_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_part(
        part_id: str,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> None:
        if not svc.parts.delete(ctx, part_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Part {part_id} not found")

    @app.get("/setups", response_model=List[schemas.PCSetup])
    def list_setups(
        ctx: SessionContext = Depends(require_user), svc: TrackerService = Depends(get_service)
    ) -> List[schemas.PCSetup]:
        return svc.setups.list(ctx)

    @app.post("/setups", response_model=schemas.PCSetup, status_code=status.HTTP_201_CREATED)
    def create_setup(
        setup_in: schemas.SetupInput,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> schemas.PCSetup:
        result = svc.setups.create_detailed(ctx, setup_in.name, setup_in.description, setup_in.parts)
        if not result.committed:
            raise _unavailable(f"Setup not created ({result.status.value})")
        return result.setup

    @app.get("/setups/{setup_id}/parts", response_model=List[schemas.SetupPart])
    def get_setup_parts(
        setup_id: str,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> List[schemas.SetupPart]:
        return svc.setups.get_children(ctx, setup_id)

    @app.post("/setups/{setup_id}/load", response_model=List[schemas.Part])
    def load_setup(
        setup_id: str,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> List[schemas.Part]:
        if not svc.setups.load_into_current_parts(ctx, setup_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Setup {setup_id} could not be loaded")
        return svc.parts.list(ctx)

    @app.put("/setups/{setup_id}", status_code=status.HTTP_204_NO_CONTENT)
    def update_setup(
        setup_id: str,
        setup_in: schemas.SetupInput,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> None:
        if not svc.setups.update(ctx, setup_id, setup_in.name, setup_in.description, setup_in.parts):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Setup {setup_id} could not be updated")

    @app.delete("/setups/{setup_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_setup(
        setup_id: str,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> None:
        if not svc.setups.delete(ctx, setup_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Setup {setup_id} not found")

    @app.get("/currency", response_model=schemas.CurrencyRead)
    def get_currency(
        ctx: SessionContext = Depends(require_user), svc: TrackerService = Depends(get_service)
    ) -> schemas.CurrencyRead:
        return schemas.CurrencyRead(currency=svc.profiles.get_currency(ctx))

    @app.put("/currency", response_model=schemas.CurrencyRead)
    def update_currency(
        update_in: schemas.CurrencyUpdate,
        ctx: SessionContext = Depends(require_user),
        svc: TrackerService = Depends(get_service),
    ) -> schemas.CurrencyRead:
        if not svc.profiles.set_currency(ctx, update_in.currency):
            raise _unavailable("Unable to update currency")
        return schemas.CurrencyRead(currency=update_in.currency)

    return app
