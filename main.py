import os
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from auth import (
    authenticate,
    get_current_admin,
    get_current_organization,
    get_current_user,
    get_db,
    get_session_token,
    get_sessions,
    require_ownership,
)
from config import Settings, settings as default_settings
from database import Database
from exceptions import (
    CampaignNotFoundError,
    GiveHopeError,
    InvalidCredentialsError,
    OrganizationNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from logging_config import logger
from middleware import RequestLoggingMiddleware
from schemas import (
    Campaign,
    CampaignCreate,
    CampaignUpdate,
    Category,
    Donation,
    DonationCreate,
    LoginPayload,
    MessageResponse,
    ProfileUpdate,
    RegisterPayload,
    Stats,
    User,
)
from security import get_password_hash
from seed import bootstrap
from sessions import SessionManager

router = APIRouter()


# ===== Helpers =====

def start_session(request: Request, response: Response, user: User) -> None:
    """Open a session for user and hand its token out as an HTTP-only cookie"""
    settings: Settings = request.app.state.settings
    token = request.app.state.sessions.login(user.id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def load_campaign(db: Database, campaign_id: int) -> Campaign:
    campaign = db.get_campaign(campaign_id)
    if not campaign:
        raise CampaignNotFoundError(campaign_id)
    return campaign


def load_organization(db: Database, user_id: int) -> User:
    user = db.get_user(user_id)
    if not user:
        raise OrganizationNotFoundError(user_id)
    if user.role != "organization":
        raise ValidationError("User is not an organization")
    return user


# ===== Auth Endpoints =====

@router.post("/register", response_model=User, status_code=201)
async def register(payload: RegisterPayload, request: Request, response: Response,
                   db: Database = Depends(get_db)):
    password_hash = await run_in_threadpool(get_password_hash, payload.password)
    user_data = payload.model_dump(exclude={"password", "confirm_password"})
    user_data["email"] = str(user_data["email"])
    user_data["password_hash"] = password_hash
    user = db.create_user(user_data)

    start_session(request, response, user)
    logger.log_auth_event("register", True, username=user.username, role=user.role)
    return user


@router.post("/login", response_model=User)
async def login(payload: LoginPayload, request: Request, response: Response,
                db: Database = Depends(get_db)):
    user = await authenticate(db, payload.username, payload.password)
    start_session(request, response, user)
    logger.log_auth_event("login", True, username=user.username)
    return user


@router.post("/admin-login", response_model=User)
async def admin_login(payload: LoginPayload, request: Request, response: Response,
                      db: Database = Depends(get_db)):
    # every failure looks the same, whether or not the account exists
    try:
        user = await authenticate(db, payload.username, payload.password)
    except InvalidCredentialsError:
        raise InvalidCredentialsError("Invalid admin credentials") from None
    if user.role != "admin":
        logger.log_auth_event("admin-login", False, username=payload.username, reason="not an admin")
        raise InvalidCredentialsError("Invalid admin credentials")

    start_session(request, response, user)
    logger.log_auth_event("admin-login", True, username=user.username)
    return user


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response,
                 token: Optional[str] = Depends(get_session_token),
                 sessions: SessionManager = Depends(get_sessions)):
    sessions.revoke(token)
    response.delete_cookie(request.app.state.settings.SESSION_COOKIE_NAME)
    logger.log_auth_event("logout", True)
    return MessageResponse(message="Logged out")


@router.get("/user", response_model=User)
async def read_current_user(current_user: User = Depends(get_current_user)):
    return current_user


# ===== Profile =====

@router.get("/profile", response_model=User)
async def read_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/profile", response_model=User)
async def update_profile(payload: ProfileUpdate,
                         current_user: User = Depends(get_current_user),
                         db: Database = Depends(get_db)):
    updated = db.update_user(current_user.id, payload.model_dump(exclude_unset=True))
    if not updated:
        raise UserNotFoundError(current_user.id)
    return updated


# ===== Campaigns =====

@router.get("/campaigns", response_model=List[Campaign])
async def list_campaigns(db: Database = Depends(get_db)):
    return db.get_public_campaigns()


@router.get("/campaigns/featured", response_model=List[Campaign])
async def featured_campaigns(request: Request,
                             limit: Optional[int] = Query(None, ge=0),
                             db: Database = Depends(get_db)):
    if limit is None:
        limit = request.app.state.settings.FEATURED_DEFAULT_LIMIT
    return db.get_featured_campaigns(limit)


@router.get("/campaigns/{campaign_id}", response_model=Campaign)
async def get_campaign(campaign_id: int, db: Database = Depends(get_db)):
    return load_campaign(db, campaign_id)


@router.post("/campaigns", response_model=Campaign, status_code=201)
async def create_campaign(payload: CampaignCreate,
                          organization: User = Depends(get_current_organization),
                          db: Database = Depends(get_db)):
    if not db.get_category_by_name(payload.category):
        raise ValidationError(f"Unknown category '{payload.category}'", field="category")
    data = payload.model_dump()
    data["organization_id"] = organization.id
    return db.create_campaign(data)


@router.patch("/campaigns/{campaign_id}", response_model=Campaign)
async def update_campaign(campaign_id: int, payload: CampaignUpdate,
                          current_user: User = Depends(get_current_user),
                          db: Database = Depends(get_db)):
    campaign = load_campaign(db, campaign_id)
    require_ownership(current_user, campaign.organization_id, "You can only update your own campaigns")
    changes = payload.model_dump(exclude_unset=True)
    updated = db.update_campaign(campaign_id, changes)
    if not updated:
        raise CampaignNotFoundError(campaign_id)
    return updated


@router.delete("/campaigns/{campaign_id}", status_code=204, response_class=Response)
async def delete_campaign(campaign_id: int,
                          current_user: User = Depends(get_current_user),
                          db: Database = Depends(get_db)):
    campaign = load_campaign(db, campaign_id)
    require_ownership(current_user, campaign.organization_id, "You can only delete your own campaigns")
    db.delete_campaign(campaign_id)
    return Response(status_code=204)


@router.get("/campaigns/{campaign_id}/donations", response_model=List[Donation])
async def campaign_donations(campaign_id: int, db: Database = Depends(get_db)):
    load_campaign(db, campaign_id)
    return db.get_donations_by_campaign(campaign_id)


@router.get("/organizations/{organization_id}/campaigns", response_model=List[Campaign])
async def organization_campaigns(organization_id: int, db: Database = Depends(get_db)):
    return db.get_campaigns_by_organization(organization_id)


# ===== Categories =====

@router.get("/categories", response_model=List[Category])
async def list_categories(db: Database = Depends(get_db)):
    return db.get_all_categories()


@router.get("/categories/{name}/campaigns", response_model=List[Campaign])
async def category_campaigns(name: str, db: Database = Depends(get_db)):
    return db.get_campaigns_by_category(name)


# ===== Donations =====

@router.post("/donations", response_model=Donation, status_code=201)
async def create_donation(payload: DonationCreate,
                          current_user: User = Depends(get_current_user),
                          db: Database = Depends(get_db)):
    load_campaign(db, payload.campaign_id)
    data = payload.model_dump()
    data["donor_id"] = current_user.id
    donation = db.create_donation(data)
    logger.info(f"Donation {donation.id} of {donation.amount} to campaign {donation.campaign_id}")
    return donation


@router.get("/user/donations", response_model=List[Donation])
async def my_donations(current_user: User = Depends(get_current_user),
                       db: Database = Depends(get_db)):
    return db.get_donations_by_user(current_user.id)


@router.get("/stats", response_model=Stats)
async def stats(db: Database = Depends(get_db)):
    return db.get_stats()


# ===== Admin =====

@router.get("/admin/organizations", response_model=List[User])
async def admin_organizations(admin: User = Depends(get_current_admin),
                              db: Database = Depends(get_db)):
    return db.list_users(role="organization")


@router.get("/admin/campaigns/pending", response_model=List[Campaign])
async def admin_pending_campaigns(admin: User = Depends(get_current_admin),
                                  db: Database = Depends(get_db)):
    return db.get_pending_campaigns()


@router.patch("/admin/organizations/{organization_id}/approve", response_model=User)
async def approve_organization(organization_id: int,
                               admin: User = Depends(get_current_admin),
                               db: Database = Depends(get_db)):
    load_organization(db, organization_id)
    updated = db.update_user(organization_id, {"is_approved": True})
    logger.info(f"Admin {admin.id} approved organization {organization_id}")
    return updated


@router.patch("/admin/organizations/{organization_id}/reject", response_model=User)
async def reject_organization(organization_id: int,
                              admin: User = Depends(get_current_admin),
                              db: Database = Depends(get_db)):
    load_organization(db, organization_id)
    updated = db.update_user(organization_id, {"is_approved": False})
    logger.info(f"Admin {admin.id} rejected organization {organization_id}")
    return updated


@router.patch("/admin/campaigns/{campaign_id}/approve", response_model=Campaign)
async def approve_campaign(campaign_id: int,
                           admin: User = Depends(get_current_admin),
                           db: Database = Depends(get_db)):
    campaign = load_campaign(db, campaign_id)
    owner = db.get_user(campaign.organization_id)
    if owner is None or not owner.is_approved:
        raise ValidationError("Campaign organization is not approved")
    updated = db.update_campaign(campaign_id, {"is_approved": True})
    logger.info(f"Admin {admin.id} approved campaign {campaign_id}")
    return updated


@router.patch("/admin/campaigns/{campaign_id}/reject", response_model=Campaign)
async def reject_campaign(campaign_id: int,
                          admin: User = Depends(get_current_admin),
                          db: Database = Depends(get_db)):
    load_campaign(db, campaign_id)
    # a rejected campaign is also taken offline
    updated = db.update_campaign(campaign_id, {"is_approved": False, "is_active": False})
    logger.info(f"Admin {admin.id} rejected campaign {campaign_id}")
    return updated


# ===== Error handlers =====

async def givehope_error_handler(request: Request, exc: GiveHopeError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request data", "errors": errors})


async def global_exception_handler(request: Request, exc: Exception):
    logger.log_error_with_context(exc, context=f"{request.method} {request.url.path}")
    debug = request.app.state.settings.DEBUG
    return JSONResponse(
        status_code=500,
        content={"message": str(exc) if debug else "Internal server error", "code": "INTERNAL_ERROR"},
    )


# ===== App factory =====

def create_app(settings: Optional[Settings] = None,
               db: Optional[Database] = None,
               sessions: Optional[SessionManager] = None) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

    app.state.settings = settings
    app.state.db = db if db is not None else Database()
    app.state.sessions = sessions or SessionManager(settings.SESSION_TTL_SECONDS)
    bootstrap(app.state.db, settings)

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GiveHopeError, givehope_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/")
    def read_root():
        return {"name": settings.APP_NAME, "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(router, prefix=settings.API_PREFIX)
    logger.info(f"{settings.APP_NAME} ready ({settings.ENVIRONMENT})")
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", default_settings.SERVER_PORT))
    uvicorn.run(app, host=default_settings.SERVER_HOST, port=port)
