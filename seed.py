"""
Startup seeding for the in-memory store.

- default categories (always, unless SEED_CATEGORIES=false)
- the admin account, only when ADMIN_PASSWORD is configured
- optional demo data (SEED_DEMO_DATA=true)

Demo campaigns and donations go through the regular store operations so
category counters and campaign totals come out consistent.
"""

import random
from datetime import timedelta
from typing import Optional

from config import Settings
from database import Database
from logging_config import logger
from schemas import User, utcnow
from security import get_password_hash

DEFAULT_CATEGORIES = [
    {"name": "Education", "description": "Support educational initiatives",
     "image_url": "https://images.unsplash.com/photo-1499750310107-5fef28a66643"},
    {"name": "Health", "description": "Support health and medical initiatives",
     "image_url": "https://images.unsplash.com/photo-1577211908983-8d3738bb028c"},
    {"name": "Environment", "description": "Support environmental protection projects",
     "image_url": "https://images.unsplash.com/photo-1448375240586-882707db888b"},
    {"name": "Children", "description": "Support children's welfare programs",
     "image_url": "https://images.unsplash.com/photo-1594708767771-a5e9d3c87a67"},
    {"name": "Disaster Relief", "description": "Support disaster recovery efforts",
     "image_url": "https://images.unsplash.com/photo-1623600989906-6aae5aa131d4"},
]

DEMO_ORGANIZATIONS = [
    {"username": "childrenfund", "email": "info@childrenfund.org",
     "full_name": "Children's Hope Foundation",
     "bio": "Supporting children in need across the world", "is_approved": True},
    {"username": "greenearthorg", "email": "contact@greenearth.org",
     "full_name": "Green Earth Initiative",
     "bio": "Working for a cleaner and greener planet", "is_approved": True},
    {"username": "medicalhope", "email": "support@medicalhope.org",
     "full_name": "Medical Hope International",
     "bio": "Providing medical assistance to underserved communities", "is_approved": True},
    {"username": "neworganization", "email": "new@organization.org",
     "full_name": "New Relief Organization",
     "bio": "Recently established organization waiting for approval", "is_approved": False},
]

DEMO_DONORS = [
    {"username": "johndoe", "email": "john.doe@example.com", "full_name": "John Doe",
     "bio": "Regular donor supporting various causes"},
    {"username": "janesmith", "email": "jane.smith@example.com", "full_name": "Jane Smith",
     "bio": "Passionate about helping children"},
]

DEMO_CAMPAIGNS = [
    {"title": "Build literacy points for mountain children", "goal_amount": 100000, "category": "Education",
     "description": "Literacy centers with books, materials and volunteer teachers for remote mountain villages.",
     "image_url": "https://images.unsplash.com/photo-1605339837222-5c1d67c4602c"},
    {"title": "Provide medicine for poor children in remote areas", "goal_amount": 50000, "category": "Health",
     "description": "Medicine kits, diagnostic equipment and mobile medical camps for remote villages.",
     "image_url": "https://images.unsplash.com/photo-1560252829-804f1aedf1be"},
    {"title": "Scholarships for outstanding students", "goal_amount": 75000, "category": "Education",
     "description": "Multi-year scholarships and mentorship for gifted students from poor families.",
     "image_url": "https://images.unsplash.com/photo-1600880292203-757bb62b4baf"},
    {"title": "Clean Water Initiative for Rural Communities", "goal_amount": 80000, "category": "Environment",
     "description": "Wells, filtration systems and hygiene training where clean water is scarce.",
     "image_url": "https://images.unsplash.com/photo-1626040245147-78f179946376"},
    {"title": "Emergency Relief for Flood Victims", "goal_amount": 120000, "category": "Disaster Relief",
     "description": "Food packages, clean water, hygiene kits and shelter for displaced families.",
     "image_url": "https://images.unsplash.com/photo-1547683905-f686c993aae5"},
]


def seed_categories(db: Database) -> int:
    created = 0
    for category in DEFAULT_CATEGORIES:
        if db.get_category_by_name(category["name"]) is None:
            db.create_category(category)
            created += 1
    return created


def provision_admin(db: Database, username: str, email: str, password: str) -> Optional[User]:
    """Create the admin account with a hashed password; no-op if the username exists"""
    if db.get_user_by_username(username) is not None:
        logger.info(f"Admin account '{username}' already present")
        return None
    admin = db.create_user({
        "username": username,
        "email": email,
        "password_hash": get_password_hash(password),
        "full_name": "System Administrator",
        "role": "admin",
        "bio": "System Administrator with full access",
    })
    logger.info(f"Provisioned admin account '{username}'")
    return admin


def seed_demo_data(db: Database, password: str, rng: Optional[random.Random] = None) -> None:
    rng = rng or random.Random()
    password_hash = get_password_hash(password)

    organizations = [
        db.create_user({**org, "role": "organization", "password_hash": password_hash})
        for org in DEMO_ORGANIZATIONS
    ]
    donors = [
        db.create_user({**donor, "role": "donor", "password_hash": password_hash})
        for donor in DEMO_DONORS
    ]
    approved = [org for org in organizations if org.is_approved]

    for entry in DEMO_CAMPAIGNS:
        start = utcnow() - timedelta(days=rng.uniform(0, 60))
        campaign = db.create_campaign({
            **entry,
            "organization_id": rng.choice(approved).id,
            "start_date": start,
            "end_date": start + timedelta(days=rng.uniform(90, 180)),
        })
        db.update_campaign(campaign.id, {"is_approved": True})

        for _ in range(rng.randint(5, 15)):
            is_anonymous = rng.random() > 0.7
            db.create_donation({
                "campaign_id": campaign.id,
                "donor_id": rng.choice(donors).id,
                "amount": float(rng.randint(500, 5500)),
                "message": "Proud to support this important cause!",
                "is_anonymous": is_anonymous,
            })

    logger.info(
        f"Seeded demo data: {len(organizations)} organizations, {len(donors)} donors, "
        f"{len(DEMO_CAMPAIGNS)} campaigns"
    )


def bootstrap(db: Database, settings: Settings) -> None:
    """Startup provisioning driven by settings; safe to run on a populated store"""
    if settings.SEED_CATEGORIES:
        seed_categories(db)
    if settings.ADMIN_PASSWORD:
        provision_admin(db, settings.ADMIN_USERNAME, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    if settings.SEED_DEMO_DATA and db.get_user_by_username(DEMO_ORGANIZATIONS[0]["username"]) is None:
        seed_demo_data(db, settings.DEMO_PASSWORD)
