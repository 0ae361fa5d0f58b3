"""
In-memory data store for GiveHope

Holds the users, campaigns, donations and categories collections and keeps
the derived fields consistent with them:

- Campaign.current_amount == sum of the campaign's donation amounts
- Category.campaign_count == campaigns ever created with that category name
- stats counters (distinct donors, total donated) follow every donation

One re-entrant lock serializes every write, so the read-modify-write
updates of those aggregates cannot lose increments under concurrent
requests. Readers always get copies; the stored records never leave the
store. Nothing here is persisted.
"""

import itertools
import random
import threading
from typing import Any, Dict, Iterable, List, Optional, Set, TypeVar

import pydantic

from exceptions import ConflictError, ValidationError
from logging_config import logger
from schemas import ROLES, Campaign, Category, Donation, Stats, User, utcnow

T = TypeVar("T", bound=pydantic.BaseModel)

_USER_READONLY = {"id", "created_at", "role", "password_hash"}
_CAMPAIGN_READONLY = {"id", "created_at", "organization_id", "current_amount", "category"}


def _copies(records: Iterable[T]) -> List[T]:
    return [r.model_copy() for r in records]


def _validation_error(e: pydantic.ValidationError) -> ValidationError:
    first = e.errors()[0] if e.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())) or None
    return ValidationError(first.get("msg", str(e)), field=field)


class Database:
    """In-memory entity store. Create one per application (or per test)."""

    def __init__(self):
        self._users: Dict[int, User] = {}
        self._campaigns: Dict[int, Campaign] = {}
        self._donations: Dict[int, Donation] = {}
        self._categories: Dict[int, Category] = {}

        self._user_ids = itertools.count(1)
        self._campaign_ids = itertools.count(1)
        self._donation_ids = itertools.count(1)
        self._category_ids = itertools.count(1)

        self._donor_ids: Set[int] = set()
        self._total_donated: float = 0.0

        self._lock = threading.RLock()

    # ===== Users =====

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            user = self._find_user("username", username)
            return user.model_copy() if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user = self._find_user("email", email)
            return user.model_copy() if user else None

    def list_users(self, role: Optional[str] = None) -> List[User]:
        with self._lock:
            return _copies(u for u in self._users.values() if role is None or u.role == role)

    def create_user(self, data: Dict[str, Any]) -> User:
        """
        Store a new user. data["password_hash"] must already be hashed.

        Organizations start unapproved, everyone else approved, unless
        data carries an explicit is_approved (seeding). Raises ConflictError
        when the username or email is taken; the check and the insert happen
        under the same lock.
        """
        role = data.get("role", "donor")
        if role not in ROLES:
            raise ValidationError(f"Unknown role '{role}'", field="role")
        fields = {k: v for k, v in data.items() if k in User.model_fields and k not in ("id", "created_at")}
        fields.setdefault("is_approved", role != "organization")

        with self._lock:
            self._check_unique_user(fields.get("username"), fields.get("email"))
            try:
                user = User(id=next(self._user_ids), created_at=utcnow(), **fields)
            except pydantic.ValidationError as e:
                raise _validation_error(e)
            self._users[user.id] = user
            logger.info(f"Created user {user.id} ({user.role})")
            return user.model_copy()

    def update_user(self, user_id: int, changes: Dict[str, Any]) -> Optional[User]:
        """Merge changes into the user; None if the user does not exist"""
        changes = {k: v for k, v in changes.items() if k in User.model_fields and k not in _USER_READONLY}
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            new_username = changes.get("username")
            new_email = changes.get("email")
            self._check_unique_user(
                new_username if new_username != user.username else None,
                new_email if new_email != user.email else None,
            )
            try:
                # password_hash is excluded from dumps, carry it over explicitly
                updated = User.model_validate(
                    {**user.model_dump(), "password_hash": user.password_hash, **changes}
                )
            except pydantic.ValidationError as e:
                raise _validation_error(e)
            self._users[user_id] = updated
            return updated.model_copy()

    def _find_user(self, field: str, value: Any) -> Optional[User]:
        for user in self._users.values():
            if getattr(user, field) == value:
                return user
        return None

    def _check_unique_user(self, username: Optional[str], email: Optional[str]) -> None:
        if username is not None and self._find_user("username", username):
            raise ConflictError("Username already exists", field="username")
        if email is not None and self._find_user("email", email):
            raise ConflictError("Email already exists", field="email")

    # ===== Campaigns =====

    def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            return campaign.model_copy() if campaign else None

    def get_all_campaigns(self) -> List[Campaign]:
        with self._lock:
            return _copies(self._campaigns.values())

    def get_public_campaigns(self) -> List[Campaign]:
        """
        Campaigns visible in public listings: active, approved, and run by an
        organization that is currently approved. Rejecting an organization
        hides its campaigns without touching the campaign records.
        """
        with self._lock:
            return _copies(
                c for c in self._campaigns.values()
                if c.is_active and c.is_approved and self._organization_approved(c.organization_id)
            )

    def _organization_approved(self, organization_id: int) -> bool:
        owner = self._users.get(organization_id)
        return owner is not None and owner.is_approved

    def get_pending_campaigns(self) -> List[Campaign]:
        """Campaigns awaiting admin review (rejected ones are inactive)"""
        with self._lock:
            return _copies(c for c in self._campaigns.values() if c.is_active and not c.is_approved)

    def get_campaigns_by_organization(self, organization_id: int) -> List[Campaign]:
        with self._lock:
            return _copies(c for c in self._campaigns.values() if c.organization_id == organization_id)

    def get_campaigns_by_category(self, category: str) -> List[Campaign]:
        with self._lock:
            return _copies(c for c in self._campaigns.values() if c.category == category)

    def get_featured_campaigns(self, limit: int = 3) -> List[Campaign]:
        """Up to `limit` active campaigns, freshly shuffled on every call"""
        with self._lock:
            # drawn from every active campaign, approved or not, unlike
            # get_public_campaigns
            active = [c for c in self._campaigns.values() if c.is_active]
        if limit <= 0:
            return []
        picked = random.sample(active, min(limit, len(active)))
        return _copies(picked)

    def create_campaign(self, data: Dict[str, Any]) -> Campaign:
        """
        Store a new campaign with current_amount forced to 0 and bump the
        matching category's campaign_count. An unknown category name is
        stored as-is and no counter moves.
        """
        fields = {
            k: v for k, v in data.items()
            if k in Campaign.model_fields and k not in ("id", "created_at", "current_amount")
        }
        with self._lock:
            try:
                campaign = Campaign(
                    id=next(self._campaign_ids),
                    current_amount=0,
                    created_at=utcnow(),
                    **fields,
                )
            except pydantic.ValidationError as e:
                raise _validation_error(e)
            self._campaigns[campaign.id] = campaign

            category = self._find_category(campaign.category)
            if category is not None:
                self._categories[category.id] = category.model_copy(
                    update={"campaign_count": category.campaign_count + 1}
                )
            logger.info(f"Created campaign {campaign.id} for organization {campaign.organization_id}")
            return campaign.model_copy()

    def update_campaign(self, campaign_id: int, changes: Dict[str, Any]) -> Optional[Campaign]:
        """
        Merge changes into the campaign; None if it does not exist.
        current_amount, organization_id and category are not updatable here.
        """
        changes = {
            k: v for k, v in changes.items()
            if k in Campaign.model_fields and k not in _CAMPAIGN_READONLY
        }
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            if campaign is None:
                return None
            try:
                updated = Campaign.model_validate({**campaign.model_dump(), **changes})
            except pydantic.ValidationError as e:
                raise _validation_error(e)
            self._campaigns[campaign_id] = updated
            return updated.model_copy()

    def delete_campaign(self, campaign_id: int) -> bool:
        """
        Remove the campaign. Category counters are not decremented and
        donations are kept: campaign_count counts campaigns ever created.
        """
        with self._lock:
            removed = self._campaigns.pop(campaign_id, None)
        if removed is not None:
            logger.info(f"Deleted campaign {campaign_id}")
        return removed is not None

    # ===== Donations =====

    def get_donation(self, donation_id: int) -> Optional[Donation]:
        with self._lock:
            donation = self._donations.get(donation_id)
            return donation.model_copy() if donation else None

    def get_donations_by_campaign(self, campaign_id: int) -> List[Donation]:
        with self._lock:
            return _copies(d for d in self._donations.values() if d.campaign_id == campaign_id)

    def get_donations_by_user(self, user_id: int) -> List[Donation]:
        with self._lock:
            return _copies(d for d in self._donations.values() if d.donor_id == user_id)

    def create_donation(self, data: Dict[str, Any]) -> Donation:
        """
        Append a donation and add its amount to the parent campaign in the
        same critical section. A missing campaign still gets the donation
        recorded (routes reject that case before calling here).
        """
        fields = {k: v for k, v in data.items() if k in Donation.model_fields and k not in ("id", "created_at")}
        if fields.get("is_anonymous"):
            fields["message"] = None

        with self._lock:
            try:
                donation = Donation(id=next(self._donation_ids), created_at=utcnow(), **fields)
            except pydantic.ValidationError as e:
                raise _validation_error(e)
            self._donations[donation.id] = donation

            campaign = self._campaigns.get(donation.campaign_id)
            if campaign is not None:
                self._campaigns[campaign.id] = campaign.model_copy(
                    update={"current_amount": campaign.current_amount + donation.amount}
                )
            else:
                logger.warning(f"Donation {donation.id} recorded for missing campaign {donation.campaign_id}")

            self._donor_ids.add(donation.donor_id)
            self._total_donated += donation.amount
            return donation.model_copy()

    # ===== Categories =====

    def get_category(self, category_id: int) -> Optional[Category]:
        with self._lock:
            category = self._categories.get(category_id)
            return category.model_copy() if category else None

    def get_category_by_name(self, name: str) -> Optional[Category]:
        with self._lock:
            category = self._find_category(name)
            return category.model_copy() if category else None

    def get_all_categories(self) -> List[Category]:
        with self._lock:
            return _copies(self._categories.values())

    def create_category(self, data: Dict[str, Any]) -> Category:
        fields = {
            k: v for k, v in data.items()
            if k in Category.model_fields and k not in ("id", "campaign_count")
        }
        with self._lock:
            if self._find_category(fields.get("name")) is not None:
                raise ConflictError("Category already exists", field="name")
            try:
                category = Category(id=next(self._category_ids), campaign_count=0, **fields)
            except pydantic.ValidationError as e:
                raise _validation_error(e)
            self._categories[category.id] = category
            return category.model_copy()

    def _find_category(self, name: Optional[str]) -> Optional[Category]:
        for category in self._categories.values():
            if category.name == name:
                return category
        return None

    # ===== Stats =====

    def get_stats(self) -> Stats:
        with self._lock:
            return Stats(
                total_projects=len(self._campaigns),
                total_donors=len(self._donor_ids),
                total_donated=self._total_donated,
            )
