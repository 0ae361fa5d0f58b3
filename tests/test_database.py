"""
Unit Tests for the in-memory store
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from database import Database
from exceptions import ConflictError, ValidationError
from schemas import utcnow
from seed import seed_categories


def make_user(db: Database, username: str, role: str = "donor", **extra):
    data = {
        "username": username,
        "email": f"{username}@example.com",
        "password_hash": "hashed",
        "full_name": username.title(),
        "role": role,
    }
    data.update(extra)
    return db.create_user(data)


def make_campaign(db: Database, organization_id: int, category: str = "Education", **extra):
    data = {
        "title": "Clean Water",
        "description": "Wells for villages",
        "organization_id": organization_id,
        "goal_amount": 5000,
        "category": category,
    }
    data.update(extra)
    return db.create_campaign(data)


@pytest.fixture
def store() -> Database:
    db = Database()
    seed_categories(db)
    return db


@pytest.fixture
def org(store):
    return make_user(store, "helpinghands", role="organization", is_approved=True)


class TestUsers:
    def test_create_assigns_ids(self, store):
        first = make_user(store, "alice")
        second = make_user(store, "bob")

        assert first.id != second.id
        assert store.get_user(first.id).username == "alice"
        assert store.get_user_by_username("bob").id == second.id
        assert store.get_user_by_email("alice@example.com").id == first.id

    def test_approval_defaults_by_role(self, store):
        assert make_user(store, "donor1").is_approved is True
        assert make_user(store, "org1", role="organization").is_approved is False
        assert make_user(store, "org2", role="organization", is_approved=True).is_approved is True

    def test_duplicate_username(self, store):
        make_user(store, "alice")

        with pytest.raises(ConflictError) as exc:
            store.create_user({
                "username": "alice", "email": "other@example.com",
                "password_hash": "x", "full_name": "Other",
            })
        assert exc.value.message == "Username already exists"

    def test_duplicate_email(self, store):
        make_user(store, "alice")

        with pytest.raises(ConflictError) as exc:
            store.create_user({
                "username": "alice2", "email": "alice@example.com",
                "password_hash": "x", "full_name": "Other",
            })
        assert exc.value.message == "Email already exists"

    def test_concurrent_registration_of_same_username(self, store):
        def attempt(i):
            try:
                store.create_user({
                    "username": "racer", "email": f"racer{i}@example.com",
                    "password_hash": "x", "full_name": "Racer",
                })
                return True
            except ConflictError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(20)))

        assert results.count(True) == 1
        assert len([u for u in store.list_users() if u.username == "racer"]) == 1

    def test_unknown_role(self, store):
        with pytest.raises(ValidationError):
            make_user(store, "mallory", role="superuser")

    def test_update_user_merges_changes(self, store):
        user = make_user(store, "alice")

        updated = store.update_user(user.id, {"bio": "Gives often", "full_name": "Alice A."})

        assert updated.bio == "Gives often"
        assert updated.full_name == "Alice A."
        assert updated.password_hash == "hashed"

    def test_update_user_ignores_immutable_fields(self, store):
        user = make_user(store, "alice")

        updated = store.update_user(user.id, {
            "id": 999, "created_at": utcnow() - timedelta(days=30), "role": "admin", "password_hash": "evil",
        })

        assert updated.id == user.id
        assert updated.created_at == user.created_at
        assert updated.role == "donor"
        assert updated.password_hash == "hashed"

    def test_update_user_rejects_taken_username(self, store):
        make_user(store, "alice")
        bob = make_user(store, "bob")

        with pytest.raises(ConflictError):
            store.update_user(bob.id, {"username": "alice"})
        # keeping your own username is fine
        assert store.update_user(bob.id, {"username": "bob"}).username == "bob"

    def test_update_missing_user(self, store):
        assert store.update_user(404, {"bio": "x"}) is None

    def test_list_users_by_role(self, store):
        make_user(store, "alice")
        make_user(store, "org1", role="organization")

        assert [u.username for u in store.list_users(role="organization")] == ["org1"]
        assert len(store.list_users()) == 2

    def test_readers_get_copies(self, store):
        user = make_user(store, "alice")

        fetched = store.get_user(user.id)
        fetched.full_name = "Tampered"

        assert store.get_user(user.id).full_name == "Alice"


class TestCampaigns:
    def test_create_forces_zero_amount(self, store, org):
        campaign = make_campaign(store, org.id, current_amount=1_000_000)

        assert campaign.current_amount == 0
        assert campaign.is_approved is False
        assert campaign.is_active is True

    def test_create_increments_category_count(self, store, org):
        make_campaign(store, org.id, category="Health")
        make_campaign(store, org.id, category="Health")
        make_campaign(store, org.id, category="Education")

        assert store.get_category_by_name("Health").campaign_count == 2
        assert store.get_category_by_name("Education").campaign_count == 1
        assert store.get_category_by_name("Environment").campaign_count == 0

    def test_category_match_is_exact(self, store, org):
        make_campaign(store, org.id, category="health")

        assert store.get_category_by_name("Health").campaign_count == 0

    def test_unknown_category_is_stored(self, store, org):
        campaign = make_campaign(store, org.id, category="Space Exploration")

        assert store.get_campaign(campaign.id).category == "Space Exploration"
        assert sum(c.campaign_count for c in store.get_all_categories()) == 0

    def test_concurrent_creations_count_every_campaign(self, store, org):
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda _: make_campaign(store, org.id, category="Children"), range(50)))

        assert store.get_category_by_name("Children").campaign_count == 50
        assert len(store.get_campaigns_by_category("Children")) == 50

    def test_invalid_goal(self, store, org):
        with pytest.raises(ValidationError):
            make_campaign(store, org.id, goal_amount=0)

    def test_end_date_before_start_date(self, store, org):
        start = utcnow()
        with pytest.raises(ValidationError):
            make_campaign(store, org.id, start_date=start, end_date=start - timedelta(days=1))

    def test_update_ignores_protected_fields(self, store, org):
        campaign = make_campaign(store, org.id)

        updated = store.update_campaign(campaign.id, {
            "current_amount": 500, "organization_id": 999, "category": "Health", "title": "New title",
        })

        assert updated.title == "New title"
        assert updated.current_amount == 0
        assert updated.organization_id == org.id
        assert updated.category == "Education"

    def test_update_validates_dates(self, store, org):
        campaign = make_campaign(store, org.id)

        with pytest.raises(ValidationError):
            store.update_campaign(campaign.id, {"end_date": campaign.start_date - timedelta(days=1)})
        assert store.get_campaign(campaign.id).end_date is None

    def test_update_missing_campaign(self, store):
        assert store.update_campaign(404, {"title": "x"}) is None

    def test_delete_keeps_category_count(self, store, org):
        campaign = make_campaign(store, org.id, category="Health")

        assert store.delete_campaign(campaign.id) is True
        assert store.get_campaign(campaign.id) is None
        # counts campaigns ever created in the category
        assert store.get_category_by_name("Health").campaign_count == 1
        assert store.delete_campaign(campaign.id) is False

    def test_public_and_pending_listings(self, store, org):
        live = make_campaign(store, org.id)
        store.update_campaign(live.id, {"is_approved": True})
        pending = make_campaign(store, org.id)
        rejected = make_campaign(store, org.id)
        store.update_campaign(rejected.id, {"is_approved": False, "is_active": False})

        assert [c.id for c in store.get_public_campaigns()] == [live.id]
        assert [c.id for c in store.get_pending_campaigns()] == [pending.id]
        assert len(store.get_campaigns_by_organization(org.id)) == 3

    def test_unapproved_organization_hides_its_campaigns(self, store, org):
        live = make_campaign(store, org.id)
        store.update_campaign(live.id, {"is_approved": True})
        assert [c.id for c in store.get_public_campaigns()] == [live.id]

        store.update_user(org.id, {"is_approved": False})

        assert store.get_public_campaigns() == []
        assert store.get_campaign(live.id).is_approved is True

        store.update_user(org.id, {"is_approved": True})
        assert [c.id for c in store.get_public_campaigns()] == [live.id]


class TestFeaturedCampaigns:
    def test_returns_subset_of_active(self, store, org):
        active_ids = {make_campaign(store, org.id).id for _ in range(5)}
        inactive = make_campaign(store, org.id, is_active=False)

        for _ in range(20):
            featured = store.get_featured_campaigns(3)
            ids = [c.id for c in featured]
            assert len(ids) == 3
            assert len(set(ids)) == 3
            assert set(ids) <= active_ids
            assert inactive.id not in ids

    def test_pending_campaigns_can_be_featured(self, store, org):
        # featured draws from every active campaign, approval is not checked
        pending = make_campaign(store, org.id)

        assert pending.is_approved is False
        assert [c.id for c in store.get_featured_campaigns(3)] == [pending.id]
        assert store.get_public_campaigns() == []

    def test_limit_larger_than_pool(self, store, org):
        make_campaign(store, org.id)
        make_campaign(store, org.id)

        assert len(store.get_featured_campaigns(10)) == 2

    def test_zero_limit_and_empty_store(self, store, org):
        assert store.get_featured_campaigns(3) == []
        make_campaign(store, org.id)
        assert store.get_featured_campaigns(0) == []

    def test_default_limit(self, store, org):
        for _ in range(5):
            make_campaign(store, org.id)

        assert len(store.get_featured_campaigns()) == 3


class TestDonations:
    def test_donation_increments_campaign(self, store, org):
        donor = make_user(store, "alice")
        campaign = make_campaign(store, org.id)

        store.create_donation({"campaign_id": campaign.id, "donor_id": donor.id, "amount": 50})
        store.create_donation({"campaign_id": campaign.id, "donor_id": donor.id, "amount": 25.5})

        assert store.get_campaign(campaign.id).current_amount == 75.5
        assert len(store.get_donations_by_campaign(campaign.id)) == 2
        assert len(store.get_donations_by_user(donor.id)) == 2

    def test_concurrent_donations_are_all_counted(self, store, org):
        campaign = make_campaign(store, org.id)
        donors = [make_user(store, f"donor{i}") for i in range(10)]

        def give(i):
            store.create_donation({"campaign_id": campaign.id, "donor_id": donors[i % 10].id, "amount": 10})

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(give, range(500)))

        donations = store.get_donations_by_campaign(campaign.id)
        assert len(donations) == 500
        assert store.get_campaign(campaign.id).current_amount == sum(d.amount for d in donations) == 5000

        stats = store.get_stats()
        assert stats.total_donors == 10
        assert stats.total_donated == 5000

    def test_anonymous_donation_drops_message(self, store, org):
        donor = make_user(store, "alice")
        campaign = make_campaign(store, org.id)

        donation = store.create_donation({
            "campaign_id": campaign.id, "donor_id": donor.id, "amount": 5,
            "message": "From Alice", "is_anonymous": True,
        })

        assert donation.message is None
        assert store.get_donation(donation.id).message is None

    def test_non_positive_amount(self, store, org):
        donor = make_user(store, "alice")
        campaign = make_campaign(store, org.id)

        for amount in (0, -5):
            with pytest.raises(ValidationError):
                store.create_donation({"campaign_id": campaign.id, "donor_id": donor.id, "amount": amount})
        assert store.get_campaign(campaign.id).current_amount == 0

    def test_donation_to_missing_campaign_is_recorded(self, store):
        donor = make_user(store, "alice")

        donation = store.create_donation({"campaign_id": 404, "donor_id": donor.id, "amount": 20})

        assert store.get_donation(donation.id) is not None
        assert store.get_stats().total_donated == 20


class TestCategoriesAndStats:
    def test_seeded_categories(self, store):
        names = [c.name for c in store.get_all_categories()]

        assert names == ["Education", "Health", "Environment", "Children", "Disaster Relief"]

    def test_duplicate_category(self, store):
        with pytest.raises(ConflictError):
            store.create_category({"name": "Health"})

    def test_new_category_starts_at_zero(self, store):
        category = store.create_category({"name": "Animals", "campaign_count": 12})

        assert category.campaign_count == 0
        assert store.get_category(category.id).name == "Animals"

    def test_empty_stats(self, store):
        stats = store.get_stats()

        assert stats.total_projects == 0
        assert stats.total_donors == 0
        assert stats.total_donated == 0

    def test_stats(self, store, org):
        alice = make_user(store, "alice")
        bob = make_user(store, "bob")
        first = make_campaign(store, org.id)
        second = make_campaign(store, org.id)

        store.create_donation({"campaign_id": first.id, "donor_id": alice.id, "amount": 100})
        store.create_donation({"campaign_id": second.id, "donor_id": alice.id, "amount": 50})
        store.create_donation({"campaign_id": second.id, "donor_id": bob.id, "amount": 25})

        stats = store.get_stats()
        assert stats.total_projects == 2
        assert stats.total_donors == 2
        assert stats.total_donated == 175
