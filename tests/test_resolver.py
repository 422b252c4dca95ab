"""Tests for profile name resolution."""

import pytest

from keepsake.errors import InvalidInput, ProfileNotFound
from keepsake.resolver import ProfileResolver
from keepsake.types import Category, Profile, category_key, profile_key


def _add_profile(kv, user_id, profile_id, name):
    profile = Profile(id=profile_id, user_id=user_id, name=name, description="someone")
    kv.set(profile_key(user_id, profile_id), profile.to_record())


@pytest.fixture
def resolver(kv_store):
    return ProfileResolver(kv_store)


class TestResolve:

    def test_id_passes_through(self, resolver):
        assert resolver.resolve("alice", profile_id="anything") == "anything"

    def test_exact_name(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "p1", "Mom")
        _add_profile(kv_store, "alice", "p2", "Dad")
        assert resolver.resolve("alice", profile_name="Dad") == "p2"

    @pytest.mark.parametrize("name", [" Mom ", "mom", "MOM", "\tmOm\n"])
    def test_case_and_whitespace_variants(self, resolver, kv_store, name):
        _add_profile(kv_store, "alice", "p1", "Mom")
        assert resolver.resolve("alice", profile_name=name) == "p1"

    def test_stored_name_with_whitespace(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "p1", "  Mom ")
        assert resolver.resolve("alice", profile_name="mom") == "p1"

    def test_no_match(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "p1", "Mom")
        with pytest.raises(ProfileNotFound) as exc_info:
            resolver.resolve("alice", profile_name="Grandma")
        assert exc_info.value.name == "Grandma"
        assert isinstance(exc_info.value, LookupError)

    def test_other_users_profiles_do_not_match(self, resolver, kv_store):
        _add_profile(kv_store, "bob", "p1", "Mom")
        with pytest.raises(ProfileNotFound):
            resolver.resolve("alice", profile_name="Mom")

    def test_category_with_same_name_does_not_match(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "p1", "Dad")
        category = Category(id="c1", profile_id="p1", user_id="alice", name="Mom")
        kv_store.set(category_key("alice", "p1", "c1"), category.to_record())
        with pytest.raises(ProfileNotFound):
            resolver.resolve("alice", profile_name="Mom")

    def test_duplicate_names_first_in_listing_order_wins(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "older", "Mom")
        _add_profile(kv_store, "alice", "newer", "mom")
        assert resolver.resolve("alice", profile_name="Mom") == "older"

    def test_requires_id_or_name(self, resolver):
        with pytest.raises(InvalidInput):
            resolver.resolve("alice")
        with pytest.raises(InvalidInput):
            resolver.resolve("alice", profile_name=42)

    def test_empty_id_falls_back_to_name(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "p1", "Mom")
        assert resolver.resolve("alice", profile_id="", profile_name="Mom") == "p1"


class TestListProfiles:

    def test_lists_only_profiles(self, resolver, kv_store):
        _add_profile(kv_store, "alice", "p1", "Mom")
        category = Category(id="c1", profile_id="p1", user_id="alice", name="Hobbies")
        kv_store.set(category_key("alice", "p1", "c1"), category.to_record())
        assert [p.id for p in resolver.list_profiles("alice")] == ["p1"]

    def test_legacy_records_without_kind(self, resolver, kv_store):
        """Records from before the kind field are classified by their fields."""
        kv_store.set("user:alice:profile:p1", {
            "id": "p1", "name": "Mom", "description": "My mother", "userId": "alice",
        })
        kv_store.set("user:alice:profile:p1:category:c1", {
            "id": "c1", "name": "Hobbies", "profileId": "p1", "userId": "alice",
        })
        kv_store.set("user:alice:profile:p1:note:n1", {
            "id": "n1", "entry": "loves gardening", "profileId": "p1", "userId": "alice",
        })
        profiles = resolver.list_profiles("alice")
        assert [p.name for p in profiles] == ["Mom"]
        assert resolver.resolve("alice", profile_name="mom") == "p1"
