"""Tests for regionmap.store.users module."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from regionmap.errors import (
    DuplicateEmailError,
    InvalidCoordinatesError,
    InvalidInputError,
    ResolutionError,
    UserNotFoundError,
)
from regionmap.models import User
from regionmap.store import JsonFileRepository, UserStore

AMPHITHEATRE = "1600 Amphitheatre Parkway"


@pytest_asyncio.fixture
async def ana(user_store: UserStore) -> Any:
    return await user_store.create("Ana", "ana@example.com", address="Av. Paulista, 1000")


class TestCreate:
    """Tests for UserStore.create()."""

    @pytest.mark.asyncio
    async def test_address_resolves_to_coordinates(
        self, user_store: UserStore, resolver: Any
    ) -> None:
        user = await user_store.create("Larry", "larry@example.com", address=AMPHITHEATRE)

        assert user.coordinates == (37.422, -122.084)
        assert user.address == AMPHITHEATRE
        assert resolver.address_queries == [AMPHITHEATRE]
        assert resolver.coordinate_queries == []

    @pytest.mark.asyncio
    async def test_coordinates_resolve_to_address(
        self, user_store: UserStore, resolver: Any
    ) -> None:
        user = await user_store.create(
            "Sergey", "sergey@example.com", coordinates=[-122.084, 37.422]
        )

        assert user.coordinates == (-122.084, 37.422)
        assert user.address == resolver.address
        assert resolver.address_queries == []

    @pytest.mark.asyncio
    async def test_both_location_fields_rejected(
        self, user_store: UserStore, resolver: Any
    ) -> None:
        with pytest.raises(InvalidInputError):
            await user_store.create(
                "Ana",
                "ana@example.com",
                address=AMPHITHEATRE,
                coordinates=(-122.084, 37.422),
            )
        assert resolver.address_queries == []
        assert resolver.coordinate_queries == []

    @pytest.mark.asyncio
    async def test_neither_location_field_rejected(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidInputError):
            await user_store.create("Ana", "ana@example.com")

    @pytest.mark.asyncio
    async def test_out_of_range_coordinates(self, user_store: UserStore) -> None:
        with pytest.raises(InvalidCoordinatesError):
            await user_store.create("Ana", "ana@example.com", coordinates=(0.0, 91.0))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("name", "email", "address"),
        [
            ("  ", "ana@example.com", AMPHITHEATRE),
            ("Ana", "not-an-email", AMPHITHEATRE),
            ("Ana", "ana@example.com", "abc"),
        ],
    )
    async def test_field_validation(
        self, user_store: UserStore, name: str, email: str, address: str
    ) -> None:
        with pytest.raises(InvalidInputError):
            await user_store.create(name, email, address=address)

    @pytest.mark.asyncio
    async def test_email_normalized(self, user_store: UserStore) -> None:
        user = await user_store.create("Ana", "  Ana@Example.COM ", address=AMPHITHEATRE)
        assert user.email == "ana@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_email_case_insensitive(
        self, user_store: UserStore, ana: Any
    ) -> None:
        with pytest.raises(DuplicateEmailError) as exc_info:
            await user_store.create("Other", "ANA@example.com", address=AMPHITHEATRE)
        assert isinstance(exc_info.value, InvalidInputError)

    @pytest.mark.asyncio
    async def test_resolution_failure_stores_nothing(
        self, user_store: UserStore, resolver: Any
    ) -> None:
        resolver.fail = True
        with pytest.raises(ResolutionError):
            await user_store.create("Ana", "ana@example.com", address=AMPHITHEATRE)
        page = await user_store.list()
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_resolver_timeout_is_resolution_error(self, resolver: Any) -> None:
        resolver.delay = 0.5
        store = UserStore(resolver, resolve_timeout=0.01)

        with pytest.raises(ResolutionError, match="timed out") as exc_info:
            await store.create("Ana", "ana@example.com", address=AMPHITHEATRE)

        assert exc_info.value.query == AMPHITHEATRE


class TestUpdate:
    """Tests for UserStore.update()."""

    @pytest.mark.asyncio
    async def test_name_only_keeps_location(
        self, user_store: UserStore, resolver: Any, ana: Any
    ) -> None:
        updated = await user_store.update(ana.id, name="Ana Maria")

        assert updated.name == "Ana Maria"
        assert updated.address == ana.address
        assert updated.coordinates == ana.coordinates
        assert len(resolver.address_queries) == 1  # only the create
        assert updated.updated_at >= ana.updated_at

    @pytest.mark.asyncio
    async def test_address_rederives_coordinates(
        self, user_store: UserStore, resolver: Any, ana: Any
    ) -> None:
        resolver.coordinates = (-43.17, -22.91)
        updated = await user_store.update(ana.id, address="Praia de Copacabana")

        assert updated.address == "Praia de Copacabana"
        assert updated.coordinates == (-43.17, -22.91)

    @pytest.mark.asyncio
    async def test_coordinates_rederive_address(
        self, user_store: UserStore, resolver: Any, ana: Any
    ) -> None:
        resolver.address = "Rio de Janeiro, RJ"
        updated = await user_store.update(ana.id, coordinates=(-43.17, -22.91))

        assert updated.coordinates == (-43.17, -22.91)
        assert updated.address == "Rio de Janeiro, RJ"

    @pytest.mark.asyncio
    async def test_both_location_fields_rejected(
        self, user_store: UserStore, ana: Any
    ) -> None:
        with pytest.raises(InvalidInputError):
            await user_store.update(
                ana.id, address="Praia de Copacabana", coordinates=(-43.17, -22.91)
            )

    @pytest.mark.asyncio
    async def test_email_taken_by_other_user(
        self, user_store: UserStore, ana: Any
    ) -> None:
        bia = await user_store.create("Bia", "bia@example.com", address=AMPHITHEATRE)
        with pytest.raises(DuplicateEmailError):
            await user_store.update(bia.id, email="ANA@example.com")

    @pytest.mark.asyncio
    async def test_same_email_is_not_a_duplicate(
        self, user_store: UserStore, ana: Any
    ) -> None:
        updated = await user_store.update(ana.id, email="Ana@Example.com")
        assert updated.email == "ana@example.com"

    @pytest.mark.asyncio
    async def test_unknown_user(self, user_store: UserStore) -> None:
        with pytest.raises(UserNotFoundError):
            await user_store.update("missing", name="Nobody")

    @pytest.mark.asyncio
    async def test_preserves_region_list(self, user_store: UserStore, ana: Any) -> None:
        await user_store.link_region(ana.id, "region-1")
        updated = await user_store.update(ana.id, name="Ana Maria")
        assert updated.region_ids == ("region-1",)


class TestDeleteAndGet:
    """Tests for delete() and get()."""

    @pytest.mark.asyncio
    async def test_delete(self, user_store: UserStore, ana: Any) -> None:
        removed = await user_store.delete(ana.id)
        assert removed.id == ana.id
        with pytest.raises(UserNotFoundError):
            await user_store.get(ana.id)

    @pytest.mark.asyncio
    async def test_delete_unknown(self, user_store: UserStore) -> None:
        with pytest.raises(UserNotFoundError):
            await user_store.delete("missing")

    @pytest.mark.asyncio
    async def test_get(self, user_store: UserStore, ana: Any) -> None:
        assert await user_store.get(ana.id) == ana


class TestList:
    """Tests for list() pagination and filters."""

    @pytest_asyncio.fixture
    async def five_users(self, user_store: UserStore) -> list[Any]:
        people = [
            ("Ana Souza", "ana@alpha.io"),
            ("Bruno Lima", "bruno@beta.io"),
            ("Carla Souza", "carla@alpha.io"),
            ("Diego Alves", "diego@gamma.io"),
            ("Elisa Rocha", "elisa@beta.io"),
        ]
        return [
            await user_store.create(name, email, coordinates=(-46.6, -23.5))
            for name, email in people
        ]

    @pytest.mark.asyncio
    async def test_pages_cover_all_users_once(
        self, user_store: UserStore, five_users: list[Any]
    ) -> None:
        pages = [await user_store.list(page=p, page_size=2) for p in (1, 2, 3)]

        assert [len(p.users) for p in pages] == [2, 2, 1]
        assert all(p.total == 5 and p.total_pages == 3 for p in pages)
        ids = [u.id for p in pages for u in p.users]
        assert sorted(ids) == sorted(u.id for u in five_users)

    @pytest.mark.asyncio
    async def test_pages_follow_full_ordering(
        self, user_store: UserStore, five_users: list[Any]
    ) -> None:
        everyone = await user_store.list(page=1, page_size=10)
        second = await user_store.list(page=2, page_size=2)
        assert second.users == everyone.users[2:4]

    @pytest.mark.asyncio
    async def test_page_past_end_is_empty(
        self, user_store: UserStore, five_users: list[Any]
    ) -> None:
        page = await user_store.list(page=4, page_size=2)
        assert page.users == []
        assert page.total == 5

    @pytest.mark.asyncio
    async def test_name_filter_case_insensitive(
        self, user_store: UserStore, five_users: list[Any]
    ) -> None:
        page = await user_store.list(name_filter="souza")
        assert {u.name for u in page.users} == {"Ana Souza", "Carla Souza"}
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_email_filter(
        self, user_store: UserStore, five_users: list[Any]
    ) -> None:
        page = await user_store.list(email_filter="BETA")
        assert {u.email for u in page.users} == {"bruno@beta.io", "elisa@beta.io"}

    @pytest.mark.asyncio
    async def test_combined_filters(
        self, user_store: UserStore, five_users: list[Any]
    ) -> None:
        page = await user_store.list(name_filter="souza", email_filter="carla")
        assert [u.name for u in page.users] == ["Carla Souza"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("page", "page_size"), [(0, 10), (1, 0), (-1, 5)])
    async def test_invalid_pagination(
        self, user_store: UserStore, page: int, page_size: int
    ) -> None:
        with pytest.raises(InvalidInputError):
            await user_store.list(page=page, page_size=page_size)


class TestOwnerList:
    """Tests for link_region() / unlink_region()."""

    @pytest.mark.asyncio
    async def test_link_is_idempotent(self, user_store: UserStore, ana: Any) -> None:
        await user_store.link_region(ana.id, "r1")
        user = await user_store.link_region(ana.id, "r1")
        assert user.region_ids == ("r1",)
        assert user.owns("r1")

    @pytest.mark.asyncio
    async def test_unlink(self, user_store: UserStore, ana: Any) -> None:
        await user_store.link_region(ana.id, "r1")
        await user_store.link_region(ana.id, "r2")
        user = await user_store.unlink_region(ana.id, "r1")
        assert user.region_ids == ("r2",)

    @pytest.mark.asyncio
    async def test_unlink_absent_region_is_noop(
        self, user_store: UserStore, ana: Any
    ) -> None:
        user = await user_store.unlink_region(ana.id, "never-linked")
        assert user == ana

    @pytest.mark.asyncio
    async def test_link_unknown_user(self, user_store: UserStore) -> None:
        with pytest.raises(UserNotFoundError):
            await user_store.link_region("missing", "r1")


class TestRepositoryInjection:
    """Tests for the repository handed to UserStore."""

    @pytest.mark.asyncio
    async def test_empty_file_repository_is_used(
        self, tmp_path: Path, resolver: Any
    ) -> None:
        repo: JsonFileRepository[User] = JsonFileRepository(
            tmp_path / "users.json", User
        )
        store = UserStore(resolver, repo)

        user = await store.create("Ana", "ana@example.com", coordinates=(0, 0))

        assert store.repository is repo
        assert await JsonFileRepository(tmp_path / "users.json", User).get(
            user.id
        ) == user
