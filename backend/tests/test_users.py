"""
Tests for the admin user management endpoints.
"""
import pytest
from httpx import AsyncClient

from conftest import DEFAULT_PASSWORD, auth_headers
from core.exceptions import InvalidCredentials, UserNotFound
from db.models.enums import OTPPurpose, Role
from services import user_service
from services.otp_service import OTPManager


class TestUserAccess:

    @pytest.mark.asyncio
    async def test_requires_token(self, async_client: AsyncClient):
        response = await async_client.get("/user")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_requires_admin(self, async_client: AsyncClient, member_user):
        response = await async_client.get("/user", headers=auth_headers(member_user))
        assert response.status_code == 403


class TestListUsers:
    """Pagination, search, role filter and sorting."""

    @pytest.mark.asyncio
    async def test_list_paginates(self, async_client: AsyncClient, admin_user, user_factory):
        for _ in range(4):
            await user_factory()

        response = await async_client.get("/user", params={"page": 2, "limit": 2}, headers=auth_headers(admin_user))
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["items"]) == 2
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}

    @pytest.mark.asyncio
    async def test_default_order_is_newest_first(self, async_client: AsyncClient, admin_user, user_factory):
        newest = await user_factory()
        response = await async_client.get("/user", headers=auth_headers(admin_user))
        ids = [u["id"] for u in response.json()["data"]["items"]]
        assert ids[0] == newest.id
        assert ids == sorted(ids, reverse=True)

    @pytest.mark.asyncio
    async def test_sort_by_username_ascending(self, async_client: AsyncClient, admin_user, user_factory):
        await user_factory(username="zed_user")
        await user_factory(username="amy_user")
        response = await async_client.get(
            "/user", params={"sort_by": "username", "sort_order": "ASC"}, headers=auth_headers(admin_user)
        )
        usernames = [u["username"] for u in response.json()["data"]["items"]]
        assert usernames == sorted(usernames)

    @pytest.mark.asyncio
    async def test_invalid_sort_order(self, async_client: AsyncClient, admin_user):
        response = await async_client.get("/user", params={"sort_order": "sideways"}, headers=auth_headers(admin_user))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_search(self, async_client: AsyncClient, admin_user, user_factory):
        target = await user_factory(username="findable_person")
        await user_factory()
        response = await async_client.get("/user", params={"search": "findable"}, headers=auth_headers(admin_user))
        items = response.json()["data"]["items"]
        assert [u["id"] for u in items] == [target.id]

    @pytest.mark.asyncio
    async def test_role_filter(self, async_client: AsyncClient, admin_user, user_factory):
        await user_factory()
        response = await async_client.get("/user", params={"role_query": "admin"}, headers=auth_headers(admin_user))
        items = response.json()["data"]["items"]
        assert [u["id"] for u in items] == [admin_user.id]
        assert items[0]["role"] == Role.ADMIN.value


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_create(self, async_client: AsyncClient, admin_user):
        response = await async_client.post("/user", json={
            "name": "New Member",
            "username": "new.member",
            "email": "New.Member@Example.com",
            "password": DEFAULT_PASSWORD,
            "email_verified": True,
        }, headers=auth_headers(admin_user))
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "new.member@example.com"
        assert data["role"] == Role.MEMBER.value
        assert data["email_verified"] is not None

    @pytest.mark.asyncio
    async def test_create_duplicate(self, async_client: AsyncClient, admin_user, member_user):
        response = await async_client.post("/user", json={
            "name": "Dup",
            "username": "another_one",
            "email": member_user.email,
            "password": DEFAULT_PASSWORD,
        }, headers=auth_headers(admin_user))
        assert response.status_code == 409


class TestDeleteUsers:

    @pytest.mark.asyncio
    async def test_delete_removes_users_and_codes(self, async_client: AsyncClient, db_session, admin_user, user_factory):
        doomed = [await user_factory() for _ in range(2)]
        await OTPManager(db_session).issue(doomed[0], OTPPurpose.LOGIN_OTP)

        response = await async_client.request(
            "DELETE", "/user", json={"ids": [u.id for u in doomed]}, headers=auth_headers(admin_user)
        )
        assert response.status_code == 200
        assert response.json()["data"] == {"deleted": 2}

        response = await async_client.get("/user", headers=auth_headers(admin_user))
        assert response.json()["data"]["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_delete_unknown_ids(self, async_client: AsyncClient, admin_user):
        response = await async_client.request("DELETE", "/user", json={"ids": [9999]}, headers=auth_headers(admin_user))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_requires_ids(self, async_client: AsyncClient, admin_user):
        response = await async_client.request("DELETE", "/user", json={"ids": []}, headers=auth_headers(admin_user))
        assert response.status_code == 422


class TestUserStore:
    """Service level lookups."""

    @pytest.mark.asyncio
    async def test_finders(self, db_session, member_user):
        assert (await user_service.find_user_by_id(db_session, member_user.id)).id == member_user.id
        assert (await user_service.find_user_by_username(db_session, f" {member_user.username} ")).id == member_user.id
        assert (await user_service.find_user_by_email(db_session, member_user.email.upper())).id == member_user.id

    @pytest.mark.asyncio
    async def test_finders_raise_not_found(self, db_session):
        with pytest.raises(UserNotFound):
            await user_service.find_user_by_username(db_session, "nobody_here")
        with pytest.raises(UserNotFound):
            await user_service.find_user_by_id(db_session, 12345)

    @pytest.mark.asyncio
    async def test_check_password(self, member_user):
        user_service.check_password(DEFAULT_PASSWORD, member_user)
        with pytest.raises(InvalidCredentials):
            user_service.check_password("Wr0ng!Password", member_user)

    @pytest.mark.asyncio
    async def test_update_user_rejects_unknown_field(self, db_session, member_user):
        with pytest.raises(ValueError):
            await user_service.update_user(db_session, member_user.id, nickname="x")
