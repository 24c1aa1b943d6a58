"""Tests for project and health routes."""
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from hive.build.exceptions import ProjectExistsError, ProjectNotFoundError
from hive.core.types import Architecture, Component, Project


class TestProjectRoutes:
    """Tests for /api/projects."""

    @pytest.mark.asyncio
    async def test_create_project(
        self, client: AsyncClient, mock_projects: AsyncMock
    ) -> None:
        """Should return 201 with the stored project."""
        mock_projects.create.side_effect = lambda project: project

        response = await client.post(
            "/api/projects",
            json={
                "slug": "shop",
                "name": "Shop",
                "architecture": {
                    "components": [
                        {"name": "db"},
                        {"name": "api", "dependencies": ["db"]},
                    ]
                },
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "shop"
        assert [c["name"] for c in data["architecture"]["components"]] == ["db", "api"]
        created: Project = mock_projects.create.await_args.args[0]
        assert created.architecture.components[1].dependencies == ["db"]

    @pytest.mark.asyncio
    async def test_create_duplicate(self, client: AsyncClient, mock_projects: AsyncMock) -> None:
        mock_projects.create.side_effect = ProjectExistsError("shop")

        response = await client.post("/api/projects", json={"slug": "shop", "name": "Shop"})

        assert response.status_code == 409
        assert response.json()["details"]["project"] == "shop"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"slug": "Bad Slug", "name": "x"},
            {"slug": "shop"},
            {
                "slug": "shop",
                "name": "Shop",
                "architecture": {"components": [{"name": "a"}, {"name": "a"}]},
            },
        ],
    )
    async def test_create_invalid(
        self, client: AsyncClient, mock_projects: AsyncMock, body: dict[str, object]
    ) -> None:
        response = await client.post("/api/projects", json=body)

        assert response.status_code == 400
        mock_projects.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_projects(self, client: AsyncClient, mock_projects: AsyncMock) -> None:
        mock_projects.list_all.return_value = [
            Project(slug="a", name="A"),
            Project(slug="b", name="B"),
        ]

        response = await client.get("/api/projects")

        assert response.status_code == 200
        assert response.json()["total"] == 2

    @pytest.mark.asyncio
    async def test_get_missing_project(
        self, client: AsyncClient, mock_projects: AsyncMock
    ) -> None:
        mock_projects.get_by_slug.return_value = None

        response = await client.get("/api/projects/ghost")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_update_architecture(
        self, client: AsyncClient, mock_projects: AsyncMock
    ) -> None:
        architecture = Architecture(components=[Component(name="cli")])
        mock_projects.update_architecture.return_value = Project(
            slug="shop", name="Shop", architecture=architecture
        )

        response = await client.put(
            "/api/projects/shop/architecture", json={"components": [{"name": "cli"}]}
        )

        assert response.status_code == 200
        mock_projects.update_architecture.assert_awaited_once_with("shop", architecture)

    @pytest.mark.asyncio
    async def test_update_architecture_missing(
        self, client: AsyncClient, mock_projects: AsyncMock
    ) -> None:
        mock_projects.update_architecture.side_effect = ProjectNotFoundError("ghost")

        response = await client.put("/api/projects/ghost/architecture", json={"components": []})

        assert response.status_code == 404


class TestHealthRoute:
    """Tests for /api/health."""

    @pytest.mark.asyncio
    async def test_healthy(self, client: AsyncClient, mock_database: AsyncMock) -> None:
        mock_database.is_healthy.return_value = True
        mock_database.path = Path("/tmp/hive.db")

        response = await client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"]["status"] == "healthy"
        assert data["database"]["path"] == "/tmp/hive.db"
        assert data["uptime_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_degraded(self, client: AsyncClient, mock_database: AsyncMock) -> None:
        mock_database.is_healthy.return_value = False
        mock_database.path = Path("/tmp/hive.db")

        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
