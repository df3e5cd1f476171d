from __future__ import annotations

import pytest
from typer.testing import CliRunner

from tabletracker.catalog import KnownTables
from tabletracker.models import TableMetadata


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


@pytest.fixture
def users_orders():
    """Catalog with two real tables, keyed by bare name."""
    return KnownTables.from_mapping({
        "users": {"tableName": "users", "fullyQualifiedName": "users"},
        "orders": {"tableName": "orders", "fullyQualifiedName": "orders"},
    })


@pytest.fixture
def qualified_catalog():
    """Catalog resolving bare names onto schema-qualified ones."""
    return KnownTables.from_mapping({
        "users": TableMetadata("users", "public.users", "public", "myapp"),
        "posts": TableMetadata("posts", "blog.posts", "blog", "myapp"),
        "orders": TableMetadata("orders", "sales.orders", "sales", "myapp"),
        "public.users": TableMetadata("users", "public.users", "public", "myapp"),
    })
