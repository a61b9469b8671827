"""Client against the live DuckDB-backed mock gateway."""

from __future__ import annotations

import pytest

from warlot import APIError, CallOptions, ResolveProjectRequest


@pytest.fixture
def products(project):
    project.sql("CREATE TABLE products (id INTEGER, name TEXT, price DOUBLE)")
    for i, (name, price) in enumerate([("lamp", 10.5), ("desk", 99.0), ("chair", 45.0), ("mug", 3.25), ("pen", 1.0)]):
        project.sql("INSERT INTO products VALUES (?, ?, ?)", [i + 1, name, price])
    return project


def test_insert_reports_row_count(project) -> None:
    project.sql("CREATE TABLE t (n INTEGER)")
    out = project.sql("INSERT INTO t VALUES (1), (2), (3)")
    assert out.ok
    assert out.row_count == 3


def test_select_returns_rows(products) -> None:
    out = products.sql("SELECT id, name FROM products WHERE price > ? ORDER BY id", [20])
    assert out.ok
    assert out.rows == [{"id": 2, "name": "desk"}, {"id": 3, "name": "chair"}]


def test_stream_rows_across_batches(products) -> None:
    with products.sql_stream("SELECT name FROM products ORDER BY id") as scanner:
        names = [row["name"] for row in scanner]
    assert names == ["lamp", "desk", "chair", "mug", "pen"]
    assert scanner.err is None


def test_stream_with_row_decoder(products) -> None:
    with products.sql_stream("SELECT price FROM products ORDER BY id", decode=lambda r: r["price"]) as scanner:
        assert list(scanner) == [10.5, 99.0, 45.0, 3.25, 1.0]


def test_pager_walks_table(products) -> None:
    pager = products.pager("products", limit=2)
    pages = [[row["id"] for row in page] for page in pager]
    assert pages == [[1, 2], [3, 4], [5]]
    assert pager.offset == 5


def test_table_inspection(products) -> None:
    assert products.tables().tables == ["products"]
    assert products.count().table_count == 1

    page = products.browse("products", limit=2, offset=3)
    assert (page.limit, page.offset, page.table) == (2, 3, "products")
    assert [r["name"] for r in page.rows] == ["mug", "pen"]

    schema = products.schema("products")
    assert [c["name"] for c in schema["columns"]] == ["id", "name", "price"]


def test_unknown_table_is_not_found(project) -> None:
    with pytest.raises(APIError) as excinfo:
        project.schema("missing")
    assert excinfo.value.status_code == 404


def test_sql_error_is_a_client_error(project) -> None:
    with pytest.raises(APIError) as excinfo:
        project.sql("SELECT * FROM nowhere")
    assert excinfo.value.status_code == 400
    assert "nowhere" in excinfo.value.message


def test_status_and_commit(products) -> None:
    status = products.status()
    assert status["pending_changes"] == 6

    receipt = products.commit()
    assert receipt["ok"] is True
    assert receipt["committed_changes"] == 6
    assert len(receipt["tx_digest"]) == 64

    assert products.status()["pending_changes"] == 0


def test_idempotency_key_is_accepted(project) -> None:
    project.sql("CREATE TABLE t (n INTEGER)", options=CallOptions(idempotency_key="mk-t"))
    assert project.tables().tables == ["t"]


def test_wrong_api_key_is_rejected(gateway, project, make_client) -> None:
    intruder = make_client(gateway, api_key="wk_not_a_real_key")
    with pytest.raises(APIError) as excinfo:
        intruder.project(project.id).tables()
    assert excinfo.value.status_code == 403


def test_missing_api_key_is_rejected(gateway, project, make_client) -> None:
    with pytest.raises(APIError) as excinfo:
        make_client(gateway).get_project_status(project.id)
    assert excinfo.value.status_code == 401


def test_resolve(gateway, project, make_client) -> None:
    client = make_client(gateway)

    found = client.resolve_project(ResolveProjectRequest("0xholder", "demo"))
    assert found.exists_meta is True
    assert found.project_id == project.id

    missing = client.resolve_project(ResolveProjectRequest("0xholder", "other"))
    assert missing.exists_meta is False
    assert missing.project_id == ""
