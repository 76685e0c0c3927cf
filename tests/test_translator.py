"""Tests for JSON:API query translation and pagination."""

from urllib.parse import parse_qs, urlparse

import pytest

from panelmcp.api.crud_api import delete_resource, read_resources
from panelmcp.errors import InvalidFilter, InvalidInclude, InvalidSort
from panelmcp.query.models import QueryRequest
from panelmcp.query.translator import PageResult, build_links, execute, translate
from panelmcp.workbench.models import Comment


def _translate(session, registry, resource, **kwargs):
    return translate(session, registry.require(resource), QueryRequest(resource=resource, **kwargs))


def test_exact_filter_returns_only_equal_records(session, registry, make_user):
    make_user(name="Ann", status="active")
    make_user(name="Bob", status="suspended")
    make_user(name="Cid", status="active")

    result = read_resources(session, registry, "users", filter={"status": "active"})

    assert result["success"] is True
    assert [row["name"] for row in result["data"]] == ["Ann", "Cid"]
    assert all(row["status"] == "active" for row in result["data"])


def test_wildcard_filter_is_partial_match(session, registry, make_user):
    make_user(name="Annabel")
    make_user(name="Joanna")
    make_user(name="Bob")

    result = read_resources(session, registry, "users", filter={"name": "*nna*"})

    assert sorted(row["name"] for row in result["data"]) == ["Annabel", "Joanna"]


def test_list_filter_is_membership(session, registry, make_user):
    users = [make_user() for _ in range(4)]

    result = read_resources(session, registry, "users", filter={"id": [str(users[0].id), users[2].id]})

    assert [row["id"] for row in result["data"]] == [users[0].id, users[2].id]


def test_undeclared_filter_fails(session, registry):
    with pytest.raises(InvalidFilter) as excinfo:
        _translate(session, registry, "posts", filter={"body": "x"})

    assert excinfo.value.names == ["body"]
    assert "Allowed filter(s) are `id, published, title, user_id`" in str(excinfo.value)


def test_hidden_column_cannot_be_filtered(session, registry):
    result = read_resources(session, registry, "users", filter={"password_hash": "x"})

    assert result["success"] is False
    assert result["error"].startswith("The filter you specified cannot be applied")
    assert "password_hash" in result["error"]


def test_filter_scope_takes_precedence(session, registry, make_user, make_post):
    user = make_user()
    make_post(user, title="Draft", published=False)
    make_post(user, title="Live", published=True)

    result = read_resources(session, registry, "posts", filter={"published": "true"})

    assert [row["title"] for row in result["data"]] == ["Live"]


def test_search_scope(session, registry, make_user):
    make_user(name="Ann", email="ann@x.io")
    make_user(name="Bob", email="bob@example.com")

    result = read_resources(session, registry, "users", filter={"search": "x.io"})

    assert [row["name"] for row in result["data"]] == ["Ann"]


def test_trashed_rows_are_excluded_by_default(session, registry, make_user):
    make_user(name="Kept")
    make_user(name="Gone", deleted_at="2025-01-01T00:00:00Z")

    default = read_resources(session, registry, "users")
    with_trashed = read_resources(session, registry, "users", filter={"trashed": "with"})
    only_trashed = read_resources(session, registry, "users", filter={"trashed": "only"})

    assert [row["name"] for row in default["data"]] == ["Kept"]
    assert [row["name"] for row in with_trashed["data"]] == ["Kept", "Gone"]
    assert [row["name"] for row in only_trashed["data"]] == ["Gone"]


def test_trashed_filter_requires_soft_deletes(session, registry):
    with pytest.raises(InvalidFilter):
        _translate(session, registry, "posts", filter={"trashed": "with"})


def test_sort_by_column_and_scope(session, registry, make_user):
    make_user(name="Bo")
    make_user(name="Alexandra")
    make_user(name="Cyd")

    by_name = read_resources(session, registry, "users", sort="-name")
    by_length = read_resources(session, registry, "users", sort="name_length")

    assert [row["name"] for row in by_name["data"]] == ["Cyd", "Bo", "Alexandra"]
    assert [row["name"] for row in by_length["data"]] == ["Bo", "Cyd", "Alexandra"]


def test_undeclared_sort_fails(session, registry):
    with pytest.raises(InvalidSort) as excinfo:
        _translate(session, registry, "users", sort="name,-password_hash")

    assert excinfo.value.names == ["password_hash"]


def test_invalid_sort_envelope(session, registry):
    result = read_resources(session, registry, "users", sort="nope")

    assert result["success"] is False
    assert result["error"].startswith("The sorting option you chose is not available")


def test_include_loads_relations(session, registry, make_user, make_post):
    user = make_user(name="Ann")
    post = make_post(user, title="Hello")
    session.add(Comment(post_id=post.id, body="Nice"))
    session.commit()

    result = read_resources(session, registry, "users", include="posts,posts.comments")

    row = result["data"][0]
    assert row["posts"][0]["title"] == "Hello"
    assert row["posts"][0]["comments"][0]["body"] == "Nice"


def test_include_many_to_one(session, registry, make_user, make_post):
    make_post(make_user(name="Ann"))

    result = read_resources(session, registry, "posts", include="author")

    assert result["data"][0]["author"]["name"] == "Ann"
    assert "password_hash" not in result["data"][0]["author"]


def test_unknown_include_fails(session, registry):
    with pytest.raises(InvalidInclude) as excinfo:
        _translate(session, registry, "users", include="invoices")

    assert excinfo.value.names == ["invoices"]

    result = read_resources(session, registry, "users", include="invoices")
    assert result["error"].startswith("The related information you requested is not available")


def test_sparse_fieldsets_and_appends(session, registry, make_user, make_post):
    user = make_user(name="Ann", email="ann@x.io")
    make_post(user, title="Hello")

    result = read_resources(
        session,
        registry,
        "users",
        fields={"users": "id,name", "posts": ["title"]},
        include="posts",
        append="display_name,unknown_attribute",
    )

    row = result["data"][0]
    assert set(row) == {"id", "name", "display_name", "unknown_attribute", "posts"}
    assert row["display_name"] == "Ann <ann@x.io>"
    assert row["unknown_attribute"] is None
    assert row["posts"] == [{"title": "Hello"}]


def test_pagination_metadata_and_links(session, registry, make_user):
    for _ in range(5):
        make_user()

    result = read_resources(
        session, registry, "users", filter={"status": "active"}, sort="-id", page={"number": 2, "size": 2}
    )

    assert [row["id"] for row in result["data"]] == [3, 2]
    assert result["metadata"] == {
        "current_page": 2,
        "per_page": 2,
        "total": 5,
        "last_page": 3,
        "from": 3,
        "to": 4,
    }
    links = result["links"]
    assert links["prev"] is not None and links["next"] is not None
    query = parse_qs(urlparse(links["next"]).query)
    assert urlparse(links["next"]).path == "/users"
    assert query["page[number]"] == ["3"]
    assert query["page[size]"] == ["2"]
    assert query["filter[status]"] == ["active"]
    assert query["sort"] == ["-id"]


def test_default_page_and_empty_result(session, registry):
    result = read_resources(session, registry, "users")

    assert result["data"] == []
    assert result["metadata"] == {
        "current_page": 1,
        "per_page": 15,
        "total": 0,
        "last_page": 1,
        "from": None,
        "to": None,
    }
    assert result["links"]["prev"] is None
    assert result["links"]["next"] is None


@pytest.mark.parametrize(
    "page",
    [{"size": 101}, {"size": 0}, {"number": 0}, {"number": 1, "size": 10, "offset": 5}],
)
def test_out_of_range_pages_fail_validation(session, registry, page):
    result = read_resources(session, registry, "users", page=page)

    assert result["success"] is False
    assert result["error"].startswith("The search criteria provided is invalid: ")


def test_max_page_size_is_allowed(session, registry, make_user):
    make_user()

    result = read_resources(session, registry, "users", page={"size": 100})

    assert result["success"] is True
    assert result["metadata"]["per_page"] == 100


def test_primary_key_breaks_sort_ties(session, registry, make_user):
    for name in ["Sam", "Sam", "Sam"]:
        make_user(name=name)

    executable = _translate(session, registry, "users", sort="name", page={"size": 2})
    first = execute(executable)

    assert [user.id for user in first.items] == [1, 2]


def test_links_for_single_page():
    request = QueryRequest(resource="tags")
    links = build_links(request, PageResult(items=[], total=0, current_page=1, per_page=15))

    assert links["first"] == links["last"] == "/tags?page%5Bnumber%5D=1&page%5Bsize%5D=15"


def test_appends_resolve_properties_only(session, registry, make_user, make_post):
    user = make_user(name="Ann", email="ann@x.io", password_hash="pbkdf2_sha256$1$salt$digest")
    make_post(user)

    result = read_resources(
        session, registry, "users", append="password_hash,posts,email,_sa_instance_state,display_name"
    )

    row = result["data"][0]
    assert row["password_hash"] is None
    assert row["posts"] is None
    assert row["_sa_instance_state"] is None
    assert row["email"] == "ann@x.io"
    assert row["display_name"] == "Ann <ann@x.io>"


def test_appended_values_are_json_data(session, registry, make_user, make_post):
    user = make_user()
    make_post(user)

    result = read_resources(session, registry, "posts", append="comment_count,author")

    assert result["data"][0]["comment_count"] == 0
    assert result["data"][0]["author"] is None


def test_include_hides_soft_deleted_parent(session, registry, make_user, make_post):
    user = make_user(name="Ann")
    make_post(user, title="Hello")
    assert delete_resource(session, registry, "users", user.id)["metadata"]["delete_type"] == "soft_deleted"

    users = read_resources(session, registry, "users")
    posts = read_resources(session, registry, "posts", include="author")

    assert users["metadata"]["total"] == 0
    assert posts["data"][0]["title"] == "Hello"
    assert posts["data"][0]["author"] is None


def test_nested_include_hides_soft_deleted_rows(session, registry, make_user, make_post):
    kept = make_user(name="Kept")
    gone = make_user(name="Gone", deleted_at="2025-01-01T00:00:00Z")
    for author in (kept, gone):
        post = make_post(author, title=f"By {author.name}")
        session.add(Comment(post_id=post.id, body="Nice"))
    session.commit()

    result = read_resources(session, registry, "comments", include="post.author")

    authors = [row["post"]["author"] for row in result["data"]]
    assert authors[0]["name"] == "Kept"
    assert authors[1] is None


def test_trashed_filter_rejects_unknown_mode(session, registry, make_user):
    make_user()

    with pytest.raises(InvalidFilter) as excinfo:
        _translate(session, registry, "users", filter={"trashed": "yes"})

    assert excinfo.value.names == ["trashed"]
    result = read_resources(session, registry, "users", filter={"trashed": "yes"})
    assert result["success"] is False
    assert "accepts `with`, `only`" in result["error"]
