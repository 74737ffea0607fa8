"""Tests for the cascading save/validate engine (WithRelated).

Runs the whole stack against in-memory SQLite: records, relation
resolution, junction reconciliation, and transaction handling.
"""

from unittest import mock

import pytest

from cascade_models import Comment, Note, Notebook, Post, Profile, Tag, User
from db_cascade.exceptions import ConfigurationError, StorageError, UsageError
from db_cascade.relations.engine import DefaultRelationTreeProvider, WithRelated


def junction_rows(db, post) -> list[tuple]:
    rows = db.client.select("post_tags", "*", {"post_id": post.id})
    return sorted((row["tag_id"], row["position"]) for row in rows)


def saved_post(db, *, title="Hello", comments=(), tags=()) -> Post:
    post = Post(title=title)
    post.comments = [Comment(body=body) for body in comments]
    post.tags = list(tags)
    assert post.with_related.save(data=["comments", "tags"])
    return post


# ============================================================================
# Save ordering per relation kind
# ============================================================================


class TestSaveRelationKinds:
    """Each relation kind is written in the right order with the right keys."""

    def test_belongs_to_saved_before_owner(self, db) -> None:
        """The author is inserted first and its key lands on the post."""
        author = User(name="ann")
        post = Post(title="Hello")
        post.author = author

        assert post.with_related.save(data="author") is True

        assert author.id is not None
        assert post.author_id == author.id
        row = db.client.select("posts", "*", {"id": post.id})[0]
        assert row["author_id"] == author.id

    def test_belongs_to_none_clears_foreign_key(self, db) -> None:
        """Setting a BELONGS_TO relation to None nulls the FK column."""
        post = Post(title="Hello")
        post.author = User(name="ann")
        post.with_related.save(data="author")

        post.author = None
        assert post.with_related.save(data="author")

        row = db.client.select("posts", "*", {"id": post.id})[0]
        assert row["author_id"] is None

    def test_has_one_gets_owner_key(self, db) -> None:
        user = User(name="ann")
        user.profile = Profile(bio="hi")

        assert user.with_related.save(data="profile")

        assert user.profile.user_id == user.id
        assert db.client.select("profiles", "user_id")[0]["user_id"] == user.id

    def test_has_many_children_get_owner_key(self, db, count) -> None:
        post = saved_post(db, comments=["a", "b"])

        assert count("comments", post_id=post.id) == 2
        assert all(comment.post_id == post.id for comment in post.comments)

    def test_many_many_writes_junction_rows(self, db) -> None:
        tags = [Tag(name="python"), Tag(name="sql")]
        post = saved_post(db, tags=tags)

        assert all(not tag.is_new for tag in tags)
        assert junction_rows(db, post) == sorted((tag.id, None) for tag in tags)

    def test_relations_outside_tree_are_not_saved(self, db, count) -> None:
        """Loaded relations not named in the tree are left alone."""
        post = Post(title="Hello")
        post.comments = [Comment(body="a")]

        assert post.with_related.save()

        assert count("posts") == 1
        assert count("comments") == 0

    def test_unknown_tree_entries_are_skipped(self, db, count) -> None:
        post = Post(title="Hello")

        assert post.with_related.save(data=["nonexistent", {"comments": "author"}])
        assert count("posts") == 1

    def test_existing_record_is_updated(self, db, count) -> None:
        post = saved_post(db)
        post.title = "Changed"

        assert post.with_related.save()

        assert count("posts") == 1
        assert db.client.select("posts", "title", {"id": post.id}) == [{"title": "Changed"}]


# ============================================================================
# Processed relation trees
# ============================================================================


class TestProcessedRelations:
    """Default trees, per-call trees, and attribute subsets."""

    def test_default_tree_used_without_data(self, db, count) -> None:
        post = Post(title="Hello")
        post.comments = [Comment(body="a")]
        post.with_related.add_processed_relation("comments")

        assert post.with_related.save()
        assert count("comments") == 1

    def test_remove_processed_relation(self, db) -> None:
        behavior = Post(title="x").with_related
        behavior.add_processed_relation(["comments", {"tags": ["name"]}])
        assert behavior.get_processed_relations() == {
            "comments": {},
            "tags": {"name": {}},
        }

        behavior.remove_processed_relation("tags")
        assert behavior.get_processed_relations() == {"comments": {}}

    def test_attribute_subset_still_writes_foreign_key(self, db) -> None:
        """Key columns assigned by the cascade are written even when not listed."""
        post = Post(title="Hello")
        post.comments = [Comment(body="a")]

        assert post.with_related.save(data={"comments": ["body"]})

        row = db.client.select("comments")[0]
        assert row["body"] == "a"
        assert row["post_id"] == post.id

    def test_attribute_subset_limits_update(self, db) -> None:
        post = saved_post(db, title="Hello", comments=["a"])
        post.comments[0].body = "edited"
        post.title = "Changed"

        assert post.with_related.save(data=["title"])

        assert db.client.select("posts", "title")[0]["title"] == "Changed"
        assert db.client.select("comments", "body")[0]["body"] == "a"

    def test_nested_record_default_tree_is_merged(self, db) -> None:
        """A nested record's own default tree applies when the cascade reaches it."""
        tag = Tag(name="python")
        post = Post(title="Hello")
        post.tags = [tag]
        post.with_related.add_processed_relation("tags")

        user = User(name="ann")
        user.posts = [post]

        assert isinstance(post, DefaultRelationTreeProvider)
        assert user.with_related.save(data="posts")

        assert junction_rows(db, post) == [(tag.id, None)]


# ============================================================================
# HasMany reconciliation
# ============================================================================


class TestHasManyReconciliation:
    """Children dropped from a HAS_MANY collection are deleted."""

    def test_removed_children_are_deleted(self, db, count) -> None:
        post = saved_post(db, comments=["a", "b", "c"])

        loaded = Post.find(id=post.id)
        comments = loaded.load_related("comments")
        assert [c.body for c in comments] == ["a", "b", "c"]

        loaded.comments = [comments[1], Comment(body="d")]
        assert loaded.with_related.save(data="comments")

        remaining = sorted(row["body"] for row in db.client.select("comments"))
        assert remaining == ["b", "d"]

    def test_empty_collection_deletes_all(self, db, count) -> None:
        post = saved_post(db, comments=["a", "b"])

        post.comments = []
        assert post.with_related.save(data="comments")

        assert count("comments") == 0

    def test_other_owners_children_untouched(self, db, count) -> None:
        first = saved_post(db, title="first", comments=["a"])
        second = saved_post(db, title="second", comments=["b"])

        first.comments = []
        first.with_related.save(data="comments")

        assert count("comments", post_id=second.id) == 1

    def test_keyless_children_are_refused(self, db, count) -> None:
        """Without a primary key a removed child cannot be singled out."""
        first, second = Notebook(title="first"), Notebook(title="second")
        first.insert()
        second.insert()
        db.client.insert("notes", {"notebook_id": first.id, "body": "x"})
        db.client.insert("notes", {"notebook_id": second.id, "body": "y"})

        first.notes = []
        with pytest.raises(ConfigurationError, match="no primary key"):
            first.with_related.save(data="notes")

        assert count("notes", notebook_id=first.id) == 1
        assert count("notes", notebook_id=second.id) == 1


# ============================================================================
# ManyMany reconciliation
# ============================================================================


class TestManyManyReconciliation:
    """Junction rows are fully replaced per owner."""

    def test_replace_tag_set(self, db, count) -> None:
        python, sql, web = Tag(name="python"), Tag(name="sql"), Tag(name="web")
        post = saved_post(db, tags=[python, sql])
        other = saved_post(db, title="other", tags=[python])

        post.tags = [sql, web]
        assert post.with_related.save(data="tags")

        assert junction_rows(db, post) == sorted([(sql.id, None), (web.id, None)])
        assert junction_rows(db, other) == [(python.id, None)]
        assert count("tags") == 3

    def test_overlay_written_to_junction_row(self, db) -> None:
        python, sql = Tag(name="python"), Tag(name="sql")
        post = Post(title="Hello")
        post.tags = [python, sql]

        assert post.with_related.get_many_many_attributes("tags", python) == {"position": None}
        post.with_related.set_many_many_attributes("tags", python, {"position": 1})
        assert post.with_related.save(data="tags")

        assert junction_rows(db, post) == sorted([(python.id, 1), (sql.id, None)])

    def test_key_columns_win_over_overlay(self, db) -> None:
        python = Tag(name="python")
        post = Post(title="Hello")
        post.tags = [python]

        post.with_related.set_many_many_attributes(
            "tags", python, {"post_id": 999, "position": 2}
        )
        post.with_related.save(data="tags")

        assert junction_rows(db, post) == [(python.id, 2)]
        assert db.client.select("post_tags", "*", {"post_id": 999}) == []

    def test_overlays_of_dropped_records_discarded(self, db) -> None:
        python, sql = Tag(name="python"), Tag(name="sql")
        post = Post(title="Hello")
        post.tags = [python, sql]
        post.with_related.set_many_many_attributes("tags", python, {"position": 1})
        post.with_related.set_many_many_attributes("tags", sql, {"position": 2})
        assert post.with_related.save(data="tags")

        post.tags = [sql]
        assert post.with_related.save(data="tags")

        overlays = post.with_related.overlays()
        assert overlays.peek("tags", python) == {}
        assert overlays.peek("tags", sql) == {"position": 2}
        assert junction_rows(db, post) == [(sql.id, 2)]

    def test_overlay_seeded_from_existing_row(self, db) -> None:
        python = Tag(name="python")
        post = Post(title="Hello")
        post.tags = [python]
        post.with_related.set_many_many_attributes("tags", python, {"position": 7})
        post.with_related.save(data="tags")

        loaded = Post.find(id=post.id)
        tag = loaded.load_related("tags")[0]

        assert loaded.with_related.get_many_many_attribute("tags", tag, "position") == 7

    def test_reverse_side_resolves(self, db) -> None:
        """The same junction table works from the tag's side."""
        tag = Tag(name="python")
        tag.posts = [Post(title="a"), Post(title="b")]

        assert tag.with_related.save(data="posts")

        rows = db.client.select("post_tags", "*", {"tag_id": tag.id})
        assert sorted(row["post_id"] for row in rows) == sorted(p.id for p in tag.posts)


# ============================================================================
# Junction attribute API misuse
# ============================================================================


class TestJunctionAttributeErrors:
    """Overlay API rejects relations and records it cannot apply to."""

    def test_relation_not_many_many(self, db) -> None:
        comment = Comment(body="a")
        post = Post(title="x")
        post.comments = [comment]

        with pytest.raises(UsageError, match="isn't MANY_MANY"):
            post.with_related.get_many_many_attributes("comments", comment)

    def test_record_not_in_collection(self, db) -> None:
        post = Post(title="x")
        post.tags = [Tag(name="python")]

        with pytest.raises(UsageError, match="isn't related"):
            post.with_related.set_many_many_attributes("tags", Tag(name="sql"), {"position": 1})

    def test_unknown_attribute(self, db) -> None:
        tag = Tag(name="python")
        post = Post(title="x")
        post.tags = [tag]

        with pytest.raises(UsageError, match="does not exist"):
            post.with_related.get_many_many_attribute("tags", tag, "color")


# ============================================================================
# Validation
# ============================================================================


class TestValidation:
    """Validation aggregates errors across the tree and gates the save."""

    def test_invalid_root_writes_nothing(self, db, count) -> None:
        post = Post(title="")
        post.comments = [Comment(body="a")]

        assert post.with_related.save(data="comments") is False

        assert count("posts") == 0
        assert count("comments") == 0
        assert list(post.with_related.get_errors()) == ["title"]

    def test_validate_never_writes(self, db) -> None:
        """Validating a nested graph of new records touches no rows."""
        post = Post(title="Hello")
        post.author = User(name="")
        post.comments = [Comment(body="a"), Comment(body="")]
        post.tags = [Tag(name="python")]

        with (
            mock.patch.object(db.client, "insert") as insert,
            mock.patch.object(db.client, "update") as update,
            mock.patch.object(db.client, "delete") as delete,
        ):
            assert post.with_related.validate(data=["author", "comments", "tags"]) is False

        insert.assert_not_called()
        update.assert_not_called()
        delete.assert_not_called()
        assert post.is_new
        assert set(post.with_related.get_errors()) == {"author", "comments"}

    def test_error_tree_indexes_collection(self, db) -> None:
        """Only the invalid element's index appears under the relation."""
        post = Post(title="Hello")
        post.comments = [Comment(body="fine"), Comment(body="")]

        assert post.with_related.validate(data="comments") is False

        errors = post.with_related.get_errors()
        assert list(errors) == ["comments"]
        assert list(errors["comments"]) == [1]
        assert list(errors["comments"][1]) == ["body"]

    def test_single_relation_errors_nest_under_name(self, db) -> None:
        post = Post(title="Hello")
        post.author = User(name="")

        assert post.with_related.validate(data="author") is False
        assert list(post.with_related.get_errors()["author"]) == ["name"]

    def test_absent_relation_is_not_an_error(self, db) -> None:
        post = Post(title="Hello")
        post.author = None

        assert post.with_related.validate(data="author") is True
        assert post.with_related.get_errors() == {}

    def test_errors_cleared_between_calls(self, db) -> None:
        post = Post(title="Hello")
        comment = Comment(body="")
        post.comments = [comment]
        assert post.with_related.validate(data="comments") is False

        comment.body = "fixed"
        assert post.with_related.validate(data="comments") is True
        assert comment.errors == {}

    def test_keep_previous_errors(self, db) -> None:
        post = Post(title="Hello")
        post.add_error("title", "taken")

        assert post.with_related.validate(clear_errors=False) is False
        assert post.with_related.get_errors() == {"title": ["taken"]}

    def test_skip_validation(self, db, count) -> None:
        """run_validation=False goes straight to storage."""
        comment = Comment(body="")
        post = Post(title="Hello")
        post.comments = [comment]

        assert post.with_related.save(run_validation=False, data="comments")
        assert count("comments") == 1


# ============================================================================
# Cycles and shared references
# ============================================================================


class TestCycleSafety:
    """Each record is written at most once per save call."""

    def test_back_reference_saves_owner_once(self, db, count) -> None:
        post = Post(title="Hello")
        post.comments = [Comment(body="a"), Comment(body="b")]
        for comment in post.comments:
            comment.post = post

        with mock.patch.object(db.client, "insert", wraps=db.client.insert) as spy:
            assert post.with_related.save(data={"comments": ["post"]})

        tables = [call.args[0] for call in spy.call_args_list]
        assert tables.count("posts") == 1
        assert tables.count("comments") == 2
        assert count("posts") == 1
        assert all(c.post_id == post.id for c in post.comments)

    def test_shared_record_saved_once(self, db, count) -> None:
        author = User(name="ann")
        first, second = Post(title="a"), Post(title="b")
        first.author = author
        second.author = author
        author.posts = [first, second]

        with mock.patch.object(db.client, "insert", wraps=db.client.insert) as spy:
            assert author.with_related.save(data={"posts": ["author"]})

        tables = [call.args[0] for call in spy.call_args_list]
        assert tables.count("users") == 1
        assert count("posts", author_id=author.id) == 2


# ============================================================================
# Transactions
# ============================================================================


class TestTransactions:
    """The outermost save owns the transaction; failures roll everything back."""

    def test_failure_rolls_back_everything(self, db, count) -> None:
        python = Tag(name="python")
        post = saved_post(db, tags=[python])

        duplicate = Tag(name="sql")
        post.tags = [duplicate, duplicate]

        with pytest.raises(StorageError):
            post.with_related.save(data="tags")

        assert not db.client.in_transaction()
        assert junction_rows(db, post) == [(python.id, None)]
        assert count("tags") == 1

    def test_joins_callers_transaction(self, db, count) -> None:
        db.client.begin()
        post = Post(title="Hello")

        assert post.with_related.save()
        assert db.client.in_transaction()

        db.client.rollback()
        assert count("posts") == 0

    def test_commits_own_transaction(self, db) -> None:
        post = Post(title="Hello")

        with mock.patch.object(db.client, "commit", wraps=db.client.commit) as commit:
            post.with_related.save()

        commit.assert_called_once()
        assert not db.client.in_transaction()

    def test_invalid_save_never_opens_transaction(self, db) -> None:
        with mock.patch.object(db.client, "begin", wraps=db.client.begin) as begin:
            assert Post(title="").with_related.save() is False

        begin.assert_not_called()


# ============================================================================
# Link / unlink
# ============================================================================


class TestLinkUnlink:
    """link/unlink are declared but not implemented."""

    def test_link_not_implemented(self, db) -> None:
        with pytest.raises(NotImplementedError):
            Post(title="x").with_related.link("tags", [1])

    def test_unlink_not_implemented(self, db) -> None:
        with pytest.raises(NotImplementedError):
            Post(title="x").with_related.unlink("tags")

    def test_unknown_relation(self, db) -> None:
        with pytest.raises(UsageError):
            Post(title="x").with_related.link("nope", [1])


def test_with_related_is_attached_once(db) -> None:
    post = Post(title="x")
    assert isinstance(post.with_related, WithRelated)
    assert post.with_related is post.with_related
    assert post.with_related.owner is post
