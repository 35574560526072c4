"""
Relation Tests — lazy and eager loading, pivots and polymorphic relations.
"""

import pytest

from tessera.faults import RelationFault
from tessera.models import BelongsTo, HasMany, Model, relation


# ============================================================================
# Test Models
# ============================================================================


class User(Model):
    class Meta:
        fillable = ["name"]

    @relation
    def posts(self):
        return self.has_many("Post")

    @relation
    def profile(self):
        return self.has_one("Profile")


class Profile(Model):
    class Meta:
        fillable = ["bio", "user_id"]
        timestamps = False

    @relation
    def user(self):
        return self.belongs_to(User)


class Post(Model):
    class Meta:
        fillable = ["title", "user_id"]

    @relation
    def author(self):
        return self.belongs_to(User, "user_id")

    @relation
    def comments(self):
        return self.has_many("Comment")

    @relation
    def tags(self):
        return self.belongs_to_many("Tag")

    @relation
    def notes(self):
        return self.morph_many("Note", "notable")

    @relation
    def topics(self):
        return self.morph_to_many("Tag", "taggable")


class Comment(Model):
    class Meta:
        fillable = ["body", "approved", "post_id", "user_id"]
        casts = {"approved": "bool"}

    @relation
    def post(self):
        return self.belongs_to(Post)

    @relation
    def author(self):
        return self.belongs_to(User, "user_id")


class Tag(Model):
    class Meta:
        fillable = ["name"]
        timestamps = False

    @relation
    def posts(self):
        return self.belongs_to_many(Post)

    @relation
    def tagged_posts(self):
        return self.morphed_by_many(Post, "taggable")

    @relation
    def tagged_videos(self):
        return self.morphed_by_many("Video", "taggable")


class Video(Model):
    class Meta:
        fillable = ["title"]
        timestamps = False

    @relation
    def notes(self):
        return self.morph_many("Note", "notable")

    @relation
    def latest_note(self):
        return self.morph_one("Note", "notable").latest("id")

    @relation
    def topics(self):
        return self.morph_to_many(Tag, "taggable")


class Note(Model):
    class Meta:
        fillable = ["body"]
        timestamps = False

    @relation
    def notable(self):
        return self.morph_to("notable")


@pytest.fixture
def blog(schema, registry):
    def users(table):
        table.id()
        table.string("name")
        table.timestamps()

    def profiles(table):
        table.id()
        table.foreign_id("user_id")
        table.text("bio").nullable()

    def posts(table):
        table.id()
        table.foreign_id("user_id").nullable()
        table.string("title")
        table.timestamps()

    def comments(table):
        table.id()
        table.foreign_id("post_id")
        table.foreign_id("user_id").nullable()
        table.text("body")
        table.boolean("approved").default(False)
        table.timestamps()

    def tags(table):
        table.id()
        table.string("name")

    def post_tag(table):
        table.foreign_id("post_id")
        table.foreign_id("tag_id")
        table.string("added_by").nullable()

    def videos(table):
        table.id()
        table.string("title")

    def notes(table):
        table.id()
        table.text("body")
        table.nullable_morphs("notable")

    def taggables(table):
        table.foreign_id("tag_id")
        table.morphs("taggable")

    for name, build in [
        ("users", users),
        ("profiles", profiles),
        ("posts", posts),
        ("comments", comments),
        ("tags", tags),
        ("post_tag", post_tag),
        ("videos", videos),
        ("notes", notes),
        ("taggables", taggables),
    ]:
        schema.create(name, build)

    registry.register(User, Profile, Post, Comment, Tag, Video, Note)
    return registry


@pytest.fixture
def authors(blog):
    """Three users with 2, 1 and 0 posts; the first post has two comments."""
    ann = User.create(name="ann")
    bob = User.create(name="bob")
    User.create(name="cat")
    first = ann.posts().create(title="alpha")
    ann.posts().create(title="beta")
    bob.posts().create(title="gamma")
    first.comments().create(body="nice", user_id=bob.get_key(), approved=True)
    first.comments().create(body="meh", user_id=ann.get_key())
    return blog


# ============================================================================
# Has one / has many / belongs to
# ============================================================================


class TestOneToMany:
    """Test has_many, has_one and belongs_to."""

    def test_relation_method_returns_relation(self, authors):
        user = User.find(1)
        assert isinstance(user.posts(), HasMany)
        assert isinstance(Post.find(1).author(), BelongsTo)
        assert user.posts().relation_name == "posts"

    def test_lazy_has_many(self, authors):
        user = User.find(1)
        assert [p["title"] for p in user["posts"]] == ["alpha", "beta"]
        assert user.relation_loaded("posts")

    def test_lazy_result_is_memoised(self, conn, authors):
        user = User.find(1)
        user["posts"]
        conn.enable_query_log()
        user["posts"]
        assert conn.get_query_log() == []

    def test_empty_has_many(self, authors):
        assert User.find(3)["posts"] == []

    def test_lazy_belongs_to(self, authors):
        assert Post.find(3)["author"]["name"] == "bob"

    def test_belongs_to_without_key(self, authors):
        post = Post.create(title="orphan")
        assert post["author"] is None

    def test_has_one(self, authors):
        Profile.create(user_id=1, bio="hello")
        assert User.find(1)["profile"]["bio"] == "hello"
        assert User.find(2)["profile"] is None

    def test_relation_queries_chain(self, authors):
        user = User.find(1)
        assert user.posts().count() == 2
        assert user.posts().where("title", "beta").exists()
        assert user.posts().latest("id").first()["title"] == "beta"
        assert user.posts().paginate(1, 1)["last_page"] == 2

    def test_constraining_does_not_mutate(self, authors):
        posts = User.find(1).posts()
        posts.where("title", "beta")
        assert posts.count() == 2

    def test_create_through_relation(self, authors):
        user = User.find(3)
        post = user.posts().create(title="delta")
        assert post["user_id"] == user.get_key()
        assert post.exists

    def test_create_through_unsaved_owner(self, blog):
        with pytest.raises(RelationFault):
            User(name="ghost").posts().create(title="x")

    def test_make_and_save_through_relation(self, authors):
        user = User.find(3)
        draft = user.posts().make(title="draft")
        assert not draft.exists
        assert draft["user_id"] == 3
        saved = user.posts().save(Post(title="saved"))
        assert saved["user_id"] == 3
        assert user.posts().count() == 1

    def test_create_many(self, authors):
        created = User.find(3).posts().create_many([{"title": "x"}, {"title": "y"}])
        assert len(created) == 2
        assert Post.where("user_id", 3).count() == 2

    def test_associate_and_dissociate(self, authors):
        bob = User.find(2)
        post = Post(title="new")
        post.author().associate(bob)
        assert post["user_id"] == 2
        assert post.relation_loaded("author")
        post.save()
        assert Post.find(post.get_key())["author"].is_same(bob)

        post.author().dissociate()
        assert post["user_id"] is None
        assert post.get_relation("author") is None

    def test_unknown_relation(self, authors):
        with pytest.raises(RelationFault):
            Post.find(1).get_relation_instance("nope")
        with pytest.raises(RelationFault):
            Post.with_related("nope").get()


# ============================================================================
# Eager loading
# ============================================================================


class TestEagerLoading:
    """Test batched loading with with_related / load."""

    def test_has_many_uses_one_extra_query(self, conn, authors):
        conn.enable_query_log()
        users = User.with_related("posts").get()
        assert len(conn.get_query_log()) == 2
        assert [len(u["posts"]) for u in users] == [2, 1, 0]
        assert len(conn.get_query_log()) == 2

    def test_belongs_to(self, conn, authors):
        conn.enable_query_log()
        posts = Post.with_related("author").get()
        assert [p["author"]["name"] for p in posts] == ["ann", "ann", "bob"]
        assert len(conn.get_query_log()) == 2

    def test_nested(self, conn, authors):
        conn.enable_query_log()
        users = User.with_related("posts.comments.author").get()
        assert len(conn.get_query_log()) == 4
        comments = users[0]["posts"][0]["comments"]
        assert [c["author"]["name"] for c in comments] == ["bob", "ann"]

    def test_constrained(self, authors):
        users = User.with_related({"posts": lambda q: q.where("title", "like", "%a")}).get()
        assert [p["title"] for p in users[0]["posts"]] == ["alpha", "beta"]
        assert [p["title"] for p in users[1]["posts"]] == ["gamma"]

        users = User.with_related({"posts": lambda q: q.where("title", "alpha")}).get()
        assert [len(u["posts"]) for u in users] == [1, 0, 0]

    def test_constrained_nested(self, authors):
        posts = Post.with_related({"comments": lambda q: q.where("approved", True)}, "comments.author").get()
        assert [c["body"] for c in posts[0]["comments"]] == ["nice"]
        assert posts[0]["comments"][0]["author"]["name"] == "bob"

    def test_has_one(self, authors):
        Profile.create(user_id=2, bio="bob's")
        users = User.with_related("profile").get()
        assert [u["profile"] and u["profile"]["bio"] for u in users] == [None, "bob's", None]

    def test_without_related(self, conn, authors):
        query = User.with_related("posts", "profile").without_related("posts")
        user = query.first()
        assert user.relation_loaded("profile")
        assert not user.relation_loaded("posts")

    def test_load_and_load_missing(self, conn, authors):
        user = User.find(1)
        user.load("posts")
        assert user.relation_loaded("posts")
        conn.enable_query_log()
        user.load_missing("posts", "profile")
        assert len(conn.get_query_log()) == 1

    def test_eager_on_empty_result(self, conn, blog):
        conn.enable_query_log()
        assert User.with_related("posts").get() == []
        assert len(conn.get_query_log()) == 1

    def test_to_dict_includes_relations(self, authors):
        data = User.with_related("posts").find(1).to_dict()
        assert [p["title"] for p in data["posts"]] == ["alpha", "beta"]


# ============================================================================
# Many to many
# ============================================================================


@pytest.fixture
def tagged(authors):
    for name in ("red", "green", "blue"):
        Tag.create(name=name)
    return authors


class TestBelongsToMany:
    """Test pivot-backed relations."""

    def test_attach_and_read(self, tagged):
        post = Post.find(1)
        post.tags().attach([1, Tag.find(2)])
        assert [t["name"] for t in post.tags().order_by("tags.id").get()] == ["red", "green"]
        assert post.tags().order_by("tags.id").first()["pivot"] == {"post_id": 1, "tag_id": 1}
        assert Tag.find(1)["posts"][0].get_key() == 1

    def test_pivot_attributes(self, tagged):
        post = Post.find(1)
        post.tags().attach({1: {"added_by": "ann"}})
        post.tags().attach(2, {"added_by": "bob"})
        tags = post.tags().with_pivot("added_by").order_by("tags.id").get()
        assert [t["pivot"]["added_by"] for t in tags] == ["ann", "bob"]
        assert "pivot_added_by" not in tags[0]

    def test_detach(self, tagged):
        post = Post.find(1)
        post.tags().attach([1, 2, 3])
        assert post.tags().detach(1) == 1
        assert post.tags().count() == 2
        assert post.tags().detach() == 2
        assert post.tags().get() == []

    def test_sync(self, tagged):
        post = Post.find(1)
        post.tags().attach([1, 2])
        assert post.tags().sync([2, 3]) == {"attached": [3], "detached": [1]}
        assert sorted(t.get_key() for t in post.tags().get()) == [2, 3]

    def test_toggle(self, tagged):
        post = Post.find(1)
        post.tags().attach([2, 3])
        assert post.tags().toggle([1, 2]) == {"attached": [1], "detached": [2]}
        assert sorted(t.get_key() for t in post.tags().get()) == [1, 3]

    def test_attach_on_unsaved_owner(self, tagged):
        with pytest.raises(RelationFault):
            Post(title="x").tags().attach(1)

    def test_eager(self, conn, tagged):
        Post.find(1).tags().attach([1, 2])
        Post.find(3).tags().attach([2])
        conn.enable_query_log()
        posts = Post.with_related("tags").get()
        assert len(conn.get_query_log()) == 2
        assert [sorted(t["name"] for t in p["tags"]) for p in posts] == [["green", "red"], [], ["green"]]


# ============================================================================
# Polymorphic
# ============================================================================


class TestPolymorphic:
    """Test morph_one / morph_many / morph_to / morph_to_many."""

    def test_morph_many_and_morph_to(self, authors):
        post = Post.find(1)
        note = post.notes().create(body="on a post")
        assert note["notable_type"] == "Post"
        assert note["notable_id"] == 1
        assert Note.find(note.get_key())["notable"].is_same(post)

    def test_morph_map_alias(self, authors):
        authors.morph_map({"post": Post, "video": Video})
        note = Post.find(1).notes().create(body="aliased")
        assert note["notable_type"] == "post"
        assert isinstance(Note.find(note.get_key())["notable"], Post)

    def test_morph_one(self, authors):
        video = Video.create(title="clip")
        video.notes().create(body="first")
        video.notes().create(body="second")
        assert video["latest_note"]["body"] == "second"

    def test_morph_many_filters_by_type(self, authors):
        video = Video.create(title="clip")
        video.notes().create(body="video note")
        Post.find(1).notes().create(body="post note")
        assert [n["body"] for n in video["notes"]] == ["video note"]

    def test_eager_morph_to_queries_per_type(self, conn, authors):
        Post.find(1).notes().create(body="p1")
        Post.find(2).notes().create(body="p2")
        Video.create(title="clip").notes().create(body="v1")
        Note.create(body="loose")
        conn.enable_query_log()
        notes = Note.with_related("notable").order_by("id").get()
        assert len(conn.get_query_log()) == 3
        assert [type(n["notable"]).__name__ for n in notes] == ["Post", "Post", "Video", "NoneType"]

    def test_morph_to_associate(self, authors):
        video = Video.create(title="clip")
        note = Note(body="x")
        note.notable().associate(video)
        assert note["notable_type"] == "Video"
        assert note["notable_id"] == video.get_key()
        note.notable().dissociate()
        assert note["notable_type"] is None

    def test_unresolvable_morph_type(self, conn, authors):
        conn.table("notes").insert({"body": "ghost", "notable_type": "Ghost", "notable_id": 1})
        with pytest.raises(RelationFault):
            Note.first()["notable"]

    def test_morph_to_many_both_sides(self, tagged):
        post = Post.find(1)
        video = Video.create(title="clip")
        post.topics().attach([1, 2])
        video.topics().attach(2)
        assert sorted(t["name"] for t in post["topics"]) == ["green", "red"]
        assert [t["name"] for t in video["topics"]] == ["green"]
        green = Tag.find(2)
        assert [p.get_key() for p in green["tagged_posts"]] == [1]
        assert [v["title"] for v in green["tagged_videos"]] == ["clip"]
        assert Tag.find(1)["tagged_videos"] == []

    def test_morph_to_many_detach_scoped_to_type(self, tagged):
        post = Post.find(1)
        video = Video.create(title="clip")
        post.topics().attach(1)
        video.topics().attach(1)
        assert post.topics().detach() == 1
        assert video.topics().count() == 1
