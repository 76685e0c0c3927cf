"""Sample entities backing the workbench configuration."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, func, or_
from sqlalchemy.orm import relationship

from ..database.schema import Base, SoftDeleteMixin, TimestampMixin

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    status: Literal["active", "suspended", "inactive"] = "active"


class PostPayload(BaseModel):
    user_id: int
    title: str = Field(..., min_length=1, max_length=255)
    body: Optional[str] = None
    published: bool = False


class CommentPayload(BaseModel):
    post_id: int
    body: str = Field(..., min_length=1)


def _scope_status(query, value):
    return query.filter(User.status == value)


def _scope_search(query, value):
    pattern = f"%{value}%"
    return query.filter(or_(User.name.like(pattern), User.email.like(pattern)))


def _sort_name_length(query, descending):
    length = func.length(User.name)
    return query.order_by(length.desc() if descending else length.asc())


def _scope_published(query, value):
    published = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes")
    return query.filter(Post.published == published)


class User(TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "users"
    __table_args__ = {"comment": "User accounts that can access the system"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, comment="Full display name")
    email = Column(String, nullable=False, unique=True, comment="Unique email address for login")
    status = Column(String, nullable=False, default="active", comment="Account status. Values: active, suspended, inactive")
    password_hash = Column(String, nullable=True, comment="Salted password hash")
    welcomed_at = Column(String, nullable=True, comment="When the welcome email was sent")

    posts = relationship("Post", back_populates="author", passive_deletes="all")

    __validator__ = UserPayload
    __hidden__ = ("password_hash",)
    __filter_scopes__ = {"status_is": _scope_status, "search": _scope_search}
    __sort_scopes__ = {"name_length": _sort_name_length}

    @property
    def display_name(self) -> str:
        return f"{self.name} <{self.email}>"


class Post(TimestampMixin, Base):
    __tablename__ = "posts"
    __table_args__ = {"comment": "Articles written by users"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, comment="Author of the post")
    title = Column(String, nullable=False, comment="Headline shown in listings")
    body = Column(Text, nullable=True, comment="Article content")
    published = Column(Boolean, nullable=False, default=False, comment="Whether readers can see the post")

    author = relationship("User", back_populates="posts")
    comments = relationship("Comment", back_populates="post", passive_deletes="all")

    __validator__ = PostPayload
    __filter_scopes__ = {"published": _scope_published}
    __filterable__ = ("id", "user_id", "title", "published")

    @property
    def comment_count(self) -> int:
        return len(self.comments)


class Comment(TimestampMixin, Base):
    __tablename__ = "comments"
    __table_args__ = {"comment": "Reader comments on posts"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id"), nullable=False, comment="Post being commented on")
    body = Column(Text, nullable=False, comment="Comment text")

    post = relationship("Post", back_populates="comments")

    __validator__ = CommentPayload


class Tag(Base):
    """Lookup table without a validator: readable and deletable, not writable."""

    __tablename__ = "tags"
    __table_args__ = {"comment": "Free-form labels"}

    id = Column(Integer, primary_key=True, autoincrement=True)
    label = Column(String, nullable=False, unique=True, comment="Label text")
