"""Pydantic models for the danang_lover package.

This module defines the records exchanged with the storage backend (places,
reviews, blog posts, profiles), the draft models that validate form input,
and the transient ``ImageAsset`` produced by the image preprocessor.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Location(BaseModel):
    """Address and coordinates of a place.

    Attributes:
        address: Human readable street address.
        lat: Latitude (-90.0 to 90.0).
        lng: Longitude (-180.0 to 180.0).
    """

    address: str = Field("", description="Street address.")
    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude of the place.")
    lng: float = Field(..., ge=-180.0, le=180.0, description="Longitude of the place.")


class Place(BaseModel):
    """A point of interest shown on the map and in place listings.

    Attributes:
        id: Opaque stable identifier.
        name: Display name, also used as the marker tooltip.
        description: Free text description.
        cover_image: Public URL of the cover image, empty when unset.
        rating: Average rating (0.0 to 5.0).
        price_range: Price tier, 1=$, 2=$$, 3=$$$.
        location: Address and coordinates.
        created_by: Id of the user who added the place, if known.
        created_at: Creation time (UTC).
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Place identifier.")
    name: str = Field(..., description="Name of the place.")
    description: str = Field("", description="Description of the place.")
    cover_image: str = Field("", description="Cover image URL.")
    rating: float = Field(0.0, ge=0.0, le=5.0, description="Average rating of the place (0-5).")
    price_range: int = Field(1, ge=1, le=3, description="Price tier (1-3).")
    location: Location
    created_by: str | None = Field(default=None, description="Owner user id.")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation time.")

    def to_dict(self) -> dict[str, Any]:
        """Convert the model to a JSON-compatible dictionary.

        Returns:
            dict[str, Any]: A dictionary representation of the place.
        """
        return self.model_dump(mode="json")


class Review(BaseModel):
    """A user's review of a place."""

    id: str = Field(default_factory=_new_id)
    place_id: str
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    created_at: datetime = Field(default_factory=_utcnow)


class BlogPost(BaseModel):
    """A blog post written by a user, optionally about one place."""

    id: str = Field(default_factory=_new_id)
    title: str
    content: str
    cover_image: str = ""
    place_id: str | None = None
    author_id: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @computed_field
    def excerpt(self) -> str:
        """Return the first 160 characters of the content, for listings.

        Returns:
            The shortened content.
        """
        if len(self.content) <= 160:
            return self.content
        return self.content[:157].rstrip() + "..."


class Profile(BaseModel):
    """Public profile of a user.

    Attributes:
        id: User identifier.
        email: Sign-in email address.
        full_name: Display name.
        username: Short handle, derived from the email when not given.
        avatar_url: Public URL of the avatar image.
        bio: Free text about the user.
    """

    id: str = Field(default_factory=_new_id)
    email: str
    full_name: str = ""
    username: str = ""
    avatar_url: str = ""
    bio: str = ""

    @property
    def display_name(self) -> str:
        """Return the best available name for display."""
        return self.full_name or self.username or self.email


class PlaceDraft(BaseModel):
    """Validated input of the add/edit place form."""

    name: str = Field(..., min_length=2, description="Name must be at least 2 characters")
    description: str = Field(
        ..., min_length=10, description="Description must be at least 10 characters"
    )
    cover_image: str = ""
    rating: float = Field(..., ge=1.0, le=5.0)
    price_range: int = Field(..., ge=1, le=3)
    address: str = Field(..., min_length=5, description="Address must be at least 5 characters")
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class ReviewDraft(BaseModel):
    """Validated input of the review form."""

    rating: int = Field(..., ge=1, le=5, description="Please select a rating")
    comment: str = Field(..., min_length=10, description="Comment must be at least 10 characters")


class BlogPostDraft(BaseModel):
    """Validated input of the blog post form."""

    title: str = Field(..., min_length=5, description="Title must be at least 5 characters")
    content: str = Field(..., min_length=20, description="Content must be at least 20 characters")
    cover_image: str = ""
    place_id: str | None = None


class ImageAsset(BaseModel):
    """An image moving through the upload pipeline.

    Created per upload attempt and discarded after handoff to storage.

    Attributes:
        filename: Original file name as selected by the user.
        content_type: Declared MIME type, also used for the re-encode.
        source: Raw bytes as selected by the user.
        natural_width: Decoded source width in pixels.
        natural_height: Decoded source height in pixels.
        target_width: Output width in pixels.
        target_height: Output height in pixels.
        encoded: Re-encoded bytes at ``content_type``.
    """

    filename: str
    content_type: str
    source: bytes = Field(repr=False)
    natural_width: int = Field(..., gt=0)
    natural_height: int = Field(..., gt=0)
    target_width: int = Field(..., gt=0)
    target_height: int = Field(..., gt=0)
    encoded: bytes = Field(repr=False)

    @property
    def source_size(self) -> int:
        """Return the byte length of the source file."""
        return len(self.source)

    @property
    def was_resized(self) -> bool:
        """Return True if the target dimensions differ from the source."""
        return (self.target_width, self.target_height) != (
            self.natural_width,
            self.natural_height,
        )
