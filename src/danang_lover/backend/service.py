"""Module for the DaNangLover service business logic.

This module provides the core service class `DaNangLoverService` which
orchestrates places, reviews, saved places, blog posts, profiles and image
uploads on top of the storage backend.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from danang_lover.backend.images import preprocess_image, validate_upload
from danang_lover.backend.storage import AzureStorage
from danang_lover.config import Settings
from danang_lover.errors import NotFoundError, PermissionDeniedError
from danang_lover.models import (
    BlogPost,
    BlogPostDraft,
    Location,
    Place,
    PlaceDraft,
    Profile,
    Review,
    ReviewDraft,
)
from danang_lover.utils import build_upload_path, price_label

# Create a module-level logger
logger = logging.getLogger(__name__)

# Collection names
PLACES = "places"
REVIEWS = "reviews"
BLOG_POSTS = "blog_posts"
PROFILES = "profiles"
SAVED_PREFIX = "saved"


class DaNangLoverService:
    """Core business logic for the DaNangLover application.

    Each call reads the current collection from storage, so every page render
    sees the latest data. Write operations require the acting user's profile
    and enforce ownership where records have an owner.

    Attributes:
        settings (Settings): Application configuration settings.
        storage (AzureStorage): Interface for Azure Blob Storage operations.
    """

    def __init__(self, settings: Settings, storage: AzureStorage | None = None) -> None:
        """Initialize the DaNangLoverService.

        Args:
            settings: Application configuration object.
            storage: Storage backend. Built from ``settings.storage`` when omitted.
        """
        self.settings = settings
        self.storage = storage or AzureStorage(settings.storage)

    # --- Places ---

    def list_places(self, query: str = "", price_range: int | None = None) -> list[Place]:
        """Return places, newest first, optionally filtered.

        Args:
            query: Case-insensitive text matched against name and address.
            price_range: Only return places in this price tier.

        Returns:
            The matching places.
        """
        places = [Place.model_validate(r) for r in self.storage.load_records(PLACES)]
        needle = query.strip().lower()
        if needle:
            places = [
                p
                for p in places
                if needle in p.name.lower() or needle in p.location.address.lower()
            ]
        if price_range is not None:
            places = [p for p in places if p.price_range == price_range]
        return sorted(places, key=lambda p: p.created_at, reverse=True)

    def get_place(self, place_id: str) -> Place:
        """Return a single place.

        Raises:
            NotFoundError: If no place has this id.
        """
        for record in self.storage.load_records(PLACES):
            if record.get("id") == place_id:
                return Place.model_validate(record)
        raise NotFoundError(f"Place '{place_id}' not found.")

    def add_place(self, user: Profile, draft: PlaceDraft) -> Place:
        """Create a place owned by ``user``.

        Args:
            user: The signed-in user.
            draft: Validated form input.

        Returns:
            The stored place.
        """
        place = Place(
            name=draft.name,
            description=draft.description,
            cover_image=draft.cover_image,
            rating=draft.rating,
            price_range=draft.price_range,
            location=Location(address=draft.address, lat=draft.lat, lng=draft.lng),
            created_by=user.id,
        )
        self.storage.update_records(PLACES, lambda records: records.append(place.to_dict()))
        logger.info(f"User {user.id} added place {place.id} ({place.name})")
        return place

    def update_place(self, user: Profile, place_id: str, draft: PlaceDraft) -> Place:
        """Update a place owned by ``user``.

        Raises:
            NotFoundError: If the place does not exist.
            PermissionDeniedError: If ``user`` did not create the place.
        """

        def apply(records: list[dict[str, Any]]) -> Place:
            for index, record in enumerate(records):
                if record.get("id") != place_id:
                    continue
                place = Place.model_validate(record)
                if place.created_by != user.id:
                    raise PermissionDeniedError("You can only edit places you added.")
                updated = place.model_copy(
                    update={
                        "name": draft.name,
                        "description": draft.description,
                        "cover_image": draft.cover_image,
                        "rating": draft.rating,
                        "price_range": draft.price_range,
                        "location": Location(address=draft.address, lat=draft.lat, lng=draft.lng),
                    }
                )
                records[index] = updated.to_dict()
                return updated
            raise NotFoundError(f"Place '{place_id}' not found.")

        updated = self.storage.update_records(PLACES, apply)
        logger.info(f"User {user.id} updated place {place_id}")
        return updated

    def places_frame(self, places: list[Place]) -> pd.DataFrame:
        """Flatten places into a DataFrame for tabular display.

        Args:
            places: Places to show.

        Returns:
            pd.DataFrame: One row per place.
        """
        columns = ["name", "rating", "price", "address", "lat", "lng", "created_at"]
        if not places:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(
            [
                {
                    "name": p.name,
                    "rating": p.rating,
                    "price": price_label(p.price_range),
                    "address": p.location.address,
                    "lat": p.location.lat,
                    "lng": p.location.lng,
                    "created_at": p.created_at,
                }
                for p in places
            ],
            columns=columns,
        )

    # --- Reviews ---

    def list_reviews(self, place_id: str) -> list[Review]:
        """Return the reviews of a place, newest first."""
        reviews = [
            Review.model_validate(r)
            for r in self.storage.load_records(REVIEWS)
            if r.get("place_id") == place_id
        ]
        return sorted(reviews, key=lambda r: r.created_at, reverse=True)

    def add_review(self, user: Profile, place_id: str, draft: ReviewDraft) -> Review:
        """Post a review of an existing place.

        Raises:
            NotFoundError: If the place does not exist.
        """
        self.get_place(place_id)
        review = Review(
            place_id=place_id, user_id=user.id, rating=draft.rating, comment=draft.comment
        )
        self.storage.update_records(
            REVIEWS, lambda records: records.append(review.model_dump(mode="json"))
        )
        logger.info(f"User {user.id} reviewed place {place_id}")
        return review

    # --- Saved places ---

    def _saved_collection(self, user: Profile) -> str:
        return f"{SAVED_PREFIX}/{user.id}"

    def saved_place_ids(self, user: Profile) -> list[str]:
        """Return the ids of the places ``user`` saved, oldest first."""
        return [r["place_id"] for r in self.storage.load_records(self._saved_collection(user))]

    def toggle_saved(self, user: Profile, place_id: str) -> bool:
        """Save or unsave a place.

        Returns:
            True if the place is saved after the call.
        """

        def toggle(records: list[dict[str, Any]]) -> bool:
            remaining = [r for r in records if r.get("place_id") != place_id]
            saved = len(remaining) == len(records)
            if saved:
                remaining.append(
                    {"place_id": place_id, "saved_at": datetime.now(timezone.utc).isoformat()}
                )
            records[:] = remaining
            return saved

        return self.storage.update_records(self._saved_collection(user), toggle)

    def list_saved_places(self, user: Profile) -> list[Place]:
        """Return the places ``user`` saved that still exist."""
        by_id = {p.id: p for p in self.list_places()}
        return [by_id[pid] for pid in self.saved_place_ids(user) if pid in by_id]

    # --- Blog posts ---

    def list_posts(self, author_id: str | None = None) -> list[BlogPost]:
        """Return blog posts, newest first, optionally for one author."""
        posts = [BlogPost.model_validate(r) for r in self.storage.load_records(BLOG_POSTS)]
        if author_id is not None:
            posts = [p for p in posts if p.author_id == author_id]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    def get_post(self, post_id: str) -> BlogPost:
        """Return a single blog post.

        Raises:
            NotFoundError: If no post has this id.
        """
        for record in self.storage.load_records(BLOG_POSTS):
            if record.get("id") == post_id:
                return BlogPost.model_validate(record)
        raise NotFoundError(f"Blog post '{post_id}' not found.")

    def get_post_place(self, post: BlogPost) -> Place | None:
        """Return the place a post is about, or None if it has none or it is gone."""
        if post.place_id is None:
            return None
        try:
            return self.get_place(post.place_id)
        except NotFoundError:
            logger.warning(f"Post {post.id} links to missing place {post.place_id}")
            return None

    def create_post(self, user: Profile, draft: BlogPostDraft) -> BlogPost:
        """Publish a blog post authored by ``user``.

        Raises:
            NotFoundError: If the draft links to a place that does not exist.
        """
        if draft.place_id is not None:
            self.get_place(draft.place_id)
        post = BlogPost(
            title=draft.title,
            content=draft.content,
            cover_image=draft.cover_image,
            place_id=draft.place_id,
            author_id=user.id,
        )
        self.storage.update_records(
            BLOG_POSTS,
            lambda records: records.append(post.model_dump(mode="json", exclude={"excerpt"})),
        )
        logger.info(f"User {user.id} published post {post.id}")
        return post

    def update_post(self, user: Profile, post_id: str, draft: BlogPostDraft) -> BlogPost:
        """Edit a blog post authored by ``user``.

        Raises:
            NotFoundError: If the post, or the place it now links to, does not exist.
            PermissionDeniedError: If ``user`` is not the author.
        """
        if draft.place_id is not None:
            self.get_place(draft.place_id)

        def apply(records: list[dict[str, Any]]) -> BlogPost:
            for index, record in enumerate(records):
                if record.get("id") != post_id:
                    continue
                post = BlogPost.model_validate(record)
                if post.author_id != user.id:
                    raise PermissionDeniedError("You can only edit your own posts.")
                updated = post.model_copy(
                    update={
                        "title": draft.title,
                        "content": draft.content,
                        "cover_image": draft.cover_image,
                        "place_id": draft.place_id,
                        "updated_at": datetime.now(timezone.utc),
                    }
                )
                records[index] = updated.model_dump(mode="json", exclude={"excerpt"})
                return updated
            raise NotFoundError(f"Blog post '{post_id}' not found.")

        return self.storage.update_records(BLOG_POSTS, apply)

    def delete_post(self, user: Profile, post_id: str) -> None:
        """Delete a blog post authored by ``user``.

        Raises:
            NotFoundError: If the post does not exist.
            PermissionDeniedError: If ``user`` is not the author.
        """

        def remove(records: list[dict[str, Any]]) -> None:
            for index, record in enumerate(records):
                if record.get("id") != post_id:
                    continue
                if record.get("author_id") != user.id:
                    raise PermissionDeniedError("You can only delete your own posts.")
                del records[index]
                return
            raise NotFoundError(f"Blog post '{post_id}' not found.")

        self.storage.update_records(BLOG_POSTS, remove)
        logger.info(f"User {user.id} deleted post {post_id}")

    # --- Profiles ---

    def get_profiles(self, user_ids: set[str]) -> dict[str, Profile]:
        """Return the profiles of the given users, keyed by id."""
        return {
            r["id"]: Profile.model_validate(r)
            for r in self.storage.load_records(PROFILES)
            if r.get("id") in user_ids
        }

    def update_profile(
        self,
        user: Profile,
        full_name: str | None = None,
        bio: str | None = None,
        avatar_url: str | None = None,
    ) -> Profile:
        """Update the signed-in user's own profile.

        Fields left as None keep their current value.

        Returns:
            The stored profile.
        """
        changes = {
            key: value
            for key, value in {"full_name": full_name, "bio": bio, "avatar_url": avatar_url}.items()
            if value is not None
        }

        def apply(records: list[dict[str, Any]]) -> Profile:
            for index, record in enumerate(records):
                if record.get("id") == user.id:
                    profile = Profile.model_validate(record).model_copy(update=changes)
                    records[index] = profile.model_dump(mode="json")
                    return profile
            profile = user.model_copy(update=changes)
            records.append(profile.model_dump(mode="json"))
            return profile

        profile = self.storage.update_records(PROFILES, apply)
        logger.info(f"User {user.id} updated profile fields {sorted(changes)}")
        return profile

    # --- Images ---

    def upload_image(self, user: Profile, filename: str, content_type: str, data: bytes) -> str:
        """Validate, preprocess and upload an image for ``user``.

        Args:
            user: The signed-in user; uploads go into their folder.
            filename: Original file name.
            content_type: Declared MIME type.
            data: Raw file bytes.

        Returns:
            The public URL of the uploaded image.

        Raises:
            ValidationError: If the file is not an image or is too large.
            DecodeError: If the image cannot be read.
            EncodeError: If the resized image cannot be encoded.
            TransportError: If storage rejects the upload.
        """
        image_settings = self.settings.images
        validate_upload(filename, content_type, len(data), image_settings.max_upload_bytes)
        asset = preprocess_image(
            data,
            content_type,
            max_dimension=image_settings.max_dimension,
            quality=image_settings.quality,
            filename=filename,
        )
        path = build_upload_path(user.id, asset.filename)
        return self.storage.upload_file(path, asset.encoded, asset.content_type)
