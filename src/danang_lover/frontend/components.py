"""Frontend components for the DaNangLover application.

This module contains reusable UI components for the Streamlit interface,
including the place map, place cards, review lists, the image upload widget
and thumbnail fetching.
"""

import logging
from collections.abc import Sequence
from io import BytesIO
from typing import Any, cast

import folium
import requests
import streamlit as st
from PIL import Image, ImageOps
from streamlit_folium import st_folium

from danang_lover.backend.service import DaNangLoverService
from danang_lover.config import MapSettings
from danang_lover.errors import DecodeError, EncodeError, TransportError, ValidationError
from danang_lover.frontend.map_sync import FoliumMapView, MarkerSynchronizer
from danang_lover.models import Place, Profile, Review
from danang_lover.utils import parse_coordinates, price_label

logger = logging.getLogger(__name__)


def create_map(settings: MapSettings, center: tuple[float, float] | None = None) -> folium.Map:
    """Create a folium map with the configured tiles.

    Args:
        settings: Map defaults.
        center: Optional (lat, lng) overriding the configured center.

    Returns:
        The folium map.
    """
    lat, lng = center or (settings.center_lat, settings.center_lng)
    if settings.tiles_attribution:
        folium_map = folium.Map(location=[lat, lng], zoom_start=settings.zoom, tiles=None)
        folium.TileLayer(
            tiles=settings.tiles_url,
            attr=settings.tiles_attribution,
            name="Base map",
            overlay=False,
            control=True,
        ).add_to(folium_map)
        return folium_map
    return folium.Map(location=[lat, lng], zoom_start=settings.zoom, tiles=settings.tiles_url)


def display_place_map(
    places: Sequence[Place],
    synchronizer: MarkerSynchronizer,
    settings: MapSettings,
    key: str = "place_map",
) -> Place | None:
    """Render the place map and dispatch marker clicks.

    A fresh folium map is built on each run, attached to the synchronizer and
    populated with one marker per place. A click reported by the map
    component is dispatched to the synchronizer only once; Streamlit keeps
    returning the last click on every rerun. The component key carries a
    generation counter that ``select_on_map`` bumps, so a selection made
    outside the map also drops the remembered click.

    Args:
        places: Places to mark. Places must carry coordinates.
        synchronizer: Synchronizer kept in session state across reruns.
        settings: Map defaults.
        key: Streamlit widget key.

    Returns:
        The place selected by a new click during this run, if any.
    """
    view_state = st.session_state.setdefault(
        f"{key}_view", {"center": (settings.center_lat, settings.center_lng), "zoom": settings.zoom}
    )
    generation = st.session_state.setdefault(f"{key}_generation", 0)
    view = FoliumMapView(create_map(settings, view_state["center"]), zoom=view_state["zoom"])
    synchronizer.attach(view)
    synchronizer.sync(places)

    map_data = cast(
        dict[str, Any],
        st_folium(
            view.map,
            key=f"{key}_{generation}",
            center=view.center,
            zoom=view.get_zoom(),
            returned_objects=["last_object_clicked", "zoom"],
            height=settings.height,
        ),
    )
    if map_data and map_data.get("zoom"):
        view_state["zoom"] = map_data["zoom"]

    clicked = (map_data or {}).get("last_object_clicked")
    if not clicked or clicked == st.session_state.get(f"{key}_last_click"):
        return None
    st.session_state[f"{key}_last_click"] = clicked
    return synchronizer.click_at(clicked["lat"], clicked["lng"])


def center_map_on(place: Place, synchronizer: MarkerSynchronizer, key: str = "place_map") -> None:
    """Center the place map on ``place`` for this and later runs."""
    synchronizer.center_on(place)
    view = synchronizer.view
    if isinstance(view, FoliumMapView) and view.center is not None:
        st.session_state[f"{key}_view"] = {"center": view.center, "zoom": view.get_zoom()}


def select_on_map(place: Place, synchronizer: MarkerSynchronizer, key: str = "place_map") -> None:
    """Select and center ``place`` from outside the map, e.g. from a list.

    The map component is remounted under a new key, so the click it last
    reported is forgotten and clicking that marker again counts as a new click.
    """
    synchronizer.click(place.id)
    center_map_on(place, synchronizer, key)
    st.session_state[f"{key}_generation"] = st.session_state.get(f"{key}_generation", 0) + 1
    st.session_state.pop(f"{key}_last_click", None)


def fetch_and_resize_image(url: str, size: int = 300) -> Image.Image | None:
    """Fetch an image from a URL and fit it into a square thumbnail.

    Args:
        url: Image URL.
        size: Target size for width and height (square) in pixels.

    Returns:
        Resized PIL Image object, or None if fetch fails.
    """
    if not url:
        return None

    try:
        response = requests.get(url, timeout=5)
        if response.status_code == 200:
            with Image.open(BytesIO(response.content)) as img:
                # Center crop to square, avoiding distortion
                return ImageOps.fit(img, (size, size), method=Image.Resampling.LANCZOS)
        logger.warning(f"Thumbnail fetch for {url} returned {response.status_code}")
    except (requests.RequestException, OSError) as exception:
        logger.warning(f"Could not load thumbnail {url}: {exception}")

    return None


def render_place_card(place: Place, key_prefix: str = "card") -> bool:
    """Render a compact card for a place.

    Returns:
        True if the card's "View" button was clicked.
    """
    with st.container(border=True):
        thumbnail = fetch_and_resize_image(place.cover_image)
        if thumbnail is not None:
            st.image(thumbnail, use_container_width=True)
        st.markdown(f"#### {place.name}")
        st.markdown(
            f"⭐ **{place.rating:.1f}** · {price_label(place.price_range)} · "
            f"{place.location.address}"
        )
        if place.description:
            st.caption(place.description[:120])
        return st.button("View", key=f"{key_prefix}_{place.id}")


def render_place_grid(
    places: Sequence[Place], empty_message: str, key_prefix: str = "grid", columns: int = 3
) -> Place | None:
    """Render places as a grid of cards.

    Returns:
        The place whose card was clicked, if any.
    """
    if not places:
        st.info(empty_message)
        return None

    chosen = None
    cols = st.columns(columns)
    for index, place in enumerate(places):
        with cols[index % columns]:
            if render_place_card(place, key_prefix):
                chosen = place
    return chosen


def render_review_list(reviews: Sequence[Review], authors: dict[str, Profile]) -> None:
    """Render a place's reviews."""
    if not reviews:
        st.info("No reviews yet. Be the first to review this place!")
        return

    for review in reviews:
        author = authors.get(review.user_id)
        name = author.display_name if author else "Anonymous"
        st.markdown(f"**{name}** · {'★' * review.rating}{'☆' * (5 - review.rating)}")
        st.caption(review.created_at.strftime("%B %d, %Y"))
        st.write(review.comment)
        st.divider()


def render_price_selector(label: str, value: int = 1, key: str | None = None) -> int:
    """Render the $/$$/$$$ selector and return the chosen tier."""
    return cast(
        int,
        st.radio(
            label,
            options=[1, 2, 3],
            index=value - 1,
            format_func=price_label,
            horizontal=True,
            key=key,
        ),
    )


def render_coordinates_input(
    default: tuple[float, float], key: str = "coordinates"
) -> tuple[float, float] | None:
    """Render a "lat, lng" text input.

    Returns:
        The parsed coordinates, or None if the input is invalid.
    """
    text = st.text_input(
        "Coordinates (lat, lng)", value=f"{default[0]:.6f}, {default[1]:.6f}", key=key
    )
    try:
        return parse_coordinates(text)
    except ValueError:
        st.error("Invalid coordinates format. Please provide 'lat, lng'.")
        return None


def render_image_upload(
    service: DaNangLoverService,
    user: Profile | None,
    label: str,
    key: str,
    value: str = "",
) -> str:
    """Render the image upload widget.

    The selected file is validated, downscaled and uploaded once; the public
    URL is kept in session state under ``key`` so that later reruns reuse it.
    A newer upload replaces the stored URL.

    Args:
        service: Service performing the upload.
        user: Signed-in user; uploads are disabled without one.
        label: Widget label.
        key: Session state key for the URL.
        value: Initial URL, e.g. the current cover image when editing.

    Returns:
        The current image URL, or an empty string.
    """
    url_key = f"{key}_url"
    st.session_state.setdefault(url_key, value)
    max_mb = service.settings.images.max_upload_megabytes

    st.markdown(f"**{label}**")
    if st.session_state[url_key]:
        st.image(st.session_state[url_key], use_container_width=True)
        if st.button("Remove", key=f"{key}_remove"):
            st.session_state[url_key] = ""
            st.rerun()

    if user is None:
        st.caption("Sign in to upload images.")
        return cast(str, st.session_state[url_key])

    uploaded = st.file_uploader(f"Upload (max file size: {max_mb:g}MB)", key=f"{key}_file")
    if uploaded is not None:
        # file_id changes every time a file is picked, even the same file again.
        fingerprint = uploaded.file_id
        if st.session_state.get(f"{key}_uploaded") != fingerprint:
            with st.spinner("Uploading..."):
                try:
                    url = service.upload_image(
                        user, uploaded.name, uploaded.type or "", uploaded.getvalue()
                    )
                except ValidationError as error:
                    title = "Invalid file type" if error.check == "type" else "File too large"
                    st.error(f"{title}: {error}")
                except (DecodeError, EncodeError) as error:
                    st.error(
                        f"This image could not be processed. Please pick another file. ({error})"
                    )
                except TransportError as error:
                    st.error(f"Upload failed, please try again later. ({error})")
                else:
                    st.session_state[url_key] = url
                    st.success("Your image has been uploaded successfully")
            st.session_state[f"{key}_uploaded"] = fingerprint

    return cast(str, st.session_state[url_key])
