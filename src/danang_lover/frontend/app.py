"""Main application module for DaNangLover."""

import sys

import pydantic
import streamlit as st

from danang_lover.auth import AuthContext, AuthEvent, StorageAuthClient
from danang_lover.backend.service import DaNangLoverService
from danang_lover.config import Settings, get_settings
from danang_lover.errors import DaNangLoverError, NotFoundError
from danang_lover.frontend.components import (
    display_place_map,
    render_coordinates_input,
    render_image_upload,
    render_place_grid,
    render_price_selector,
    render_review_list,
    select_on_map,
)
from danang_lover.frontend.map_sync import MarkerSynchronizer
from danang_lover.logger import configure_logging
from danang_lover.models import BlogPostDraft, Place, PlaceDraft, ReviewDraft
from danang_lover.utils import price_label

PAGES = ["Home", "Map", "Add Place", "Saved Places", "Blog", "Profile"]

# --- Configuration Loading ---


def load_config() -> Settings:
    """Loads the application configuration.

    Returns:
        Settings: The application settings object.

    Raises:
        RuntimeError: If the configuration cannot be loaded.
    """
    try:
        return get_settings()
    except Exception as e:
        raise RuntimeError(f"Failed to load configuration: {e}") from e


@st.cache_resource
def get_service(_settings: Settings) -> DaNangLoverService:
    """Creates and caches the DaNangLoverService instance.

    Args:
        _settings: The application settings object. The underscore keeps
            Streamlit from hashing it.

    Returns:
        DaNangLoverService: The initialized service.
    """
    return DaNangLoverService(_settings)


def _init_session_state(service: DaNangLoverService) -> AuthContext:
    """Initialize session state variables with default values.

    Creates the per-session auth context and marker synchronizer on first run.

    Returns:
        AuthContext: The auth context of this browser session.
    """
    st.session_state.setdefault("page", "Home")
    st.session_state.setdefault("place_id", None)
    st.session_state.setdefault("edit_place_id", None)
    st.session_state.setdefault("post_id", None)
    st.session_state.setdefault("edit_post_id", None)
    st.session_state.setdefault("synchronizer", MarkerSynchronizer())

    if "auth" not in st.session_state:
        auth = AuthContext(StorageAuthClient(service.storage))
        auth.start()
        st.session_state["auth"] = auth
    return st.session_state["auth"]


def _show_validation_errors(error: pydantic.ValidationError) -> None:
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"])
        st.error(f"{field}: {detail['msg']}")


def _navigate(page: str) -> None:
    # The sidebar radio owns "page"; switch through a pending value on rerun.
    st.session_state["next_page"] = page
    st.rerun()


def _clear_selection() -> None:
    for key in ("place_id", "edit_place_id", "post_id", "edit_post_id"):
        st.session_state[key] = None


def _open_place(place: Place) -> None:
    st.session_state["place_id"] = place.id
    st.session_state["edit_place_id"] = None
    st.rerun()


def _announce_auth_events(auth: AuthContext) -> None:
    event = auth.pop_event()
    if event is AuthEvent.SIGNED_IN and auth.user is not None:
        st.toast(f"Welcome {auth.user.email}!")
    elif event is AuthEvent.SIGNED_OUT:
        st.toast("You have been signed out.")


# --- Pages ---


def page_home(service: DaNangLoverService) -> None:
    """Lists places with search and price filters."""
    st.header("Discover Da Nang")
    col1, col2 = st.columns([3, 1])
    with col1:
        query = st.text_input("Search places", placeholder="Name or address")
    with col2:
        tier = st.selectbox(
            "Price", [None, 1, 2, 3], format_func=lambda v: price_label(v) if v else "Any"
        )

    places = service.list_places(query=query, price_range=tier)
    chosen = render_place_grid(places, "No places found.", key_prefix="home")
    if chosen is not None:
        _open_place(chosen)


def page_map(service: DaNangLoverService, settings: Settings) -> None:
    """Shows all places on the map next to a clickable list."""
    st.header("Map")
    synchronizer: MarkerSynchronizer = st.session_state["synchronizer"]
    places = service.list_places()

    col1, col2 = st.columns([3, 1])
    with col1:
        selected = display_place_map(places, synchronizer, settings.map)
        if selected is not None:
            st.rerun()
    with col2:
        st.markdown("**Places on map:**")
        for place in places:
            marker = "▶ " if synchronizer.selected_id == place.id else ""
            if st.button(f"{marker}{place.name}", key=f"map_list_{place.id}"):
                select_on_map(place, synchronizer)
                st.rerun()
            st.caption(place.location.address)

    current = synchronizer.selected_place
    if current is not None:
        st.divider()
        st.subheader(current.name)
        st.write(current.description)
        if st.button("Open details"):
            _open_place(current)

    with st.expander("Raw Data"):
        st.dataframe(service.places_frame(places))


def page_place_form(service: DaNangLoverService, auth: AuthContext, settings: Settings) -> None:
    """Adds a new place or edits an existing one."""
    user = auth.user
    if user is None:
        st.warning("You must be logged in to manage places.")
        return

    place: Place | None = None
    if st.session_state["edit_place_id"]:
        try:
            place = service.get_place(st.session_state["edit_place_id"])
        except NotFoundError as error:
            st.error(str(error))
            return

    st.header("Edit Place" if place else "Add Place")
    form_key = f"place_{place.id if place else 'new'}"
    cover_image = render_image_upload(
        service,
        user,
        "Cover image",
        key=f"{form_key}_cover",
        value=place.cover_image if place else "",
    )
    default_coords = (
        (place.location.lat, place.location.lng)
        if place
        else (settings.map.center_lat, settings.map.center_lng)
    )

    with st.form(form_key):
        name = st.text_input("Name", value=place.name if place else "")
        description = st.text_area("Description", value=place.description if place else "")
        address = st.text_input("Address", value=place.location.address if place else "")
        coordinates = render_coordinates_input(default_coords, key=f"{form_key}_coords")
        default_rating = place.rating if place and place.rating >= 1 else 4.0
        rating = st.slider("Rating", 1.0, 5.0, value=default_rating, step=0.5)
        price = render_price_selector(
            "Price range", place.price_range if place else 1, key=f"{form_key}_price"
        )
        submitted = st.form_submit_button("Update Place" if place else "Add Place")

    if not submitted or coordinates is None:
        return

    try:
        draft = PlaceDraft(
            name=name,
            description=description,
            cover_image=cover_image,
            rating=rating,
            price_range=price,
            address=address,
            lat=coordinates[0],
            lng=coordinates[1],
        )
    except pydantic.ValidationError as error:
        _show_validation_errors(error)
        return

    try:
        if place:
            saved = service.update_place(user, place.id, draft)
        else:
            saved = service.add_place(user, draft)
    except DaNangLoverError as error:
        st.error(f"Error managing place: {error}")
        return

    st.session_state["place_id"] = saved.id
    st.session_state["edit_place_id"] = None
    _navigate("Home")


def page_place_detail(service: DaNangLoverService, auth: AuthContext, settings: Settings) -> None:
    """Shows one place with its reviews."""
    try:
        place = service.get_place(st.session_state["place_id"])
    except NotFoundError:
        st.error("Place not found")
        if st.button("Back"):
            st.session_state["place_id"] = None
            st.rerun()
        return

    if st.button("← Back"):
        st.session_state["place_id"] = None
        st.rerun()

    if place.cover_image:
        st.image(place.cover_image, use_container_width=True)

    reviews = service.list_reviews(place.id)
    st.title(place.name)
    st.markdown(
        f"⭐ **{place.rating:.1f}** · {len(reviews)} reviews · {price_label(place.price_range)}"
    )
    st.caption(f"📍 {place.location.address}")

    user = auth.user
    if user is not None:
        col1, col2 = st.columns(2)
        saved = place.id in service.saved_place_ids(user)
        if col1.button("♥ Saved" if saved else "♡ Save"):
            service.toggle_saved(user, place.id)
            st.rerun()
        if place.created_by == user.id and col2.button("Edit place"):
            st.session_state["edit_place_id"] = place.id
            st.session_state["place_id"] = None
            _navigate("Add Place")

    about, review_tab, location = st.tabs(["About", "Reviews", "Location"])
    with about:
        st.write(place.description)
    with review_tab:
        authors = service.get_profiles({review.user_id for review in reviews})
        render_review_list(reviews, authors)
        if user is None:
            st.info("Sign in to write a review.")
        else:
            with st.form(f"review_{place.id}", clear_on_submit=True):
                rating = st.slider("Rating", 1, 5, value=5)
                comment = st.text_area("Your review")
                if st.form_submit_button("Post review"):
                    try:
                        draft = ReviewDraft(rating=rating, comment=comment)
                        service.add_review(user, place.id, draft)
                    except pydantic.ValidationError as error:
                        _show_validation_errors(error)
                    else:
                        st.success("Your review has been posted successfully.")
                        st.rerun()
    with location:
        display_place_map([place], MarkerSynchronizer(), settings.map, key=f"detail_map_{place.id}")


def page_saved(service: DaNangLoverService, auth: AuthContext) -> None:
    """Lists the signed-in user's saved places."""
    st.header("Saved Places")
    st.caption("Places you've saved for later")
    if auth.user is None:
        st.warning("Sign in to see your saved places.")
        return
    chosen = render_place_grid(
        service.list_saved_places(auth.user),
        "You haven't saved any places yet.",
        key_prefix="saved",
    )
    if chosen is not None:
        _open_place(chosen)


def page_blog(service: DaNangLoverService, auth: AuthContext) -> None:
    """Lists blog posts, shows one post, or edits one."""
    user = auth.user

    if st.session_state["edit_post_id"] is not None:
        _blog_form(service, auth)
        return

    if st.session_state["post_id"]:
        try:
            post = service.get_post(st.session_state["post_id"])
        except NotFoundError:
            st.error("Blog post not found")
            st.session_state["post_id"] = None
            return
        if st.button("← All posts"):
            st.session_state["post_id"] = None
            st.rerun()
        if post.cover_image:
            st.image(post.cover_image, use_container_width=True)
        st.title(post.title)
        author = service.get_profiles({post.author_id}).get(post.author_id)
        st.caption(
            f"By {author.display_name if author else 'Unknown'} · "
            f"{post.created_at.strftime('%B %d, %Y')}"
        )
        st.markdown(post.content)
        linked = service.get_post_place(post)
        if linked is not None:
            st.info(f"📍 About {linked.name}: {linked.location.address}")
            if st.button("View place"):
                st.session_state["post_id"] = None
                st.session_state["place_id"] = linked.id
                _navigate("Home")
        if user is not None and user.id == post.author_id:
            col1, col2 = st.columns(2)
            if col1.button("Edit"):
                st.session_state["edit_post_id"] = post.id
                st.rerun()
            if col2.button("Delete"):
                try:
                    service.delete_post(user, post.id)
                except DaNangLoverError as error:
                    st.error(f"Error deleting post: {error}")
                else:
                    st.session_state["post_id"] = None
                    st.rerun()
        return

    st.header("Blog")
    if user is not None and st.button("Write a post"):
        st.session_state["edit_post_id"] = ""
        st.rerun()
    posts = service.list_posts()
    if not posts:
        st.info("No blog posts yet.")
    for post in posts:
        with st.container(border=True):
            st.markdown(f"### {post.title}")
            st.caption(post.created_at.strftime("%B %d, %Y"))
            st.write(post.excerpt)
            if st.button("Read more", key=f"post_{post.id}"):
                st.session_state["post_id"] = post.id
                st.rerun()


def _blog_form(service: DaNangLoverService, auth: AuthContext) -> None:
    user = auth.user
    if user is None:
        st.warning("You must be logged in to write posts.")
        return

    post_id = st.session_state["edit_post_id"]
    post = service.get_post(post_id) if post_id else None
    places = service.list_places()
    names = {p.id: p.name for p in places}
    st.header("Edit Post" if post else "New Post")
    form_key = f"post_{post.id if post else 'new'}"
    cover_image = render_image_upload(
        service,
        user,
        "Cover image",
        key=f"{form_key}_cover",
        value=post.cover_image if post else "",
    )
    with st.form(form_key):
        title = st.text_input("Title", value=post.title if post else "")
        content = st.text_area("Content", value=post.content if post else "", height=300)
        place_ids: list[str | None] = [None] + [p.id for p in places]
        place_id = st.selectbox(
            "About a place (optional)",
            place_ids,
            index=place_ids.index(post.place_id) if post and post.place_id in place_ids else 0,
            format_func=lambda pid: names.get(pid, "None") if pid else "None",
        )
        submitted = st.form_submit_button("Save" if post else "Publish")
    if st.button("Cancel"):
        st.session_state["edit_post_id"] = None
        st.rerun()
    if not submitted:
        return

    try:
        draft = BlogPostDraft(
            title=title, content=content, cover_image=cover_image, place_id=place_id
        )
    except pydantic.ValidationError as error:
        _show_validation_errors(error)
        return
    try:
        if post:
            saved = service.update_post(user, post.id, draft)
        else:
            saved = service.create_post(user, draft)
    except DaNangLoverError as error:
        st.error(f"Error saving post: {error}")
        return
    st.session_state["edit_post_id"] = None
    st.session_state["post_id"] = saved.id
    st.rerun()


def page_profile(service: DaNangLoverService, auth: AuthContext) -> None:
    """Shows the sign-in form or the signed-in user's profile."""
    user = auth.user
    if user is None:
        _login_form(auth)
        return

    st.header(user.display_name)
    st.caption(f"@{user.username} · {user.email}")
    if user.avatar_url:
        st.image(user.avatar_url, width=120)

    with st.expander("Edit profile"):
        avatar_url = render_image_upload(
            service, user, "Avatar", key="avatar", value=user.avatar_url
        )
        with st.form("profile"):
            full_name = st.text_input("Full name", value=user.full_name)
            bio = st.text_area("Bio", value=user.bio)
            if st.form_submit_button("Save profile"):
                try:
                    profile = service.update_profile(
                        user, full_name=full_name, bio=bio, avatar_url=avatar_url
                    )
                except DaNangLoverError as error:
                    st.error(f"Error updating profile: {error}")
                else:
                    auth.refresh_user(profile)
                    st.rerun()

    st.subheader("My places")
    mine = [p for p in service.list_places() if p.created_by == user.id]
    chosen = render_place_grid(mine, "You haven't added any places yet.", key_prefix="mine")
    if chosen is not None:
        _open_place(chosen)

    if st.button("Sign out"):
        auth.sign_out()
        st.rerun()


def _login_form(auth: AuthContext) -> None:
    st.header("Welcome to DaNangLover")
    sign_in, sign_up = st.tabs(["Sign in", "Create account"])
    with sign_in:
        with st.form("sign_in"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in"):
                try:
                    auth.sign_in(email, password)
                except DaNangLoverError as error:
                    st.error(str(error))
                else:
                    st.rerun()
    with sign_up:
        with st.form("sign_up"):
            full_name = st.text_input("Full name")
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Create account"):
                try:
                    auth.sign_up(email, password, full_name)
                except DaNangLoverError as error:
                    st.error(str(error))
                else:
                    st.rerun()


# --- Main App Logic ---


def main() -> None:
    """Entry point for the application.

    Checks if running within Streamlit and relaunches if necessary.
    """
    if st.runtime.exists():
        _main_app_logic()
    else:
        from streamlit.web import cli as stcli

        sys.argv = ["streamlit", "run", __file__] + sys.argv[1:]
        sys.exit(stcli.main())


def _main_app_logic() -> None:
    """Core logic for the Streamlit application."""
    st.set_page_config(layout="wide", page_title="DaNangLover")
    configure_logging()

    # --- Initialization ---
    try:
        settings = load_config()
    except RuntimeError as e:
        st.error(str(e))
        st.stop()

    service = get_service(settings)
    auth = _init_session_state(service)
    _announce_auth_events(auth)

    # --- Navigation ---
    next_page = st.session_state.pop("next_page", None)
    if next_page is not None:
        st.session_state["page"] = next_page

    with st.sidebar:
        st.title("DaNangLover")
        page = st.radio("Go to", PAGES, key="page", on_change=_clear_selection)
        if auth.user is not None:
            st.caption(f"Signed in as {auth.user.email}")
        else:
            st.caption("Not signed in")

    try:
        if st.session_state["place_id"] and page not in ("Add Place", "Blog"):
            page_place_detail(service, auth, settings)
        elif page == "Home":
            page_home(service)
        elif page == "Map":
            page_map(service, settings)
        elif page == "Add Place":
            page_place_form(service, auth, settings)
        elif page == "Saved Places":
            page_saved(service, auth)
        elif page == "Blog":
            page_blog(service, auth)
        elif page == "Profile":
            page_profile(service, auth)
    except DaNangLoverError as error:
        st.error(f"Something went wrong: {error}")


if __name__ == "__main__":
    main()
