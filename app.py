import html
import os
import streamlit as st

from artshelf.config import CONFIG_FILENAME, LibraryConfig, read_config_file, write_config_file
from artshelf.db import Database
from artshelf.errors import ArtShelfError, ScanInProgressError
from artshelf.scanner import ProgressChannel, ScanCoordinator
from artshelf.search import search
from artshelf.thumbnails import is_video_file, make_thumbnail

st.set_page_config(page_title="ArtShelf", layout="wide")

st.markdown(
	"""
	<style>
	.block-container { padding-top: 0.75rem; }
	.tag-chip { display:inline-block; padding:2px 8px; border-radius:12px; background-color: rgba(128,128,128,0.2); margin-right:6px; font-size:12px; line-height:16px; }
	.story-chip { background-color: rgba(37,99,235,0.35); }
	.card-name { font-size:12px; overflow:hidden; text-overflow:ellipsis; white-space:nowrap; }
	.card-artist { font-size:11px; opacity:0.7; }
	.tag-row { display:flex; align-items:center; gap:6px; overflow:hidden; }
	</style>
	""",
	unsafe_allow_html=True,
)

st.title("ArtShelf")

CONFIG_PATH = os.environ.get("ARTSHELF_CONFIG") or os.path.join(".", CONFIG_FILENAME)
COLS_PER_ROW = 6


def _load_config() -> dict:
	try:
		return read_config_file(CONFIG_PATH)
	except ArtShelfError:
		return {}


def _save_config(data: dict) -> None:
	try:
		write_config_file(CONFIG_PATH, data)
	except OSError as exc:
		st.warning(f"Could not save settings: {exc}")


def load_library_config() -> LibraryConfig:
	data = _load_config()
	root = data.get("last_root_dir") or data.get("root_directory") or "."
	return LibraryConfig.from_dict({**data, "root_directory": root})


def save_last_root_dir(path: str) -> None:
	data = _load_config()
	data["last_root_dir"] = os.path.abspath(path)
	_save_config(data)


@st.cache_resource(show_spinner=False)
def get_coordinator(data_dir: str, allowed_tags: tuple, allowed_extensions: tuple, page_size: int) -> ScanCoordinator:
	# One coordinator per catalog for the whole server process, shared by every session.
	config = LibraryConfig(
		root_directory=".",
		allowed_tags=frozenset(allowed_tags),
		allowed_extensions=frozenset(allowed_extensions),
		page_size=page_size,
		data_dir=data_dir,
	)
	return ScanCoordinator(Database(base_dir=data_dir), config)


def follow_scan(coordinator: ScanCoordinator, channel: ProgressChannel) -> None:
	bar = st.progress(0.0, text="Starting scan...")
	for progress in channel.events():
		fraction = progress.current / progress.total if progress.total else 0.0
		bar.progress(min(1.0, fraction), text=f"Scanning {progress.current}/{progress.total}: {progress.current_item}")
	try:
		result = coordinator.wait()
	except ArtShelfError as exc:
		st.error(f"Scan failed: {exc}")
		return
	if result is not None:
		bar.progress(1.0, text=f"Done: {result.indexed} assets ({result.stories} stories) from {result.artists} artists")


@st.cache_data(show_spinner=False)
def cached_thumbnail(path: str, mtime: float) -> bytes | None:
	return make_thumbnail(path)


def render_media(path: str) -> None:
	if not path or not os.path.exists(path):
		st.caption("(missing file)")
	elif is_video_file(path):
		st.video(path)
	else:
		st.image(path, use_container_width=True)


try:
	library_config = load_library_config()
except ArtShelfError as exc:
	st.error(f"Invalid config {CONFIG_PATH}: {exc}")
	st.stop()

coordinator = get_coordinator(
	library_config.data_dir,
	tuple(sorted(library_config.allowed_tags)),
	tuple(sorted(library_config.allowed_extensions)),
	library_config.page_size,
)
db: Database = coordinator.db

with st.sidebar:
	st.header("Library")
	if "scan_root_dir" not in st.session_state:
		st.session_state["scan_root_dir"] = library_config.root_directory
	st.text_input("Library root", key="scan_root_dir")
	st.caption(f"{len(library_config.allowed_tags)} allowed tags, {len(library_config.allowed_extensions)} extensions")
	left, right = st.columns([1, 1])
	with left:
		if st.button("Rescan Library", type="primary", key="rescan"):
			st.session_state["trigger_scan"] = True
	with right:
		if st.button("Reset", key="reset"):
			st.session_state["confirm_reset"] = True
	if st.session_state.get("confirm_reset"):
		st.warning(f"Delete all {db.count_assets()} indexed assets?")
		c1, c2 = st.columns([1, 1])
		with c1:
			if st.button("Yes, clear", key="confirm_reset_yes"):
				st.session_state["confirm_reset"] = False
				try:
					coordinator.reset()
					st.toast("Database cleared")
				except ScanInProgressError:
					st.warning("A scan is running; reset once it finishes.")
		with c2:
			if st.button("Cancel", key="confirm_reset_no"):
				st.session_state["confirm_reset"] = False
	st.divider()
	st.header("Search")
	tag_query = st.text_input("Tags", placeholder="e.g. SFW, CG|3D, -Sketch")
	known_tags = db.all_tags()
	if known_tags:
		st.caption("Known tags: " + ", ".join(known_tags))
	text_query = st.text_input("Artist or name contains")
	page_size = st.slider("Results per page", min_value=6, max_value=96, value=min(96, max(6, library_config.page_size)), step=6)

if st.session_state.get("trigger_scan"):
	st.session_state["trigger_scan"] = False
	root_dir = st.session_state["scan_root_dir"]
	save_last_root_dir(root_dir)
	try:
		follow_scan(coordinator, coordinator.start(root_dir))
	except ScanInProgressError:
		st.warning("A scan is already running; showing its progress.")
		if coordinator.channel is not None:
			follow_scan(coordinator, coordinator.channel)
elif coordinator.running and coordinator.channel is not None:
	st.info("A scan started from another session is running.")
	follow_scan(coordinator, coordinator.channel)

page_key = (tag_query, text_query, page_size)
if st.session_state.get("page_key") != page_key:
	st.session_state["page_key"] = page_key
	st.session_state["page"] = 1

try:
	result = search(db, tag_query, text_query, page=st.session_state.get("page", 1), page_size=page_size)
except ArtShelfError as exc:
	st.error(f"Search failed: {exc}")
	st.stop()

nav_l, nav_c, nav_r = st.columns([1, 3, 1])
with nav_l:
	if st.button("Previous", disabled=result.page <= 1):
		st.session_state["page"] = result.page - 1
		st.rerun()
with nav_c:
	st.caption(f"{result.total} matching, page {result.page} of {max(result.total_pages, 1)}")
with nav_r:
	if st.button("Next", disabled=result.page >= result.total_pages):
		st.session_state["page"] = result.page + 1
		st.rerun()

for start in range(0, len(result.items), COLS_PER_ROW):
	row_items = result.items[start:start + COLS_PER_ROW]
	row_cols = st.columns(COLS_PER_ROW)
	for j, item in enumerate(row_items):
		with row_cols[j]:
			cover = item.cover_path
			thumb = None
			if os.path.exists(cover):
				thumb = cached_thumbnail(cover, os.path.getmtime(cover))
			if thumb:
				st.image(thumb, use_container_width=True)
			elif is_video_file(cover):
				st.caption("video")
			else:
				render_media(cover)

			# Folder and file names come from disk and must not be interpreted as markup.
			st.markdown(
				f"<div class='card-name'>{html.escape(item.name)}</div><div class='card-artist'>{html.escape(item.artist)}</div>",
				unsafe_allow_html=True,
			)
			chips = "".join(
				f"<span class='tag-chip{' story-chip' if t == 'Story' else ''}'>{html.escape(t)}</span>" for t in item.tags
			) or "<span class='tag-chip'>(none)</span>"
			st.markdown(f"<div class='tag-row'>{chips}</div>", unsafe_allow_html=True)

			label = f"Read ({len(item.pages)})" if item.is_story else "View"
			with st.popover(label):
				if item.is_story:
					page_no = 1
					if len(item.pages) > 1:
						page_no = st.slider("Page", 1, len(item.pages), 1, key=f"story_page_{item.id}")
					render_media(item.pages[page_no - 1])
				else:
					render_media(item.path)
