import json
from pathlib import Path

import pytest

AppTest = pytest.importorskip("streamlit.testing.v1").AppTest
Image = pytest.importorskip("PIL.Image")

APP_PATH = str(Path(__file__).resolve().parent.parent / "app.py")


def write_image(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (40, 60), color="blue").save(path)


@pytest.fixture
def app(tmp_path: Path, monkeypatch) -> AppTest:
    root = tmp_path / "library"
    write_image(root / "Tom & <Jerry>" / "SFW" / "a<i>b.png")
    write_image(root / "Tom & <Jerry>" / "Trip" / "1.png")
    write_image(root / "Tom & <Jerry>" / "Trip" / "2.png")
    config_path = tmp_path / "artshelf_config.json"
    config_path.write_text(
        json.dumps(
            {
                "root_directory": str(root),
                "allowed_tags": ["SFW"],
                "allowed_extensions": [".png"],
                "data_dir": str(tmp_path / "app-data"),
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("ARTSHELF_CONFIG", str(config_path))
    at = AppTest.from_file(APP_PATH, default_timeout=60)
    at.run()
    assert not at.exception
    return at


def captions(at: AppTest) -> str:
    return "\n".join(c.value for c in at.caption)


def test_rescan_indexes_through_shared_coordinator(app: AppTest) -> None:
    assert "0 matching" in captions(app)
    app.button(key="rescan").click().run()
    assert not app.exception
    assert "2 matching" in captions(app)
    assert "Known tags: SFW, Story" in captions(app)


def test_reset_clears_catalog(app: AppTest) -> None:
    app.button(key="rescan").click().run()
    app.button(key="reset").click().run()
    app.button(key="confirm_reset_yes").click().run()
    assert not app.exception
    assert "0 matching" in captions(app)


def test_card_text_is_escaped(app: AppTest) -> None:
    app.button(key="rescan").click().run()
    cards = [m.value for m in app.markdown if "card-name" in m.value]
    assert cards
    joined = "\n".join(cards)
    assert "Tom &amp; &lt;Jerry&gt;" in joined
    assert "a&lt;i&gt;b.png" in joined
    assert "<Jerry>" not in joined
    assert "<i>" not in joined
