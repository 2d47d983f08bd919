from __future__ import annotations

from hunkwise.paths import file_name, normalize_path, path_matches


def test_normalize_path_trims_and_collapses_slashes() -> None:
    assert normalize_path("  //src//components///Button.tsx/ ") == "src/components/Button.tsx"
    assert normalize_path("app.py") == "app.py"
    assert normalize_path("") == ""
    assert normalize_path("/") == ""


def test_file_name() -> None:
    assert file_name("src/components/Button.tsx") == "Button.tsx"
    assert file_name("/Button.tsx") == "Button.tsx"
    assert file_name("") == ""


def test_path_matches_equal_and_suffix() -> None:
    assert path_matches("src/app.py", "/src/app.py")
    assert path_matches("src/components/Button.tsx", "components/Button.tsx")
    assert path_matches("Button.tsx", "src/components/Button.tsx")


def test_path_matches_requires_whole_segments() -> None:
    assert not path_matches("src/components/Button.tsx", "ton.tsx")
    assert not path_matches("src/app.py", "lib/app.py")
    assert not path_matches("", "app.py")
