import pytest

from bib_lookup.database import BibDatabase
from bib_lookup.file_lookup import DatabaseFileLookup
from bib_lookup.utils import contents_equal


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.fixture
def library(tmp_path):
    """A .bib file with one relative, one absolute and one missing link."""
    pdf_dir = tmp_path / "pdfs"
    relative_pdf = _write(pdf_dir / "smith2020.pdf", b"%PDF smith")
    absolute_pdf = _write(tmp_path / "elsewhere" / "doe1999.pdf", b"%PDF doe")

    bib = f"""
@article{{smith2020,
  title = {{A Study}},
  file = {{:smith2020.pdf:PDF}}
}}

@book{{doe1999,
  title = {{A Book}},
  file = {{Scan:{absolute_pdf}:PDF;Notes:missing/notes.txt:Text}}
}}

@misc{{nofile,
  title = {{No attachment}}
}}
"""
    bib_path = tmp_path / "library.bib"
    bib_path.write_text(bib, encoding="utf-8")
    db = BibDatabase.from_file(bib_path)
    return {
        "db": db,
        "pdf_dir": pdf_dir,
        "relative_pdf": relative_pdf,
        "absolute_pdf": absolute_pdf,
        "tmp_path": tmp_path,
    }


def test_none_database_raises():
    with pytest.raises(ValueError):
        DatabaseFileLookup(None)


def test_lookup_relative_link(library):
    lookup = DatabaseFileLookup(library["db"], file_directories=[library["pdf_dir"]])
    assert lookup.lookup_database(library["relative_pdf"])


def test_lookup_absolute_link(library):
    lookup = DatabaseFileLookup(library["db"], file_directories=[])
    assert lookup.lookup_database(library["absolute_pdf"])
    assert not lookup.lookup_database(library["relative_pdf"])


def test_lookup_matches_by_content_not_name(library):
    copy = _write(library["tmp_path"] / "inbox" / "renamed.pdf", b"%PDF smith")
    other = _write(library["tmp_path"] / "inbox" / "smith2020.pdf", b"%PDF other")
    lookup = DatabaseFileLookup(library["db"], file_directories=[library["pdf_dir"]])

    assert lookup.lookup_database(copy)
    assert not lookup.lookup_database(other)


def test_lookup_none_inputs(library):
    lookup = DatabaseFileLookup(library["db"], file_directories=[library["pdf_dir"]])
    assert not lookup.lookup_database(None)
    assert not lookup.lookup_entry(library["relative_pdf"], None)
    assert not lookup.lookup_entry(None, library["db"].entries[0])


def test_lookup_entry_is_per_entry(library):
    lookup = DatabaseFileLookup(library["db"], file_directories=[library["pdf_dir"]])
    smith, doe, nofile = library["db"].entries
    assert lookup.lookup_entry(library["relative_pdf"], smith)
    assert not lookup.lookup_entry(library["relative_pdf"], doe)
    assert not lookup.lookup_entry(library["relative_pdf"], nofile)


def test_default_directories_come_from_database(library):
    # No fileDirectory metadata, so the .bib file's directory is the only base.
    lookup = DatabaseFileLookup(library["db"])
    assert library["tmp_path"].resolve() in lookup.file_directories
    assert not lookup.lookup_database(library["relative_pdf"])


def test_find_entries(library):
    dup = _write(library["tmp_path"] / "pdfs" / "copy.pdf", b"%PDF smith")
    db = BibDatabase.from_string(
        "@misc{a, file = {:smith2020.pdf:PDF}}\n"
        "@misc{b, file = {:other.pdf:PDF}}\n"
        "@misc{c, file = {:copy.pdf:PDF}}\n"
    )
    lookup = DatabaseFileLookup(db, file_directories=[library["pdf_dir"]])
    assert [e.key for e in lookup.find_entries(dup)] == ["a", "c"]
    assert lookup.find_entries(None) == []


def test_resolve_link_order(library, tmp_path):
    first = _write(tmp_path / "first" / "x.pdf", b"1")
    _write(tmp_path / "second" / "x.pdf", b"2")
    lookup = DatabaseFileLookup(library["db"], file_directories=[tmp_path / "first", tmp_path / "second"])

    assert lookup.resolve_link("x.pdf") == first
    assert lookup.resolve_link("missing.pdf") is None
    assert lookup.resolve_link("") is None
    assert lookup.resolve_link(str(tmp_path / "nowhere.pdf")) is None


def test_io_error_during_compare_is_no_match(library, mocker):
    mocker.patch("bib_lookup.file_lookup.contents_equal", side_effect=PermissionError("denied"))
    lookup = DatabaseFileLookup(library["db"], file_directories=[library["pdf_dir"]])
    assert not lookup.lookup_database(library["relative_pdf"])


def test_io_error_on_one_link_does_not_stop_scan(library, mocker):
    db = BibDatabase.from_string(
        "@misc{a, file = {:first.pdf:PDF;:smith2020.pdf:PDF}}\n"
    )
    _write(library["pdf_dir"] / "first.pdf", b"%PDF first")

    def flaky(a, b):
        if b.name == "first.pdf":
            raise OSError("read error")
        return contents_equal(a, b)

    mocker.patch("bib_lookup.file_lookup.contents_equal", side_effect=flaky)
    lookup = DatabaseFileLookup(db, file_directories=[library["pdf_dir"]])
    assert lookup.lookup_database(library["relative_pdf"])


def test_unresolved_link_does_not_stop_scan(library):
    db = BibDatabase.from_string(
        "@misc{a, file = {:gone.pdf:PDF;:missing/notes.txt:Text;:smith2020.pdf:PDF}}\n"
    )
    lookup = DatabaseFileLookup(db, file_directories=[library["pdf_dir"]])
    assert lookup.resolve_link("gone.pdf") is None
    assert lookup.lookup_database(library["relative_pdf"])


def test_single_letter_description_keeps_absolute_link(library):
    absolute_pdf = library["absolute_pdf"]
    db = BibDatabase.from_string(f"@misc{{a, file = {{A:{absolute_pdf}:PDF}}}}\n")
    lookup = DatabaseFileLookup(db, file_directories=[])
    assert lookup.lookup_database(absolute_pdf)
