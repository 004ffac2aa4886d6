# BlockSync Naming Tests
# Tests for file name validation and identity derivation

from pathlib import Path, PurePath

import pytest

from blocksync.sync.naming import (
    EntryIdentity,
    FileClass,
    NamingRules,
    category_to_parts,
    classify_file_name,
    derive_category,
    derive_identity,
    derive_name,
    validate_file_name,
    validate_folders,
)


class TestValidateFileName:
    """Tests for validate_file_name."""

    def test_valid(self, rules: NamingRules):
        assert validate_file_name("AT_Foo.docx", rules) == (True, None)

    def test_case_insensitive_prefix_and_extension(self, rules: NamingRules):
        valid, _ = validate_file_name("at_Foo.DOCX", rules)
        assert valid

    @pytest.mark.parametrize("char", ["/", "\\", ":", "*", "?", '"', "<", ">", "|"])
    def test_reserved_characters(self, rules: NamingRules, char: str):
        valid, reason = validate_file_name(f"AT_Bad{char}Name.docx", rules)
        assert not valid
        assert "reserved" in reason
        assert char in reason

    def test_missing_prefix(self, rules: NamingRules):
        valid, reason = validate_file_name("Foo.docx", rules)
        assert not valid
        assert "AT_" in reason

    def test_wrong_extension(self, rules: NamingRules):
        valid, reason = validate_file_name("AT_Foo.txt", rules)
        assert not valid
        assert ".docx" in reason

    @pytest.mark.parametrize("file_name", ["AT_.docx", "AT_   .docx"])
    def test_blank_remainder(self, rules: NamingRules, file_name: str):
        valid, reason = validate_file_name(file_name, rules)
        assert not valid
        assert "name after" in reason



class TestValidateFolders:
    """Tests for validate_folders."""

    def test_plain_folders(self):
        assert validate_folders(PurePath("Legal/Contracts/AT_Notice.docx")) == (True, None)

    def test_root_level(self):
        assert validate_folders(PurePath("AT_Foo.docx")) == (True, None)

    @pytest.mark.parametrize("folder", ["a|b", "What?", "x:y"])
    def test_reserved_character_in_folder(self, folder: str):
        valid, reason = validate_folders(PurePath("Legal") / folder / "AT_Foo.docx")
        assert not valid
        assert reason.startswith("Contains reserved characters")
        assert folder in reason

class TestClassifyFileName:
    """Tests for the valid/invalid/ignored buckets."""

    def test_no_prefix_is_ignored(self, rules: NamingRules):
        assert classify_file_name("Notes.docx", rules) == (FileClass.IGNORED, None)

    def test_wrong_extension_is_ignored(self, rules: NamingRules):
        assert classify_file_name("AT_Foo.txt", rules) == (FileClass.IGNORED, None)

    def test_separator_in_name_is_invalid(self, rules: NamingRules):
        file_class, reason = classify_file_name("AT_Report/Final.docx", rules)
        assert file_class == FileClass.INVALID
        assert "reserved" in reason

    def test_blank_is_invalid(self, rules: NamingRules):
        file_class, _ = classify_file_name("AT_ .docx", rules)
        assert file_class == FileClass.INVALID

    def test_valid(self, rules: NamingRules):
        assert classify_file_name("AT_Foo.docx", rules) == (FileClass.VALID, None)


class TestDeriveIdentity:
    """Tests for name and category derivation."""

    def test_root_level(self, rules: NamingRules):
        root = Path("/data/source")
        identity = derive_identity(root / "AT_Foo.docx", root, rules)
        assert identity == EntryIdentity("Foo", "InternalAutotext")

    def test_nested_with_spaces(self, rules: NamingRules):
        root = Path("/data/source")
        identity = derive_identity(root / "Legal" / "Sub Dir" / "AT_My Clause.docx", root, rules)
        assert identity.name == "My_Clause"
        assert identity.category == "InternalAutotext\\Legal\\Sub_Dir"

    def test_no_root_is_root_level(self, rules: NamingRules):
        identity = derive_identity(Path("/elsewhere/deep/AT_Foo.docx"), None, rules)
        assert identity.category == "InternalAutotext"

    def test_outside_root_is_root_level(self, rules: NamingRules):
        identity = derive_identity(Path("/elsewhere/AT_Foo.docx"), Path("/data/source"), rules)
        assert identity == EntryIdentity("Foo", "InternalAutotext")

    def test_lowercase_prefix_stripped(self, rules: NamingRules):
        assert derive_name("at_foo.DOCX", rules) == "foo"

    def test_derive_category_root(self, rules: NamingRules):
        assert derive_category(PurePath("AT_Foo.docx"), rules) == "InternalAutotext"

    def test_custom_rules(self):
        custom = NamingRules(prefix="BB-", extension=".dotx", root_category="Blocks", category_separator="/")
        identity = derive_identity(Path("/r/A B/BB-x y.dotx"), Path("/r"), custom)
        assert identity == EntryIdentity("x_y", "Blocks/A_B")

    def test_str(self):
        assert str(EntryIdentity("Foo", "InternalAutotext")) == "Foo (InternalAutotext)"


class TestNamingRules:
    """Tests for NamingRules helpers."""

    def test_file_name_for(self, rules: NamingRules):
        assert rules.file_name_for("My_Clause") == "AT_My_Clause.docx"
        assert rules.file_name_for("My_Clause", restore_spaces=True) == "AT_My Clause.docx"

    def test_category_to_parts(self, rules: NamingRules):
        assert category_to_parts("InternalAutotext\\Legal\\Sub_Dir", rules) == ["Legal", "Sub_Dir"]
        assert category_to_parts("InternalAutotext", rules) == []
        assert category_to_parts("Other\\Legal", rules) == ["Other", "Legal"]
