"""Unit tests for the README parser."""

from __future__ import annotations

import pytest

from spmcontext import parser
from spmcontext.config import ParserSettings
from spmcontext.models.readme import InstallationInfo
from spmcontext.parser import (
    Vocabulary,
    extract_installation_info,
    extract_keywords,
    extract_usage_examples,
    normalize_language,
)


def _block(code: str, language: str = "swift") -> str:
    return f"```{language}\n{code}\n```"


class TestUsageSections:
    """Examples under usage-style headings."""

    def test_single_block_uses_heading_as_title(self) -> None:
        content = "# Package\n\n## Usage\n\n```swift\nlet x = Manager()\n```\n"
        examples = extract_usage_examples(content)
        assert len(examples) == 1
        assert examples[0].title == "Usage"
        assert examples[0].language == "swift"
        assert "Manager()" in examples[0].code

    def test_multiple_blocks_are_numbered(self) -> None:
        content = "\n".join([
            "## Getting Started",
            _block("let first = First()"),
            _block("let second = Second()"),
        ])
        examples = extract_usage_examples(content)
        assert [e.title for e in examples] == ["Getting Started 1", "Getting Started 2"]

    def test_multiple_sections_in_document_order(self) -> None:
        content = "\n".join([
            "# Package",
            "## Basic Usage",
            _block("let basic = BasicExample()"),
            "## Examples",
            _block("let advanced = AdvancedExample()\nadvanced.configure()"),
            "## Getting Started",
            _block("// Quick start example\nlet quickStart = QuickExample()"),
        ])
        examples = extract_usage_examples(content)
        assert [e.title for e in examples] == ["Basic Usage", "Examples", "Getting Started"]

    def test_heading_match_is_case_insensitive(self) -> None:
        content = "### QUICK START\n" + _block("let client = Client()")
        assert extract_usage_examples(content)[0].title == "QUICK START"

    def test_closing_hashes_stripped_from_title(self) -> None:
        content = "## Usage ##\n" + _block("let client = Client()")
        assert extract_usage_examples(content)[0].title == "Usage"

    def test_trailing_hash_inside_word_kept(self) -> None:
        content = "## Using C#\n" + _block("let client = Client()")
        assert extract_usage_examples(content)[0].title == "Using C#"

    def test_phrase_must_end_at_word_boundary(self) -> None:
        # "Useful links" is not a usage heading, so the fallback title applies
        content = "## Useful links\n" + _block("let client = Client()")
        assert extract_usage_examples(content)[0].title == "Usage Example"

    def test_section_ends_at_next_heading(self) -> None:
        content = "\n".join([
            "## Usage",
            _block("let inside = Inside()"),
            "## License",
            _block("let outside = Outside()"),
        ])
        examples = extract_usage_examples(content)
        assert len(examples) == 1
        assert "Inside()" in examples[0].code

    def test_heading_inside_fence_does_not_end_section(self) -> None:
        content = "\n".join([
            "## Usage",
            "```bash",
            "# install the tool first",
            "swift package resolve",
            "```",
            _block("let after = After()"),
        ])
        examples = extract_usage_examples(content)
        assert [e.title for e in examples] == ["Usage 1", "Usage 2"]

    def test_usage_heading_without_code_yields_nothing(self) -> None:
        content = "## Usage\n\nSee the docs.\n\n## Other\n" + _block("let x = Manager()")
        assert extract_usage_examples(content) == []

    def test_missing_language_defaults_to_text(self) -> None:
        content = "## Usage\n```\nlet x = Manager()\n```"
        assert extract_usage_examples(content)[0].language == "text"

    def test_blank_lines_trimmed_from_code(self) -> None:
        content = "## Usage\n```swift\n\n\nlet x = Manager()\n\n```"
        assert extract_usage_examples(content)[0].code == "let x = Manager()"

    def test_unclosed_fence_yields_no_block(self) -> None:
        content = "## Usage\n```swift\nlet x = Manager()\n"
        assert extract_usage_examples(content) == []

    def test_capped_at_ten_in_document_order(self) -> None:
        blocks = [_block(f"let value{i} = Thing({i})") for i in range(15)]
        content = "## Usage\n" + "\n".join(blocks)
        examples = extract_usage_examples(content)
        assert len(examples) == 10
        assert [e.title for e in examples] == [f"Usage {i}" for i in range(1, 11)]
        assert "Thing(0)" in examples[0].code
        assert "Thing(9)" in examples[9].code


class TestDescriptions:
    def test_text_before_block_becomes_description(self) -> None:
        content = "## Usage\n\nCreate a manager and fetch data:\n\n" + _block("let m = Manager()")
        assert extract_usage_examples(content)[0].description == "Create a manager and fetch data:"

    def test_description_joins_up_to_three_lines(self) -> None:
        content = "\n".join([
            "## Usage",
            "Line one is here.",
            "Line two is here.",
            "Line three is here.",
            "Line four is here.",
            _block("let m = Manager()"),
        ])
        assert extract_usage_examples(content)[0].description == (
            "Line two is here. Line three is here. Line four is here."
        )

    def test_short_description_is_discarded(self) -> None:
        content = "## Usage\nSimple:\n" + _block("let m = Manager()")
        assert extract_usage_examples(content)[0].description is None

    def test_description_stops_at_previous_block(self) -> None:
        content = "\n".join([
            "## Usage",
            "First block explained here.",
            _block("let a = Alpha()"),
            _block("let b = Beta()"),
        ])
        examples = extract_usage_examples(content)
        assert examples[0].description == "First block explained here."
        assert examples[1].description is None

    def test_description_never_crosses_heading(self) -> None:
        content = "Intro paragraph that is long.\n## Usage\n" + _block("let m = Manager()")
        assert extract_usage_examples(content)[0].description is None


class TestFallback:
    def test_all_blocks_used_without_usage_heading(self) -> None:
        content = "# Package\n\n" + _block("let x = 5\nprint(x)") + "\n## API\n" + _block(
            "let y = Thing()"
        )
        examples = extract_usage_examples(content)
        assert len(examples) == 2
        assert all(e.title == "Usage Example" for e in examples)
        assert all(e.description is None for e in examples)

    def test_empty_document(self) -> None:
        assert extract_usage_examples("") == []


class TestValidityFilter:
    def test_import_only_block_is_dropped(self) -> None:
        content = "## Usage\n" + _block("import Foundation")
        assert extract_usage_examples(content) == []

    def test_imports_and_comments_only_is_dropped(self) -> None:
        content = "## Usage\n" + _block("import Foundation\n// set up\n\nimport Combine")
        assert extract_usage_examples(content) == []

    def test_shell_prompt_is_dropped(self) -> None:
        content = "## Usage\n" + _block("$ swift build --configuration release", "bash")
        assert extract_usage_examples(content) == []

    @pytest.mark.parametrize("marker", ["✓", "→"])
    def test_output_markers_are_dropped(self, marker: str) -> None:
        content = "## Usage\n" + _block(f"{marker} Build complete in 2.3s", "text")
        assert extract_usage_examples(content) == []

    def test_short_code_is_dropped(self) -> None:
        content = "## Usage\n" + _block("foo()")
        assert extract_usage_examples(content) == []


class TestLanguageNormalisation:
    @pytest.mark.parametrize(
        ("tag", "expected"),
        [
            ("js", "javascript"),
            ("sh", "bash"),
            ("shell", "bash"),
            ("zsh", "bash"),
            ("fish", "bash"),
            ("yml", "yaml"),
            ("md", "markdown"),
            ("objective-c", "objc"),
            ("ObjectiveC", "objc"),
            ("Swift", "swift"),
            ("ruby", "ruby"),
            ("", "text"),
            (None, "text"),
        ],
    )
    def test_aliases(self, tag: str | None, expected: str) -> None:
        assert normalize_language(tag) == expected

    def test_fence_info_string_uses_first_token(self) -> None:
        content = "## Usage\n```swift title=Example.swift\nlet x = Manager()\n```"
        assert extract_usage_examples(content)[0].language == "swift"


class TestInstallationInfo:
    def test_cocoapods_line(self) -> None:
        info = extract_installation_info("```ruby\npod 'Alamofire', '~> 5.0'\n```")
        assert info.cocoapods is not None
        assert "pod 'Alamofire'" in info.cocoapods

    def test_carthage_line(self) -> None:
        info = extract_installation_info('Cartfile:\n\ngithub "Alamofire/Alamofire" ~> 5.0\n')
        assert info.carthage == 'github "Alamofire/Alamofire"'

    def test_spm_block_without_fences(self) -> None:
        content = "\n".join([
            "## Installation",
            "```swift",
            "dependencies: [",
            '    .package(url: "https://github.com/Alamofire/Alamofire.git", from: "5.0.0")',
            "]",
            "```",
        ])
        info = extract_installation_info(content)
        assert info.spm is not None
        assert info.spm.startswith("dependencies: [")
        assert "```" not in info.spm
        assert ".package(url:" in info.spm

    def test_spm_block_any_language_tag(self) -> None:
        content = '```text\n.package(url: "https://github.com/a/b.git", from: "1.0.0")\n```'
        assert extract_installation_info(content).spm is not None

    def test_first_match_wins(self) -> None:
        content = "pod 'First'\npod 'Second'\n"
        assert extract_installation_info(content).cocoapods == "pod 'First'"

    def test_no_signatures_yields_empty_record(self) -> None:
        info = extract_installation_info("# Package\n\nNothing to install here.")
        assert info == InstallationInfo()
        assert info.model_dump(exclude_none=True) == {}

    def test_empty_input(self) -> None:
        assert extract_installation_info("").model_dump(exclude_none=True) == {}


class TestKeywords:
    def test_vocabulary_then_headings(self) -> None:
        content = "# Networking Kit\n\nA swift library for json over http."
        assert extract_keywords(content) == ["swift", "networking", "json", "http", "networking kit"]

    def test_capped_at_ten(self) -> None:
        content = (
            "# Package\n\nswift ios macos tvos watchos xcode uikit swiftui foundation combine "
            "async await actor concurrency networking json rest api http extra keywords"
        )
        assert len(extract_keywords(content)) <= 10

    def test_heading_length_bounds(self) -> None:
        content = "# ab\n# abc\n# " + "z" * 19 + "\n# " + "q" * 20
        assert extract_keywords(content, Vocabulary(usage_phrases=(), keywords=())) == [
            "abc",
            "z" * 19,
        ]

    def test_closing_hashes_stripped_from_heading_keywords(self) -> None:
        content = "# Networking Kit ###"
        assert extract_keywords(content, Vocabulary(keywords=())) == ["networking kit"]

    def test_duplicates_collapse(self) -> None:
        assert extract_keywords("# Swift\n\nswift", Vocabulary(keywords=("swift",))) == ["swift"]

    def test_headings_inside_fences_ignored(self) -> None:
        content = "```bash\n# comment here\n```"
        assert extract_keywords(content, Vocabulary(keywords=())) == []

    def test_empty_input(self) -> None:
        assert extract_keywords("") == []

    def test_custom_vocabulary_from_settings(self) -> None:
        vocabulary = Vocabulary.from_settings(
            ParserSettings(usage_phrases=["demo"], keywords=["Vapor"])
        )
        assert extract_keywords("Built on vapor.", vocabulary) == ["vapor"]
        examples = extract_usage_examples("## Demo\n" + _block("let app = App()"), vocabulary)
        assert examples[0].title == "Demo"


class TestRobustness:
    def test_deterministic_output(self) -> None:
        content = "## Usage\nDo the thing properly:\n" + _block("let m = Manager()") + "\npod 'X'"
        assert extract_usage_examples(content) == extract_usage_examples(content)
        assert extract_installation_info(content) == extract_installation_info(content)
        assert extract_keywords(content) == extract_keywords(content)

    def test_unclosed_fence_swallows_rest_of_document(self) -> None:
        content = "## Usage\n```swift\n" + "# Inside\n" * 500
        assert extract_usage_examples(content) == []
        assert extract_keywords(content, Vocabulary(keywords=())) == ["usage"]

    def test_long_pathological_lines(self) -> None:
        content = 'github "' + "a" * 50_000 + "\npod '" + "b" * 50_000
        info = extract_installation_info(content)
        assert info.carthage is None
        assert info.cocoapods is None

    def test_internal_fault_returns_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def boom(*args: object, **kwargs: object) -> None:
            raise RuntimeError("scanner fault")

        monkeypatch.setattr(parser, "_scan", boom)
        monkeypatch.setattr(parser, "_heading_text", boom)
        monkeypatch.setattr(parser, "_is_fence", boom)
        assert extract_usage_examples("## Usage") == []
        assert extract_keywords("# Title") == []
        assert extract_installation_info("```\nx\n```") == InstallationInfo()
