"""Tests for staticpress.transform: template tokens, Markdown and layouts."""

import pytest
from staticpress.config import SiteConfig
from staticpress.errors import ConfigurationError, ContentError
from staticpress.transform import ContentTransformer, LayoutLibrary


@pytest.fixture
def config():
    return SiteConfig(title="My Site", baseurl="/blog")


def _transform(site_dir, resolve, config, rel, url="/x/"):
    transformer = ContentTransformer(config, site_dir)
    return transformer.transform(resolve(rel, config), url, config.to_template_dict())


class TestTokens:
    def test_site_variables(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\nlayout: none\n---\nWelcome to {{ site.title }}\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert "<p>Welcome to My Site</p>" in result.content

    def test_page_variables(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\ntitle: About\n---\n# {{ page.title }} at {{ page.url }}\n"})
        result = _transform(site_dir, resolve, config, "a.md", url="/about/")
        assert "About at /about/" in result.content

    def test_raw_passes_through(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\n{% raw %}{{ not_a_variable }}{% endraw %}\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert "{{ not_a_variable }}" in result.content

    def test_unresolved_token_is_error(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\nHello {{ page.missing_value }}\n"})
        with pytest.raises(ContentError, match="unresolved template token") as exc_info:
            _transform(site_dir, resolve, config, "a.md")
        assert exc_info.value.source == "a.md"

    def test_syntax_error(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\n{% if %}\n"})
        with pytest.raises(ContentError, match="syntax error"):
            _transform(site_dir, resolve, config, "a.md")

    def test_liquid_comments_removed(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\nshown {% comment %}hidden{% endcomment %}\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert "shown" in result.content
        assert "hidden" not in result.content

    def test_brace_hash_is_not_a_comment(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\nText with {#anchor} braces.\n\nNext {#x} paragraph.\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert "Next" in result.content

    def test_filters(self, make_site, site_dir, resolve, config):
        make_site({
            "a.md": "---\n---\n[link]({{ '/about/' | relative_url }}) {{ 'Hello There' | slugify }}\n"
        })
        result = _transform(site_dir, resolve, config, "a.md")
        assert 'href="/blog/about/"' in result.content
        assert "hello-there" in result.content

    def test_archive_url_filters(self, make_site, site_dir, resolve):
        config = SiteConfig.model_validate({"baseurl": "/blog", "tag_archive": {}})
        make_site({"a.html": "---\n---\n{{ 'C#' | tag_url | relative_url }}\n"})
        result = _transform(site_dir, resolve, config, "a.html")
        assert result.content.strip() == "/blog/tags/c/"

    def test_include_from_site(self, make_site, site_dir, resolve, config):
        make_site({
            "_includes/note.html": "<aside>{{ page.title }}</aside>",
            "a.md": "---\ntitle: Noted\n---\n{% include 'note.html' %}\n",
        })
        result = _transform(site_dir, resolve, config, "a.md")
        assert "<aside>Noted</aside>" in result.content


class TestMarkdown:
    def test_mermaid_fence_keeps_language_class(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\n```mermaid\ngraph TD\n  A-->B\n```\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert 'class="language-mermaid"' in result.content
        assert result.invalid_diagrams == 0

    def test_unknown_diagram_type_counted(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\n```mermaid\nnot a diagram\n```\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.invalid_diagrams == 1

    def test_excerpt_is_first_paragraph(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\nFirst para.\n\nSecond para.\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.excerpt == "<p>First para.</p>"

    def test_explicit_excerpt(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\nexcerpt: Short *summary*\n---\nLong body.\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.excerpt == "<p>Short <em>summary</em></p>"

    def test_toc(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\n---\n## Setup\n\ntext\n\n## Usage\n\ntext\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert 'href="#setup"' in result.toc
        assert 'id="usage"' in result.content

    def test_html_document_not_converted(self, make_site, site_dir, resolve, config):
        make_site({"a.html": "---\n---\n<div>*kept*</div>\n"})
        result = _transform(site_dir, resolve, config, "a.html")
        assert "<div>*kept*</div>" in result.content


class TestLayouts:
    def test_chain_wraps_inside_out(self, make_site, site_dir, resolve, config):
        make_site({
            "_layouts/outer.html": "<outer>{{ content }}</outer>",
            "_layouts/inner.html": "---\nlayout: outer\n---\n<inner>{{ content }}</inner>",
            "a.md": "---\nlayout: inner\n---\nHi\n",
        })
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.layout_chain == ["inner", "outer"]
        html = result.html
        assert html.index("<outer>") < html.index("<inner>") < html.index("<p>Hi</p>")
        assert html.index("</inner>") < html.index("</outer>")

    def test_site_layout_shadows_theme(self, make_site, site_dir, resolve, config):
        make_site({
            "_layouts/default.html": "<custom>{{ content }}</custom>",
            "a.md": "---\nlayout: default\n---\nHi\n",
        })
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.html.startswith("<custom>")

    def test_theme_single_layout(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\nlayout: single\ntitle: Themed\n---\nHi\n"})
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.layout_chain == ["single", "default"]
        assert "<!DOCTYPE html>" in result.html
        assert 'data-skin="default"' in result.html
        assert "Themed" in result.html

    def test_unknown_layout(self, make_site, site_dir, resolve, config):
        make_site({"a.md": "---\nlayout: missing\n---\nHi\n"})
        with pytest.raises(ContentError, match="unknown layout"):
            _transform(site_dir, resolve, config, "a.md")

    def test_layout_sees_page(self, make_site, site_dir, resolve, config):
        make_site({
            "_layouts/plain.html": "<title>{{ page.title }}</title>{{ content }}",
            "a.md": "---\nlayout: plain\ntitle: Page Title\n---\nHi\n",
        })
        result = _transform(site_dir, resolve, config, "a.md")
        assert result.html.startswith("<title>Page Title</title>")


class TestLayoutLibrary:
    def _library(self, site_dir, config):
        return ContentTransformer(config, site_dir).layouts

    def test_cycle_detected(self, make_site, site_dir, config):
        make_site({
            "_layouts/a.html": "---\nlayout: b\n---\n{{ content }}",
            "_layouts/b.html": "---\nlayout: a\n---\n{{ content }}",
        })
        library = self._library(site_dir, config)
        with pytest.raises(ConfigurationError, match="a -> b -> a"):
            library.chain("a")
        with pytest.raises(ConfigurationError, match="Cyclic"):
            library.validate()

    def test_self_reference(self, make_site, site_dir, config):
        make_site({"_layouts/loop.html": "---\nlayout: loop\n---\n{{ content }}"})
        with pytest.raises(ConfigurationError, match="loop -> loop"):
            self._library(site_dir, config).chain("loop")

    def test_dangling_parent(self, make_site, site_dir, config):
        make_site({"_layouts/child.html": "---\nlayout: ghost\n---\n{{ content }}"})
        with pytest.raises(ConfigurationError, match="ghost"):
            self._library(site_dir, config).chain("child")

    def test_template_syntax_error(self, make_site, site_dir, config):
        make_site({"_layouts/broken.html": "{% for %}"})
        with pytest.raises(ConfigurationError, match="syntax error"):
            self._library(site_dir, config).validate()

    def test_theme_layouts_available(self, site_dir, config):
        library = self._library(site_dir, config)
        for name in ("default", "single", "home", "archive", "page"):
            assert name in library
        library.validate()

    def test_missing_directories_ignored(self, tmp_path, config):
        transformer = ContentTransformer(config, tmp_path)
        library = LayoutLibrary(transformer.layout_env, [tmp_path / "nope"])
        assert library.names() == []
