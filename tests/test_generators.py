"""Tests for staticpress.generators: pagination, archives, feed, sitemap, search."""

import json
import xml.etree.ElementTree as ET

import pytest
from staticpress.config import SiteConfig
from staticpress.generators import (
    FeedGenerator,
    PaginationGenerator,
    SearchIndexGenerator,
    SitemapGenerator,
    TaxonomyArchiveGenerator,
    create_generators,
)
from staticpress.generators.archives import group_posts
from staticpress.generators.pagination import paginate
from staticpress.generators.sitemap import sitemap_entries
from staticpress.site import PageKind, RenderedPage

SITEMAP_NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"
ATOM_NS = "{http://www.w3.org/2005/Atom}"


def _posts(count, tags=lambda n: []):
    files = {}
    for n in range(1, count + 1):
        tag_list = tags(n)
        tag_line = f"tags: [{', '.join(tag_list)}]\n" if tag_list else ""
        files[f"_posts/2024-01-{n:02d}-post-{n:02d}.md"] = (
            f"---\ntitle: Post {n:02d}\n{tag_line}---\nBody of post {n:02d}.\n"
        )
    return files


BLOG_CONFIG = """\
title: Test Blog
url: https://example.com
paginate: 5
plugins:
  - jekyll-paginate
  - jekyll-feed
  - jekyll-sitemap
tag_archive:
  type: liquid
  path: /tags/
defaults:
  - scope:
      path: ""
      type: posts
    values:
      layout: single
"""


DEFAULT_ARCHIVE_CONFIG = """\
tag_archive: {}
defaults:
  - scope:
      type: posts
    values:
      layout: single
"""


class TestPaginate:
    def test_buckets(self):
        assert [len(b) for b in paginate(list(range(12)), 5)] == [5, 5, 2]

    def test_empty_gives_one_page(self):
        assert paginate([], 5) == [[]]

    def test_exact_multiple(self):
        assert [len(b) for b in paginate(list(range(10)), 5)] == [5, 5]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            paginate([1], 0)


class TestGroupPosts:
    def test_groups_sorted_by_slug(self):
        posts = [
            {"title": "b", "tags": ["zeta", "Alpha"]},
            {"title": "a", "tags": ["alpha2", "zeta"]},
        ]
        groups = group_posts(posts, "tags")
        assert list(groups) == ["alpha", "alpha2", "zeta"]
        assert groups["alpha"]["names"] == ["Alpha"]
        assert [p["title"] for p in groups["zeta"]["posts"]] == ["b", "a"]

    def test_values_sharing_a_slug_are_merged(self):
        posts = [
            {"title": "new", "tags": ["azure"]},
            {"title": "old", "tags": ["Azure", "AZURE"]},
        ]
        groups = group_posts(posts, "tags")
        assert list(groups) == ["azure"]
        assert groups["azure"]["names"] == ["azure", "Azure", "AZURE"]
        assert [p["title"] for p in groups["azure"]["posts"]] == ["new", "old"]


class TestCreateGenerators:
    def test_order_and_selection(self):
        cfg = SiteConfig.model_validate({
            "paginate": 3,
            "search": True,
            "plugins": ["jekyll-sitemap", "jekyll-feed", "jekyll-paginate", "jekyll-gist"],
            "category_archive": {"path": "/categories/"},
            "tag_archive": {"path": "/tags/"},
        })
        names = [g.name for g in create_generators(cfg)]
        assert names == [
            "category-archive",
            "tag-archive",
            "jekyll-paginate",
            "search",
            "jekyll-feed",
            "jekyll-sitemap",
        ]

    def test_paginate_plugin_without_size(self):
        cfg = SiteConfig(plugins=["jekyll-paginate"])
        assert create_generators(cfg) == []

    def test_types(self):
        cfg = SiteConfig.model_validate({
            "paginate": 2,
            "search": True,
            "plugins": ["jekyll-paginate", "jekyll-feed", "jekyll-sitemap"],
            "tag_archive": {},
        })
        kinds = [type(g) for g in create_generators(cfg)]
        assert kinds == [
            TaxonomyArchiveGenerator,
            PaginationGenerator,
            SearchIndexGenerator,
            FeedGenerator,
            SitemapGenerator,
        ]


class TestPaginationOutput:
    def test_twelve_posts_five_per_page(self, make_site, build):
        make_site(_posts(12), BLOG_CONFIG)
        out, _ = build()

        home = (out / "index.html").read_text()
        page2 = (out / "page2" / "index.html").read_text()
        page3 = (out / "page3" / "index.html").read_text()
        assert not (out / "page4").exists()

        for n in range(12, 7, -1):
            assert f"Post {n:02d}" in home
        assert "Post 07" not in home
        for n in range(7, 2, -1):
            assert f"Post {n:02d}" in page2
        assert "Post 02" in page3 and "Post 01" in page3
        assert "Post 03" not in page3

        # Newest first on every page
        assert home.index("Post 12") < home.index("Post 08")
        assert page3.index("Post 02") < page3.index("Post 01")

    def test_navigation_links(self, make_site, build):
        make_site(_posts(12), BLOG_CONFIG)
        out, _ = build()

        home = (out / "index.html").read_text()
        page2 = (out / "page2" / "index.html").read_text()
        page3 = (out / "page3" / "index.html").read_text()

        assert '<a href="/page2/" rel="next">' in home
        assert 'rel="prev"' not in home
        assert '<a href="/" rel="prev">' in page2
        assert '<a href="/page3/" rel="next">' in page2
        assert '<a href="/page2/" rel="prev">' in page3
        assert 'rel="next"' not in page3
        assert "Page 3 of 3" in page3

    def test_first_page_alias_redirects_home(self, make_site, build):
        make_site(_posts(3), BLOG_CONFIG)
        out, _ = build()
        redirect = (out / "page1" / "index.html").read_text()
        assert 'content="0; url=/"' in redirect
        assert '<link rel="canonical" href="https://example.com/">' in redirect

    def test_home_document_receives_paginator(self, make_site, build):
        files = _posts(7)
        files["index.html"] = (
            "---\nlayout: none\n---\n"
            "{% for post in paginator.posts %}[{{ post.title }}]{% endfor %}"
            " page {{ paginator.page }}/{{ paginator.total_pages }}\n"
        )
        make_site(files, BLOG_CONFIG)
        out, _ = build()
        home = (out / "index.html").read_text()
        page2 = (out / "page2" / "index.html").read_text()
        assert "[Post 07][Post 06][Post 05][Post 04][Post 03] page 1/2" in home
        assert "[Post 02][Post 01] page 2/2" in page2

    def test_no_posts_single_home_page(self, make_site, build):
        make_site({"about.md": "---\ntitle: About\n---\nHi\n"}, BLOG_CONFIG)
        out, _ = build()
        assert (out / "index.html").exists()
        assert not (out / "page2").exists()


class TestTagArchives:
    def test_membership(self, make_site, build):
        tags = {1: ["python"], 2: ["python", "web"], 3: ["web"]}
        make_site(_posts(3, lambda n: tags[n]), BLOG_CONFIG)
        out, _ = build()

        python = (out / "tags" / "python" / "index.html").read_text()
        web = (out / "tags" / "web" / "index.html").read_text()
        assert "Tag: python" in python
        assert "Post 01" in python and "Post 02" in python
        assert "Post 03" not in python
        assert "Post 02" in web and "Post 03" in web
        assert "Post 01" not in web

    def test_overview_page(self, make_site, build):
        make_site(_posts(2, lambda n: ["python"]), BLOG_CONFIG)
        out, _ = build()
        overview = (out / "tags" / "index.html").read_text()
        assert 'href="/tags/python/"' in overview

    def test_document_can_own_overview(self, make_site, build):
        files = _posts(2, lambda n: ["python"])
        files["tags/index.md"] = "---\nlayout: none\n---\nHand-written tag index\n"
        make_site(files, BLOG_CONFIG)
        out, _ = build()
        assert "Hand-written tag index" in (out / "tags" / "index.html").read_text()

    def test_post_links_to_archive(self, make_site, build):
        make_site(_posts(1, lambda n: ["python"]), BLOG_CONFIG)
        out, _ = build()
        post = (out / "2024" / "01" / "01" / "post-01.html").read_text()
        assert 'href="/tags/python/"' in post

    def test_case_variants_share_one_archive(self, make_site, build):
        tags = {1: ["Azure"], 2: ["azure"]}
        make_site(_posts(2, lambda n: tags[n]), BLOG_CONFIG)
        out, report = build()

        assert report.success is True
        archive = (out / "tags" / "azure" / "index.html").read_text()
        assert "Tag: azure, Azure" in archive
        assert "Post 01" in archive and "Post 02" in archive
        for n in (1, 2):
            post = (out / "2024" / "01" / f"{n:02d}" / f"post-{n:02d}.html").read_text()
            assert 'href="/tags/azure/"' in post

    def test_punctuation_variants_share_one_archive(self, make_site, build):
        tags = {1: ['"C#"'], 2: ['"C++"'], 3: ["c"]}
        make_site(_posts(3, lambda n: tags[n]), BLOG_CONFIG)
        out, _ = build()

        archive = (out / "tags" / "c" / "index.html").read_text()
        assert "Tag: c, C++, C#" in archive
        assert [p.name for p in (out / "tags").iterdir() if p.is_dir()] == ["c"]
        overview = (out / "tags" / "index.html").read_text()
        assert overview.count('href="/tags/c/"') == 1

    def test_default_path_links_match_archive(self, make_site, build):
        make_site(_posts(1, lambda n: ["python"]), DEFAULT_ARCHIVE_CONFIG)
        out, _ = build()
        assert (out / "tags" / "python" / "index.html").exists()
        post = (out / "2024" / "01" / "01" / "post-01.html").read_text()
        assert 'href="/tags/python/"' in post
        assert 'href="/python/"' not in post


class TestCategoryArchives:
    def test_directory_categories(self, make_site, build):
        make_site(
            {
                "dev/_posts/2024-01-01-one.md": "---\ntitle: One\n---\nx\n",
                "_posts/2024-01-02-two.md": "---\ntitle: Two\ncategories: life\n---\nx\n",
            },
            "category_archive:\n  path: /categories/\n",
        )
        out, _ = build()
        dev = (out / "categories" / "dev" / "index.html").read_text()
        assert "One" in dev and "Two" not in dev
        assert (out / "categories" / "life" / "index.html").exists()
        assert (out / "dev" / "2024" / "01" / "01" / "one.html").exists()


class TestFeed:
    def test_entries_limited_and_newest_first(self, make_site, build):
        make_site(_posts(12), BLOG_CONFIG)
        out, _ = build()
        root = ET.parse(out / "feed.xml").getroot()
        entries = root.findall(f"{ATOM_NS}entry")
        assert len(entries) == 10
        titles = [e.find(f"{ATOM_NS}title").text for e in entries]
        assert titles[0] == "Post 12"
        assert titles[-1] == "Post 03"
        link = entries[0].find(f"{ATOM_NS}link").get("href")
        assert link == "https://example.com/2024/01/12/post-12.html"

    def test_entry_content_is_post_html(self, make_site, build):
        make_site(_posts(1), BLOG_CONFIG)
        out, _ = build()
        root = ET.parse(out / "feed.xml").getroot()
        content = root.find(f"{ATOM_NS}entry/{ATOM_NS}content").text
        assert content.strip() == "<p>Body of post 01.</p>"

    def test_custom_path(self, make_site, build):
        make_site(_posts(1), "plugins: [jekyll-feed]\nfeed:\n  path: /atom.xml\n")
        out, _ = build()
        assert (out / "atom.xml").exists()
        assert not (out / "feed.xml").exists()


class TestSitemap:
    def test_lists_routable_pages(self, make_site, build):
        files = _posts(6)
        files["about.md"] = "---\ntitle: About\npermalink: /about/\n---\nHi\n"
        files["hidden.md"] = "---\nsitemap: false\n---\nHi\n"
        files["404.md"] = "---\npermalink: /404.html\n---\nNot found\n"
        make_site(files, BLOG_CONFIG)
        out, _ = build()

        root = ET.parse(out / "sitemap.xml").getroot()
        locs = [u.find(f"{SITEMAP_NS}loc").text for u in root.findall(f"{SITEMAP_NS}url")]
        assert "https://example.com/" in locs
        assert "https://example.com/about/" in locs
        assert "https://example.com/page2/" in locs
        assert "https://example.com/2024/01/06/post-06.html" in locs
        assert "https://example.com/tags/" not in locs  # no tags, no overview
        assert "https://example.com/page1/" not in locs
        assert "https://example.com/hidden.html" not in locs
        assert "https://example.com/404.html" not in locs
        assert "https://example.com/feed.xml" not in locs
        assert locs == sorted(locs)

    def test_entries_helper(self):
        pages = [
            RenderedPage.at("/b/", "x"),
            RenderedPage.at("/a/", "x"),
            RenderedPage.at("/r/", "x", kind=PageKind.REDIRECT),
            RenderedPage.at("/feed.xml", "x", kind=PageKind.FEED),
            RenderedPage.at("/off/", "x", sitemap=False),
        ]
        assert [p.url for p in sitemap_entries(pages)] == ["/a/", "/b/"]


class TestSearchIndex:
    def test_index_contents(self, make_site, build):
        files = _posts(2, lambda n: ["python"])
        files["about.md"] = "---\ntitle: About\n---\nAbout this site.\n"
        files["private.md"] = "---\ntitle: Private\nsearch: false\n---\nNope\n"
        make_site(files, "search: true\n")
        out, _ = build()
        entries = json.loads((out / "assets" / "js" / "search-data.json").read_text())
        titles = [e["title"] for e in entries]
        assert set(titles) == {"Post 01", "Post 02", "About"}
        post = next(e for e in entries if e["title"] == "Post 01")
        assert post["tags"] == ["python"]
        assert post["excerpt"] == "Body of post 01."


DRAFT_CONFIG = """\
url: https://example.com
plugins: [jekyll-feed, jekyll-sitemap]
"""

DRAFT_FILES = {
    "_posts/2024-01-01-a.md": "---\ntitle: A\n---\nPublished.\n",
    "_drafts/idea.md": "---\ntitle: Idea\n---\nNot yet.\n",
}


class TestDraftsStayPrivate:
    def test_draft_rendered_but_not_in_sitemap(self, make_site, build):
        make_site(DRAFT_FILES, DRAFT_CONFIG)
        out, report = build(show_drafts=True)

        assert report.documents == {"drafts": 1, "posts": 1}
        assert any(path.endswith("idea.html") for path in report.outputs_written)
        root = ET.parse(out / "sitemap.xml").getroot()
        locs = [u.find(f"{SITEMAP_NS}loc").text for u in root.findall(f"{SITEMAP_NS}url")]
        assert "https://example.com/2024/01/01/a.html" in locs
        assert not any("idea" in loc for loc in locs)

    def test_draft_not_in_feed(self, make_site, build):
        make_site(DRAFT_FILES, DRAFT_CONFIG)
        out, _ = build(show_drafts=True)

        root = ET.parse(out / "feed.xml").getroot()
        titles = [e.find(f"{ATOM_NS}title").text for e in root.findall(f"{ATOM_NS}entry")]
        assert titles == ["A"]
        assert root.find(f"{ATOM_NS}updated").text.startswith("2024-01-01")
