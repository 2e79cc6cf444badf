from pathlib import Path

import pytest

from pegasus.build import BuildResult, _format_error_message, build_site
from pegasus.errors import ConfigError, ContentError, PipelineEnvironmentError
from pegasus.utils import iter_tree


def create_project(tmp_path: Path) -> Path:
    project = tmp_path / "blog"
    source = project / "source"
    (source / "_posts").mkdir(parents=True)
    (source / "posts" / "images").mkdir(parents=True)
    (project / "data").mkdir()
    (project / "assets" / "js").mkdir(parents=True)

    (project / "pegasus.yaml").write_text("output_dir: public\n", encoding="utf-8")
    (project / "data" / "site.yaml").write_text(
        "title: Dev Notes\nurl: https://example.com\n", encoding="utf-8"
    )
    (project / "data" / "nav.yaml").write_text("- label: Home\n  url: /\n", encoding="utf-8")
    (project / "assets" / "js" / "main.js").write_text("var answer = 42;\n", encoding="utf-8")

    (source / "about.md").write_text("# About\n\nWho writes this.\n", encoding="utf-8")
    (source / "posts" / "2024-01-15-emacs.md").write_text(
        "---\n"
        "title: Configuring Emacs for C++\n"
        "categories: [Tools]\n"
        "tags: [emacs, c++]\n"
        "---\n"
        "Setting up a C++ toolchain.\n\n"
        "![diagram](images/diagram.png)\n\n"
        "```cpp\nint main() { return 0; }\n```\n",
        encoding="utf-8",
    )
    (source / "posts" / "2024-02-01-latex.md").write_text(
        "---\n"
        "title: LaTeX and Mermaid to PDF\n"
        "categories: [Writing]\n"
        "tags: [latex]\n"
        "---\n"
        "Diagrams in documents.\n",
        encoding="utf-8",
    )
    (source / "posts" / "images" / "diagram.png").write_bytes(b"not an image")
    (source / "posts" / "_unfinished.md").write_text("# Draft", encoding="utf-8")
    return project


def snapshot(root: Path) -> dict[Path, bytes]:
    return {rel: (root / rel).read_bytes() for rel in iter_tree(root)}


def test_build_writes_pages_taxonomies_feeds_and_assets(tmp_path):
    project = create_project(tmp_path)
    result = build_site(project)
    output = project / "public"

    assert isinstance(result, BuildResult)
    assert result.output_dir == output
    assert [d.url for d in result.documents] == ["/about/", "/posts/emacs/", "/posts/latex/"]
    assert result.data["title"] == "Dev Notes"
    assert result.data["nav"] == [{"label": "Home", "url": "/"}]

    files = {p.as_posix() for p in result.files}
    assert files == {
        ".nojekyll",
        "about/index.html",
        "assets/js/main.js",
        "categories/tools/index.html",
        "categories/writing/index.html",
        "index.html",
        "posts/emacs/index.html",
        "posts/images/diagram.png",
        "posts/latex/index.html",
        "rss.xml",
        "sitemap.xml",
        "tags/c/index.html",
        "tags/emacs/index.html",
        "tags/latex/index.html",
    }

    home = (output / "index.html").read_text(encoding="utf-8")
    assert home.index("/posts/latex/") < home.index("/posts/emacs/") < home.index("/about/")
    post = (output / "posts" / "emacs" / "index.html").read_text(encoding="utf-8")
    assert '<img src="/posts/images/diagram.png"' in post
    assert 'class="highlight"' in post
    tag_page = (output / "tags" / "emacs" / "index.html").read_text(encoding="utf-8")
    assert "/posts/emacs/" in tag_page
    assert "/posts/latex/" not in tag_page


def test_build_is_byte_identical_when_repeated(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    first = snapshot(project / "public")
    build_site(project)
    assert snapshot(project / "public") == first


def test_empty_store_still_produces_index(tmp_path):
    project = tmp_path / "empty"
    (project / "source").mkdir(parents=True)
    result = build_site(project)
    assert result.documents == []
    index = project / "public" / "index.html"
    assert index.exists()
    assert "<h1>Blog</h1>" in index.read_text(encoding="utf-8")


def test_adding_a_document_adds_one_page(tmp_path):
    project = create_project(tmp_path)
    build_site(project)
    before = snapshot(project / "public")

    (project / "source" / "posts" / "2024-03-01-mermaid.md").write_text(
        "---\ntitle: Mermaid diagrams\ntags: [diagrams]\n---\nFlowcharts.\n", encoding="utf-8"
    )
    build_site(project)
    after = snapshot(project / "public")

    assert set(after) - set(before) == {
        Path("posts/mermaid/index.html"),
        Path("tags/diagrams/index.html"),
    }
    assert set(before) - set(after) == set()
    for page in ("about/index.html", "posts/emacs/index.html", "posts/latex/index.html"):
        assert after[Path(page)] == before[Path(page)]


def test_drafts_and_root_url(tmp_path):
    project = create_project(tmp_path)
    result = build_site(project, include_drafts=True, root_url="https://example.com/blog/")
    assert "/posts/unfinished/" in [d.url for d in result.documents]
    about = (project / "public" / "about" / "index.html").read_text(encoding="utf-8")
    assert 'href="https://example.com/blog/"' in about


def test_output_dir_override_and_no_clean(tmp_path):
    project = create_project(tmp_path)
    target = tmp_path / "elsewhere"
    target.mkdir()
    (target / "keep.txt").write_text("keep", encoding="utf-8")
    build_site(project, output_dir_override=target, clean_output=False)
    assert (target / "keep.txt").exists()
    assert (target / "posts" / "emacs" / "index.html").exists()
    assert not (project / "public").exists()


def test_stale_output_is_removed(tmp_path):
    project = create_project(tmp_path)
    stale = project / "public" / "old-post" / "index.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")
    build_site(project)
    assert not stale.exists()


@pytest.mark.parametrize("output_dir", ["source", ".", "source/public"])
def test_output_dir_may_not_overlap_the_sources(tmp_path, output_dir):
    project = create_project(tmp_path)
    (project / "pegasus.yaml").write_text(f"output_dir: {output_dir}\n", encoding="utf-8")
    before = snapshot(project / "source")
    with pytest.raises(ConfigError, match="Output directory") as excinfo:
        build_site(project)
    assert excinfo.value.step == "generate"
    assert snapshot(project / "source") == before


def test_output_dir_override_may_not_be_an_ancestor(tmp_path):
    project = create_project(tmp_path)
    with pytest.raises(ConfigError, match="would overwrite"):
        build_site(project, output_dir_override=tmp_path)
    assert (project / "source" / "about.md").exists()


def test_missing_source_dir_is_environment_error(tmp_path):
    with pytest.raises(PipelineEnvironmentError) as excinfo:
        build_site(tmp_path)
    assert excinfo.value.step == "generate"


def test_malformed_frontmatter_fails_the_build(tmp_path):
    project = create_project(tmp_path)
    bad = project / "source" / "posts" / "2024-04-01-bad.md"
    bad.write_text("---\ntags: [unclosed\n---\nBody\n", encoding="utf-8")
    with pytest.raises(ContentError) as excinfo:
        build_site(project)
    assert excinfo.value.source_path == bad


def test_template_errors_name_the_file(tmp_path):
    project = create_project(tmp_path)
    layouts = project / "source" / "_layouts"
    layouts.mkdir()
    broken = layouts / "post.html.jinja"
    broken.write_text("{% if %}", encoding="utf-8")
    with pytest.raises(ContentError) as excinfo:
        build_site(project)
    assert Path(excinfo.value.source_path).name == "post.html.jinja"
    assert "Template syntax error" in excinfo.value.message

    broken.write_text("{{ page.missing.attribute }}", encoding="utf-8")
    with pytest.raises(ContentError) as excinfo:
        build_site(project)
    assert excinfo.value.source_path.name == "2024-01-15-emacs.md"
    assert "Undefined variable" in excinfo.value.message


def test_taxonomy_url_collision(tmp_path):
    project = create_project(tmp_path)
    (project / "source" / "tags").mkdir()
    (project / "source" / "tags" / "latex.md").write_text("# Not a tag page", encoding="utf-8")
    with pytest.raises(ContentError, match="reserved for the tag archive"):
        build_site(project)


def test_format_error_message():
    assert _format_error_message(TypeError("bad")) == "Type error: bad"
    assert _format_error_message(AttributeError("x")) == "Attribute error: x"
    assert _format_error_message(KeyError("k")) == "KeyError: 'k'"
