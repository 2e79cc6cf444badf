from pathlib import Path

from PIL import Image

from pegasus.asset_processors import (
    AssetProcessorRegistry,
    ImageProcessor,
    JSProcessor,
    StaticAssetProcessor,
    create_default_registry,
)
from pegasus.assets import AssetPipeline


def create_project(tmp_path: Path) -> Path:
    project = tmp_path
    assets = project / "assets"
    (assets / "js").mkdir(parents=True)
    (assets / "css").mkdir()
    (assets / "images").mkdir()
    (assets / "node_modules" / "pkg").mkdir(parents=True)
    (assets / ".cache").mkdir()

    (assets / "js" / "main.js").write_text("function test(){ return 1 + 1; }\n", encoding="utf-8")
    (assets / "js" / "vendor.min.js").write_text("var a = 1 ;", encoding="utf-8")
    (assets / "css" / "site.css").write_text("body { color: red; }\n", encoding="utf-8")
    Image.new("RGB", (2, 2), color="red").save(assets / "images" / "logo.png")
    (assets / "node_modules" / "pkg" / "index.js").write_text("x", encoding="utf-8")
    (assets / ".cache" / "junk").write_text("x", encoding="utf-8")
    return project


def test_pipeline_processes_assets(tmp_path):
    project = create_project(tmp_path)
    output = project / "public"
    written = AssetPipeline(project, output).run()

    assert written == [
        Path("assets/css/site.css"),
        Path("assets/images/logo.png"),
        Path("assets/js/main.js"),
        Path("assets/js/vendor.min.js"),
    ]
    assert (output / "assets" / "css" / "site.css").read_text(encoding="utf-8") == "body { color: red; }\n"
    assert "return 1+1" in (output / "assets" / "js" / "main.js").read_text(encoding="utf-8")
    assert (output / "assets" / "js" / "vendor.min.js").read_text(encoding="utf-8") == "var a = 1 ;"
    with Image.open(output / "assets" / "images" / "logo.png") as img:
        assert img.size == (2, 2)
    assert not (output / "assets" / "node_modules").exists()
    assert not (output / "assets" / ".cache").exists()


def test_pipeline_copies_source_static_files(tmp_path):
    project = tmp_path
    source = project / "source"
    (source / "posts" / "files").mkdir(parents=True)
    attachment = source / "posts" / "files" / "guide.pdf"
    attachment.write_bytes(b"%PDF-1.4")

    written = AssetPipeline(project, project / "public").run(source, [attachment])
    assert written == [Path("posts/files/guide.pdf")]
    assert (project / "public" / "posts" / "files" / "guide.pdf").read_bytes() == b"%PDF-1.4"


def test_unoptimized_pipeline_copies_bytes(tmp_path):
    project = create_project(tmp_path)
    output = project / "public"
    AssetPipeline(project, output, optimize=False).run()
    for rel in ("js/main.js", "images/logo.png"):
        assert (output / "assets" / rel).read_bytes() == (project / "assets" / rel).read_bytes()


def test_processing_is_deterministic(tmp_path):
    project = create_project(tmp_path)
    AssetPipeline(project, project / "one").run()
    AssetPipeline(project, project / "two").run()
    for rel in ("js/main.js", "images/logo.png"):
        assert (project / "one" / "assets" / rel).read_bytes() == (project / "two" / "assets" / rel).read_bytes()


def test_broken_image_is_copied_unchanged(tmp_path, caplog):
    source = tmp_path / "broken.png"
    source.write_bytes(b"not really a png")
    dest = tmp_path / "out" / "broken.png"
    assert ImageProcessor().process(source, dest)
    assert dest.read_bytes() == b"not really a png"
    assert "Could not optimize" in caplog.text


def test_legacy_encoded_script_is_copied_unchanged(tmp_path, caplog):
    source = tmp_path / "legacy.js"
    source.write_bytes("var s = '\u00e9t\u00e9';\n".encode("latin-1"))
    dest = tmp_path / "out" / "legacy.js"
    assert JSProcessor().process(source, dest)
    assert dest.read_bytes() == source.read_bytes()
    assert "Could not minify" in caplog.text


def test_jpeg_keeps_its_quality(tmp_path):
    source = tmp_path / "photo.jpg"
    Image.new("RGB", (64, 64), color="blue").save(source, quality=30)
    dest = tmp_path / "out" / "photo.jpg"
    assert ImageProcessor().process(source, dest)
    with Image.open(source) as original, Image.open(dest) as optimized:
        assert optimized.format == "JPEG"
        assert optimized.size == (64, 64)
        assert optimized.quantization == original.quantization


def test_registry_orders_by_priority():
    registry = AssetProcessorRegistry()
    registry.register(StaticAssetProcessor())
    registry.register(JSProcessor())
    registry.register(ImageProcessor())
    assert isinstance(registry.get_processor(Path("a.PNG")), ImageProcessor)
    assert isinstance(registry.get_processor(Path("a.js")), JSProcessor)
    assert isinstance(registry.get_processor(Path("a.min.js")), StaticAssetProcessor)
    assert isinstance(registry.get_processor(Path("a.svg")), StaticAssetProcessor)

    empty = AssetProcessorRegistry()
    assert empty.get_processor(Path("a.js")) is None
    assert empty.process(Path("a.js"), Path("b.js")) is False

    plain = create_default_registry(optimize=False)
    assert isinstance(plain.get_processor(Path("a.js")), StaticAssetProcessor)
