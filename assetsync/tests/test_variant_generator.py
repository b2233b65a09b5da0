"""Tests for VariantGenerator class."""

import io

import pytest
from PIL import Image, features

from assetsync.exceptions import EncodingError
from assetsync.variant_generator import VariantGenerator, get_content_type, output_key

requires_avif = pytest.mark.skipif(not features.check('avif'), reason='Pillow built without AVIF')


class TestOutputKey:
    """Tests for variant key naming."""

    def test_sized_key(self):
        """Test width suffix replaces the source extension."""
        assert output_key('images/hero.jpg', 800, 'webp') == 'images/hero-800.webp'

    def test_original_key(self):
        """Test original-size variants keep the bare name."""
        assert output_key('images/anim.gif', 'original', 'webp') == 'images/anim.webp'

    def test_dotted_directory(self):
        """Test dots in directory names are left alone."""
        assert output_key('images/v1.2/photo.png', 400, 'avif') == 'images/v1.2/photo-400.avif'

    def test_content_type(self):
        """Test content types by extension."""
        assert get_content_type('a/b-400.avif') == 'image/avif'
        assert get_content_type('logo.SVG') == 'image/svg+xml'
        assert get_content_type('file.unknown') == 'application/octet-stream'


class TestGenerate:
    """Tests for VariantGenerator.generate."""

    def test_downscale_keeps_aspect(self, hero_bytes):
        """Test width is applied and height follows the aspect ratio."""
        variant = VariantGenerator().generate(hero_bytes, 800, 'webp')

        img = Image.open(io.BytesIO(variant.data))
        assert img.format == 'WEBP'
        assert img.size == (800, 450)
        assert (variant.width, variant.height) == (800, 450)
        assert variant.content_type == 'image/webp'

    def test_never_upscales(self, sample_image_bytes):
        """Test a wider target is clamped to the source width."""
        variant = VariantGenerator().generate(sample_image_bytes, 1200, 'webp')

        assert variant.width == 100

    def test_original_width(self, hero_bytes):
        """Test 'original' re-encodes at the intrinsic size."""
        variant = VariantGenerator().generate(hero_bytes, 'original', 'webp')

        assert (variant.width, variant.height) == (1600, 900)

    def test_transparency_kept_for_webp(self, sample_png_bytes):
        """Test alpha survives WebP encoding."""
        variant = VariantGenerator().generate(sample_png_bytes, 400, 'webp')

        assert Image.open(io.BytesIO(variant.data)).mode == 'RGBA'

    def test_transparency_flattened_for_jpeg(self, sample_png_bytes):
        """Test alpha is composited onto white for JPEG."""
        variant = VariantGenerator().generate(sample_png_bytes, 400, 'jpeg')

        assert Image.open(io.BytesIO(variant.data)).mode == 'RGB'

    def test_exif_orientation_applied(self):
        """Test rotated photos are stored upright."""
        img = Image.new('RGB', (200, 100), 'green')
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 CW
        buffer = io.BytesIO()
        img.save(buffer, format='JPEG', exif=exif.tobytes())

        variant = VariantGenerator().generate(buffer.getvalue(), 'original', 'webp')

        assert (variant.width, variant.height) == (100, 200)

    def test_metadata_stripped(self):
        """Test EXIF data is not carried into the output."""
        img = Image.new('RGB', (50, 50), 'green')
        exif = Image.Exif()
        exif[0x010F] = 'CameraMaker'
        buffer = io.BytesIO()
        img.save(buffer, format='JPEG', exif=exif.tobytes())

        variant = VariantGenerator().generate(buffer.getvalue(), 'original', 'jpeg')

        assert not Image.open(io.BytesIO(variant.data)).getexif()

    def test_corrupt_input(self):
        """Test undecodable input raises EncodingError."""
        with pytest.raises(EncodingError):
            VariantGenerator().generate(b'definitely not an image', 400, 'webp')

    def test_unknown_format(self, sample_image_bytes):
        """Test unknown output formats raise EncodingError."""
        with pytest.raises(EncodingError):
            VariantGenerator().generate(sample_image_bytes, 400, 'heic')

    def test_animated_gif_to_webp(self):
        """Test animated GIF frames are kept in the WebP output."""
        frames = [Image.new('RGB', (40, 40), color) for color in ('red', 'blue', 'green')]
        buffer = io.BytesIO()
        frames[0].save(buffer, format='GIF', save_all=True, append_images=frames[1:], duration=100, loop=0)

        variant = VariantGenerator().generate(buffer.getvalue(), 'original', 'webp')

        out = Image.open(io.BytesIO(variant.data))
        assert getattr(out, 'n_frames', 1) == 3

    @requires_avif
    def test_avif(self, hero_bytes):
        """Test AVIF encoding."""
        variant = VariantGenerator().generate(hero_bytes, 400, 'avif')

        assert variant.content_type == 'image/avif'
        assert Image.open(io.BytesIO(variant.data)).size == (400, 225)


class TestQuality:
    """Tests for quality selection."""

    def test_configured_lookup_used_for_webp(self):
        """Test WebP uses the supplied per-width lookup."""
        gen = VariantGenerator(quality_for={400: 90, 800: 85}.get)

        assert gen.quality(400, 'webp') == 90
        assert gen.quality(800, 'jpeg') == 85

    def test_avif_tiers(self):
        """Test AVIF quality drops as width grows."""
        gen = VariantGenerator()

        assert gen.quality(400, 'avif') == 75
        assert gen.quality(800, 'avif') == 65
        assert gen.quality(1200, 'avif') == 55
        assert gen.quality('original', 'avif') == 55


class TestPlaceholder:
    """Tests for generate_placeholder."""

    def test_placeholder(self, hero_bytes):
        """Test a tiny data URI with the source dimensions."""
        import base64

        placeholder = VariantGenerator().generate_placeholder(hero_bytes)

        assert placeholder.width == 1600
        assert placeholder.height == 900
        assert placeholder.aspect_ratio == pytest.approx(16 / 9)
        prefix = 'data:image/webp;base64,'
        assert placeholder.base64.startswith(prefix)
        tiny = Image.open(io.BytesIO(base64.b64decode(placeholder.base64[len(prefix):])))
        assert tiny.size == (20, 11)

    def test_placeholder_corrupt(self):
        """Test undecodable input raises EncodingError."""
        with pytest.raises(EncodingError):
            VariantGenerator().generate_placeholder(b'junk')

    def test_intrinsic_size(self):
        """Test intrinsic size of a PNG."""
        buffer = io.BytesIO()
        Image.new('RGB', (30, 10)).save(buffer, format='PNG')

        assert VariantGenerator().intrinsic_size(buffer.getvalue()) == (30, 10)
