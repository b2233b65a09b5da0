"""
Pytest fixtures for assetsync tests.
"""

import io

import pytest


def make_image_bytes(size=(100, 100), color='red', fmt='JPEG', mode='RGB'):
    """Encode a solid-color image."""
    from PIL import Image

    img = Image.new(mode, size, color=color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def s3_config():
    """Fixture providing S3 configuration."""
    from assetsync.s3_config import S3Config

    return S3Config(
        endpoint='https://test-endpoint.example.com',
        bucket='test-bucket',
        prefix='',
        access_key='test-access-key',
        secret_key='test-secret-key',
        region='auto',
    )


@pytest.fixture
def mock_boto3_client(mocker):
    """Fixture patching boto3.client as seen by S3Client."""
    mock_client = mocker.MagicMock()
    return mocker.patch('assetsync.s3_client.boto3.client', return_value=mock_client)


@pytest.fixture
def mock_s3_client(s3_config):
    """Fixture providing an S3Client with mocked boto3."""
    from unittest.mock import MagicMock, patch
    from assetsync.s3_client import S3Client

    mock_boto = MagicMock()

    with patch('assetsync.s3_client.boto3.client', return_value=mock_boto):
        client = S3Client(s3_config)
        # Store reference to the mock for test setup
        client._mock_boto = mock_boto
        yield client


@pytest.fixture
def local_store(tmp_path):
    """Fixture providing a filesystem-backed store."""
    from assetsync.local_client import LocalClient, LocalConfig

    return LocalClient(LocalConfig(root_path=str(tmp_path / 'bucket')))


@pytest.fixture
def sample_image_bytes():
    """Fixture providing sample JPEG image bytes (100x100)."""
    return make_image_bytes()


@pytest.fixture
def hero_bytes():
    """Fixture providing a 1600x900 JPEG."""
    return make_image_bytes(size=(1600, 900), color='blue')


@pytest.fixture
def sample_png_bytes():
    """Fixture providing sample PNG image bytes with transparency."""
    return make_image_bytes(color=(255, 0, 0, 128), fmt='PNG', mode='RGBA')


@pytest.fixture
def project_dir(tmp_path, hero_bytes):
    """Fixture providing a project with public/images and public/documents."""
    images = tmp_path / 'project' / 'public' / 'images'
    (images / 'gallery').mkdir(parents=True)
    (images / 'hero.jpg').write_bytes(hero_bytes)
    (images / 'gallery' / 'shot.png').write_bytes(make_image_bytes(size=(900, 600), fmt='PNG'))
    (images / 'logo.svg').write_bytes(b'<svg xmlns="http://www.w3.org/2000/svg"/>')
    (images / 'ready.webp').write_bytes(b'already optimized')
    (images / 'notes.txt').write_bytes(b'not an asset')

    documents = tmp_path / 'project' / 'public' / 'documents'
    documents.mkdir(parents=True)
    (documents / 'resume.pdf').write_bytes(b'%PDF-1.4 fake')

    return tmp_path / 'project'


@pytest.fixture
def webp_config():
    """Fixture providing a WebP-only processing config (no AVIF encoder needed)."""
    from assetsync.asset_config import ProcessingConfig

    return ProcessingConfig(sizes=[400, 800, 1200], formats=['webp'], workers=2)


@pytest.fixture
def fake_generator():
    """Fixture providing a variant generator that returns fixed bytes."""
    from unittest.mock import MagicMock
    from assetsync.variant_generator import Variant, VariantGenerator

    gen = MagicMock(spec=VariantGenerator)

    def generate(data, width, fmt):
        return Variant(
            data=f"{fmt}@{width}".encode(),
            content_type=f"image/{fmt}",
            width=width if width != 'original' else 1,
            height=1,
            format=fmt,
        )

    gen.generate.side_effect = generate
    return gen


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    import logging
    return logging.getLogger('test')
