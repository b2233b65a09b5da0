"""Tests for Manifest, AssetRecord and StorageStatus."""

import json
from unittest.mock import MagicMock

from assetsync.asset_record import AssetRecord, Placeholder
from assetsync.exceptions import StoreTransientError
from assetsync.manifest import Manifest
from assetsync.storage_status import StorageStatus


class TestAssetRecord:
    """Tests for AssetRecord."""

    def test_to_dict_shape(self):
        """Test the JSON shape uses camelCase aspectRatio and omits empty failed."""
        record = AssetRecord(
            hash='abc',
            outputs=['images/a-400.webp'],
            size=100,
            updated='2024-01-01T00:00:00+00:00',
            placeholder=Placeholder('data:image/webp;base64,xx', 1600, 900, 1600 / 900),
        )

        data = record.to_dict()

        assert data['placeholder']['aspectRatio'] == 1600 / 900
        assert 'failed' not in data
        assert AssetRecord.from_dict(data) == record

    def test_complete(self):
        """Test complete reflects failed outputs."""
        assert AssetRecord(hash='a').complete
        assert not AssetRecord(hash='a', failed=['k']).complete

    def test_format_status(self):
        """Test one-line status."""
        record = AssetRecord(hash='a', outputs=['x', 'y'], size=2048)

        assert record.format_status('images/a.jpg') == 'images/a.jpg - 2 outputs (2.0 KB source)'


class TestManifest:
    """Tests for Manifest."""

    def test_record_entry_replaces(self):
        """Test recording a path twice keeps the latest."""
        manifest = Manifest()
        manifest.record_entry('images/a.jpg', 'h1', ['k1'], 10)
        manifest.record_entry('images/a.jpg', 'h2', ['k2', 'k3'], 12)

        entry = manifest.get_entry('images/a.jpg')
        assert entry.hash == 'h2'
        assert manifest.total_sources == 1
        assert manifest.total_outputs == 2

    def test_save_and_load(self, tmp_path):
        """Test the manifest survives a save/load cycle."""
        path = tmp_path / 'public' / 'assets-manifest.json'
        manifest = Manifest()
        manifest.record_entry('images/a.jpg', 'h', ['images/a-400.webp'], 10, failed=['images/a-800.webp'])
        manifest.storage = StorageStatus.from_usage(512, 1024)

        manifest.save(str(path))
        loaded = Manifest.load(str(path))

        assert loaded.to_dict() == manifest.to_dict()
        assert json.loads(path.read_text())['storage'] == {'used': 512, 'limit': 1024, 'percentage': 50}
        assert [p.name for p in path.parent.iterdir()] == ['assets-manifest.json']

    def test_load_missing(self, tmp_path):
        """Test a missing file gives an empty manifest."""
        assert Manifest.load(str(tmp_path / 'none.json')).total_sources == 0

    def test_prune_missing(self):
        """Test prune drops entries whose source is gone."""
        manifest = Manifest()
        manifest.record_entry('images/a.jpg', 'h', [], 1)
        manifest.record_entry('images/b.jpg', 'h', [], 1)

        removed = manifest.prune_missing(lambda p: p == 'images/a.jpg')

        assert removed == ['images/b.jpg']
        assert list(manifest.processed) == ['images/a.jpg']

    def test_refresh_storage(self, local_store):
        """Test storage usage is the sum of stored object sizes."""
        local_store.put('a.webp', b'x' * 300)
        local_store.put('b.webp', b'x' * 200)
        manifest = Manifest()

        status = manifest.refresh_storage(local_store, limit=1000)

        assert status.used == 500
        assert status.percentage == 50
        assert manifest.storage is status

    def test_refresh_storage_keeps_previous_on_error(self):
        """Test a listing failure keeps the previous snapshot."""
        store = MagicMock()
        store.list.side_effect = StoreTransientError("down")
        manifest = Manifest(storage=StorageStatus.from_usage(10, 100))

        status = manifest.refresh_storage(store)

        assert status.used == 10


class TestStorageStatus:
    """Tests for StorageStatus thresholds."""

    def test_levels(self):
        """Test ok, warning and critical levels."""
        assert StorageStatus.from_usage(80, 100).level == 'ok'
        assert StorageStatus.from_usage(81, 100).level == 'warning'
        assert StorageStatus.from_usage(91, 100).level == 'critical'

    def test_zero_limit(self):
        """Test a zero limit does not divide by zero."""
        assert StorageStatus.from_usage(10, 0).percentage == 0
