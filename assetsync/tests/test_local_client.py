"""Tests for LocalClient."""

import pytest

from assetsync.exceptions import ConfigurationError, StoreTransientError
from assetsync.local_client import LocalClient, LocalConfig


class TestLocalClient:
    """Tests for the filesystem store."""

    def test_put_get(self, local_store):
        """Test objects are written and read back."""
        local_store.put('images/a-400.webp', b'webp bytes', content_type='image/webp')

        obj = local_store.get('images/a-400.webp')

        assert obj.body == b'webp bytes'
        assert obj.size == len(b'webp bytes')
        assert obj.content_type == 'image/webp'

    def test_head_has_etag_without_body(self, local_store):
        """Test head returns a stable quoted etag and no body."""
        local_store.put('a.png', b'one')

        first = local_store.head('a.png')
        local_store.put('a.png', b'two')
        second = local_store.head('a.png')

        assert first.body is None
        assert first.etag.startswith('"') and first.etag.endswith('"')
        assert first.etag != second.etag

    def test_missing(self, local_store):
        """Test missing keys return None."""
        assert local_store.head('nope.webp') is None
        assert local_store.get('nope.webp') is None
        assert not local_store.exists('nope.webp')

    def test_escape_rejected(self, local_store):
        """Test keys cannot escape the root."""
        assert local_store.head('../../etc/passwd') is None
        with pytest.raises(ValueError):
            local_store.put('../outside', b'x')

    def test_list_with_prefix(self, local_store):
        """Test list yields keys and sizes under a prefix."""
        local_store.put('images/a.webp', b'12345')
        local_store.put('documents/b.pdf', b'12')

        assert list(local_store.list()) == [('documents/b.pdf', 2), ('images/a.webp', 5)]
        assert list(local_store.list('images/')) == [('images/a.webp', 5)]

    def test_prefix_directory(self, tmp_path):
        """Test a configured prefix nests objects."""
        store = LocalClient(LocalConfig(root_path=str(tmp_path), prefix='site'))

        store.put('a.webp', b'x')

        assert (tmp_path / 'site' / 'a.webp').read_bytes() == b'x'

    def test_missing_root_without_create(self, tmp_path):
        """Test a missing root is a configuration error when create is off."""
        with pytest.raises(ConfigurationError):
            LocalClient(LocalConfig(root_path=str(tmp_path / 'missing'), create=False))

    def test_failed_write_leaves_no_temp_file(self, local_store, mocker):
        """Test a failed rename removes the temporary upload file."""
        local_store.put('images/keep.webp', b'old')
        mocker.patch('assetsync.local_client.os.replace', side_effect=OSError('disk full'))

        with pytest.raises(StoreTransientError):
            local_store.put('images/a.webp', b'new')

        directory = local_store.config.base_path / 'images'
        assert sorted(p.name for p in directory.iterdir()) == ['keep.webp']

    def test_head_does_not_read_body(self, local_store, mocker):
        """Test head answers from file metadata only."""
        local_store.put('images/big.webp', b'x' * 4096)
        read_bytes = mocker.patch('assetsync.local_client.Path.read_bytes')

        obj = local_store.head('images/big.webp')

        read_bytes.assert_not_called()
        assert obj.size == 4096

    def test_etag_stable_between_head_and_get(self, local_store):
        """Test head and get agree on the etag of an unchanged object."""
        local_store.put('a.webp', b'data')

        assert local_store.head('a.webp').etag == local_store.head('a.webp').etag
        assert local_store.head('a.webp').etag == local_store.get('a.webp').etag
