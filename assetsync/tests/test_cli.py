"""Tests for the command line interface."""

import json
from unittest.mock import patch

import pytest

from assetsync.cli import create_parser, main
from assetsync.local_client import LocalClient, LocalConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in ('S3_ENDPOINT', 'S3_BUCKET', 'S3_ACCESS_KEY', 'S3_SECRET_KEY', 'CF_ACCOUNT_ID',
                 'R2_BUCKET_NAME', 'R2_ACCESS_KEY_ID', 'R2_SECRET_ACCESS_KEY'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def configured_project(project_dir):
    (project_dir / 'assets.config.json').write_text(json.dumps({'sizes': [400], 'formats': ['webp']}))
    return project_dir


class TestParser:
    """Tests for argument parsing."""

    def test_sync_options(self):
        """Test sync flags."""
        args = create_parser().parse_args(['sync', '--dry-run', '--force', '--prune', '-w', '8'])

        assert args.command == 'sync'
        assert args.dry_run and args.force and args.prune
        assert args.workers == 8

    def test_serve_defaults(self):
        """Test serve defaults."""
        args = create_parser().parse_args(['serve'])

        assert args.port == 8787
        assert args.key_prefix == 'images'

    def test_verbose_after_command(self):
        """Test -v is a subcommand option."""
        assert create_parser().parse_args(['sync', '-v']).verbose is True
        assert create_parser().parse_args(['sync']).verbose is False

        with pytest.raises(SystemExit):
            create_parser().parse_args(['-v', 'sync'])

    def test_pull_options(self):
        """Test pull flags and defaults."""
        args = create_parser().parse_args(['pull', '-n', '--images-dir', 'pics'])

        assert args.dry_run is True
        assert args.images_dir == 'pics'
        assert args.key_prefix == 'images'

    def test_no_command(self, capsys):
        """Test running without a command prints help."""
        assert main([]) == 1


class TestSync:
    """Tests for the sync command."""

    def test_sync_local(self, configured_project, tmp_path, capsys):
        """Test a sync into a local directory."""
        bucket = tmp_path / 'bucket'

        code = main(['sync', '--base-dir', str(configured_project), '--local-root', str(bucket)])

        assert code == 0
        assert (bucket / 'images' / 'hero-400.webp').exists()
        manifest = json.loads((configured_project / 'public' / 'assets-manifest.json').read_text())
        assert manifest['processed']['images/hero.jpg']['outputs'] == ['images/hero-400.webp']
        out = capsys.readouterr().out
        assert "SYNC SUMMARY" in out
        assert "Storage:" in out

    def test_sync_missing_credentials(self, configured_project, clean_env):
        """Test missing S3 settings fail before any work."""
        code = main(['sync', '--base-dir', str(configured_project)])

        assert code == 1
        assert not (configured_project / 'public' / 'assets-manifest.json').exists()

    def test_sync_errors_exit_nonzero(self, configured_project, tmp_path):
        """Test a run with failed units exits 1."""
        (configured_project / 'public' / 'images' / 'broken.jpg').write_bytes(b'nope')

        code = main(['sync', '-q', '--base-dir', str(configured_project), '--local-root', str(tmp_path / 'b')])

        assert code == 1

    def test_invalid_config(self, project_dir, tmp_path):
        """Test an invalid config file exits 1."""
        (project_dir / 'assets.config.json').write_text(json.dumps({'quality': {'400': 500}}))

        code = main(['sync', '--base-dir', str(project_dir), '--local-root', str(tmp_path / 'b')])

        assert code == 1


class TestStatus:
    """Tests for the status command."""

    def test_status_after_sync(self, configured_project, tmp_path, capsys):
        """Test status reports counts from the manifest and live usage."""
        bucket = str(tmp_path / 'bucket')
        main(['sync', '-q', '--base-dir', str(configured_project), '--local-root', bucket])
        capsys.readouterr()

        code = main(['status', '--base-dir', str(configured_project), '--local-root', bucket])

        out = capsys.readouterr().out
        assert code == 0
        assert "ASSET STORAGE STATUS" in out
        assert "Source files: 4" in out

    def test_status_without_credentials(self, configured_project, clean_env, capsys):
        """Test status falls back to the manifest snapshot."""
        code = main(['status', '--base-dir', str(configured_project)])

        assert code == 0
        assert "No manifest entries" in capsys.readouterr().out


class TestServe:
    """Tests for the serve command."""

    def test_serve_runs_bottle(self, configured_project, tmp_path):
        """Test serve wires the app into bottle.run."""
        with patch('assetsync.cli.run_server') as run_server:
            code = main(['serve', '--base-dir', str(configured_project),
                         '--local-root', str(tmp_path / 'bucket'), '--port', '9000'])

        assert code == 0
        assert run_server.call_args.kwargs['port'] == 9000


@pytest.fixture
def remote_originals(tmp_path):
    bucket = tmp_path / 'bucket'
    store = LocalClient(LocalConfig(root_path=str(bucket)))
    for key in ('images/hero.jpg', 'images/hero-400.webp', 'images/new.jpg'):
        store.put(key, b'remote ' + key.encode())
    return str(bucket)


class TestDevImages:
    """Tests for the check and pull commands."""

    def test_check_lists_missing(self, configured_project, remote_originals, capsys):
        """Test check reports remote originals absent locally."""
        code = main(['check', '--base-dir', str(configured_project), '--local-root', remote_originals])

        out = capsys.readouterr().out
        assert code == 0
        assert "Missing locally:  1" in out
        assert "  - new.jpg" in out
        assert "Extra local images (not uploaded):" in out
        assert not (configured_project / 'public' / 'images' / 'new.jpg').exists()

    def test_pull_downloads_missing(self, configured_project, remote_originals, capsys):
        """Test pull writes missing originals into the images source directory."""
        code = main(['pull', '--base-dir', str(configured_project), '--local-root', remote_originals])

        images = configured_project / 'public' / 'images'
        assert code == 0
        assert (images / 'new.jpg').read_bytes() == b'remote images/new.jpg'
        assert not (images / 'hero-400.webp').exists()
        assert "Downloaded: 1" in capsys.readouterr().out

    def test_pull_dry_run(self, configured_project, remote_originals):
        """Test pull --dry-run leaves the directory alone."""
        code = main(['pull', '-n', '--base-dir', str(configured_project), '--local-root', remote_originals])

        assert code == 0
        assert not (configured_project / 'public' / 'images' / 'new.jpg').exists()

    def test_pull_into_images_dir(self, configured_project, remote_originals, tmp_path):
        """Test --images-dir overrides the configured source directory."""
        target = tmp_path / 'checkout'

        main(['pull', '--base-dir', str(configured_project), '--local-root', remote_originals,
              '--images-dir', str(target)])

        assert sorted(p.name for p in target.iterdir()) == ['hero.jpg', 'new.jpg']

    def test_check_without_credentials(self, configured_project, clean_env):
        """Test check fails when no storage is configured."""
        assert main(['check', '--base-dir', str(configured_project)]) == 1
