"""
Tests for the version module of the pqwallet SDK.
"""
import importlib
import re
from importlib import metadata as importlib_metadata
from unittest.mock import mock_open, patch

import tomli

import pqwallet_sdk
from pqwallet_sdk import __version__


def _package_not_found(name):
    raise importlib_metadata.PackageNotFoundError(name)


def test_version_format():
    """The version string follows semantic versioning"""
    assert re.match(r'^\d+\.\d+\.\d+', __version__)
    assert pqwallet_sdk.__version__ == __version__


@patch('importlib.metadata.version')
def test_version_from_metadata(mock_metadata_version):
    mock_metadata_version.return_value = "2.3.4"
    import pqwallet_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "2.3.4"


def test_version_from_pyproject(monkeypatch):
    """When metadata lookup fails, pyproject.toml is read"""
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'[project]\nversion = "1.2.3"\n'))
    import pqwallet_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "1.2.3"


def test_version_file_not_found(monkeypatch):
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', lambda *a, **k: (_ for _ in ()).throw(FileNotFoundError()))
    import pqwallet_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_key_error(monkeypatch):
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'[project]\nname = "pqwallet-sdk"\n'))
    import pqwallet_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"


def test_version_toml_decode_error(monkeypatch):
    monkeypatch.setattr(importlib_metadata, 'version', _package_not_found)
    monkeypatch.setattr('pathlib.Path.open', mock_open(read_data=b'not = [valid'))
    import pqwallet_sdk.version as vmod
    importlib.reload(vmod)
    assert vmod.__version__ == "0.1.0"
