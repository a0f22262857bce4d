"""
Tests for basket storage ports - JSON file persistence.
"""

import json
import pytest

from storage.basket_storage import (
    STORAGE_KEY,
    BasketStorageError,
    InMemoryBasketStorage,
    JsonFileBasketStorage,
)

BASKETS = [
    {
        'id': 'b1',
        'name': 'Tech',
        'items': [{'symbol': 'AAPL', 'addedAt': '2024-01-16T09:31:00.000Z'}],
        'createdAt': '2024-01-16T09:30:00.000Z',
    }
]


class TestInMemoryStorage:
    """Tests for InMemoryBasketStorage."""

    def test_round_trip_is_a_copy(self):
        storage = InMemoryBasketStorage()
        storage.save(BASKETS)

        loaded = storage.load()
        loaded[0]['name'] = 'Changed'

        assert storage.load()[0]['name'] == 'Tech'

    def test_starts_empty(self):
        assert InMemoryBasketStorage().load() == []


class TestJsonFileStorage:
    """Tests for JsonFileBasketStorage."""

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileBasketStorage(tmp_path / 'baskets.json').load() == []

    def test_save_writes_keyed_array(self, tmp_path):
        path = tmp_path / 'nested' / 'baskets.json'
        JsonFileBasketStorage(path).save(BASKETS)

        with open(path) as f:
            payload = json.load(f)

        assert payload == {STORAGE_KEY: BASKETS}
        assert STORAGE_KEY == 'stockbasket_baskets'

    def test_load_after_save(self, tmp_path):
        storage = JsonFileBasketStorage(tmp_path / 'baskets.json')
        storage.save(BASKETS)
        assert storage.load() == BASKETS

    def test_no_temp_files_left(self, tmp_path):
        storage = JsonFileBasketStorage(tmp_path / 'baskets.json')
        storage.save(BASKETS)
        storage.save([])

        assert [p.name for p in tmp_path.iterdir()] == ['baskets.json']

    def test_bare_array_file(self, tmp_path):
        """A file holding just the basket array loads and is rewritten keyed."""
        path = tmp_path / 'baskets.json'
        path.write_text(json.dumps(BASKETS))
        storage = JsonFileBasketStorage(path)

        loaded = storage.load()
        assert loaded == BASKETS

        storage.save(loaded)
        with open(path) as f:
            assert json.load(f) == {STORAGE_KEY: BASKETS}

    def test_corrupt_file_set_aside(self, tmp_path):
        path = tmp_path / 'baskets.json'
        path.write_text('{not json')
        storage = JsonFileBasketStorage(path)

        assert storage.load() == []
        storage.save([])

        assert (tmp_path / 'baskets.json.corrupt').read_text() == '{not json'

    def test_unexpected_payload_set_aside(self, tmp_path):
        path = tmp_path / 'baskets.json'
        content = json.dumps({STORAGE_KEY: {'id': 'b1'}})
        path.write_text(content)

        assert JsonFileBasketStorage(path).load() == []
        assert not path.exists()
        assert (tmp_path / 'baskets.json.corrupt').read_text() == content

    def test_path_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv('BASKETS_PATH', str(tmp_path / 'env.json'))
        assert JsonFileBasketStorage().path == tmp_path / 'env.json'

    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / 'file'
        blocker.write_text('x')

        with pytest.raises(BasketStorageError):
            JsonFileBasketStorage(blocker / 'baskets.json').save(BASKETS)
